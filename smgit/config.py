"""Configuration management for smgit."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Tuple

from dotenv import load_dotenv

from .platform import get_platform_specific_defaults, normalize_path

load_dotenv()  # Load .env file if it exists


def _split_list(value: str) -> Tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass
class Config:
    """Configuration for the git source backend with validation and defaults."""

    # Storage
    home_dir: Path = field(default_factory=lambda: Path.home() / ".smgit")

    # Logging
    log_level: str = "INFO"

    # Locators
    supported_vendors: Tuple[str, ...] = ("github.com",)
    default_branch: str = "master"

    # Transport/auth helpers injected into every git subprocess
    git_ssh: Optional[str] = None
    git_askpass: Optional[str] = None

    # Edit workflow
    auxiliary_dirs: Tuple[str, ...] = ("node_modules", "mapped_packages")

    # Branch name used to probe push access; must never exist on a remote
    push_probe_branch: str = "__smgit-push-probe__"

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.home_dir, str):
            self.home_dir = Path(self.home_dir)
        self.home_dir = normalize_path(self.home_dir)

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_log_levels:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {valid_log_levels}")
        self.log_level = self.log_level.upper()

        self.supported_vendors = tuple(self.supported_vendors)
        if not self.supported_vendors:
            raise ValueError("supported_vendors must name at least one hosting vendor")

        if not self.default_branch:
            raise ValueError("default_branch must not be empty")

        self.auxiliary_dirs = tuple(self.auxiliary_dirs)

    @property
    def cache_dir(self) -> Path:
        """Root directory of the shared repository cache."""
        return self.home_dir / "repository-cache"

    def git_environment(self) -> Dict[str, str]:
        """Environment overlay applied to every git subprocess."""
        env = {"GIT_TERMINAL_PROMPT": "0"}
        if self.git_ssh:
            env["GIT_SSH"] = self.git_ssh
        if self.git_askpass:
            env["GIT_ASKPASS"] = self.git_askpass
        return env


def load_configuration() -> Config:
    """Load configuration from environment variables with platform-specific defaults."""
    defaults = get_platform_specific_defaults()

    try:
        vendors = os.getenv("SMGIT_VENDORS")
        auxiliary_dirs = os.getenv("SMGIT_AUXILIARY_DIRS")
        return Config(
            home_dir=Path(os.getenv("SMGIT_HOME", str(defaults['home_dir']))),
            log_level=os.getenv("SMGIT_LOG_LEVEL", defaults['log_level']).upper(),
            supported_vendors=_split_list(vendors) if vendors else defaults['supported_vendors'],
            default_branch=os.getenv("SMGIT_DEFAULT_BRANCH", defaults['default_branch']),
            git_ssh=os.getenv("SMGIT_GIT_SSH"),
            git_askpass=os.getenv("SMGIT_GIT_ASKPASS", defaults.get('git_askpass')),
            auxiliary_dirs=_split_list(auxiliary_dirs) if auxiliary_dirs is not None else defaults['auxiliary_dirs'],
        )
    except (ValueError, TypeError) as e:
        raise ValueError(f"Configuration error: {e}")
