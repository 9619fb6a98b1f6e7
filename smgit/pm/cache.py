"""Repository cache: one full clone per normalized remote URI."""

import re
from dataclasses import dataclass
from pathlib import Path


_SEPARATORS = re.compile(r"[:@#]")
_REPEATED_SLASHES = re.compile(r"/+")


def cache_key(uri: str) -> str:
    """
    Normalize ``uri`` into a relative cache path.

    Examples:
        git@github.com:user/repo.git        -> git/github.com/user/repo.git
        https://github.com/user/repo.git#v1 -> https/github.com/user/repo.git
    """
    uri = uri.split("#", 1)[0]
    key = _SEPARATORS.sub("/", uri.replace("\\", "/"))
    key = _REPEATED_SLASHES.sub("/", key)
    # Keep the key relative and free of parent references
    parts = [part for part in key.split("/") if part not in ("", ".", "..")]
    return "/".join(parts)


@dataclass(frozen=True)
class CacheEntry:
    """A cached clone of ``uri`` at ``path``."""
    uri: str
    path: Path

    @property
    def exists(self) -> bool:
        return self.path.exists()

    @property
    def is_clone(self) -> bool:
        return (self.path / ".git").is_dir()


def cache_entry_for(uri: str, cache_dir: Path) -> CacheEntry:
    """Cache entry for ``uri`` under ``cache_dir``, creating its parent directory."""
    path = Path(cache_dir) / cache_key(uri)
    path.parent.mkdir(parents=True, exist_ok=True)
    return CacheEntry(uri=uri.split("#", 1)[0], path=path)
