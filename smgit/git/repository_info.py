"""Repository information and status data structures."""

from dataclasses import dataclass, field, asdict
from enum import IntEnum
from typing import Dict, List, Optional, Any


# Marker reported by the status summary when HEAD is not on a branch
DETACHED = "(detached)"


class StatusCode(IntEnum):
    """Outcome codes returned to the host package manager (HTTP convention)."""
    OK = 200            # freshly populated or changed
    NOT_MODIFIED = 304  # unchanged, nothing done
    ERROR = 500         # unresolved failure


@dataclass
class BranchTracking:
    """A local branch configured to follow a remote branch."""
    tracking: bool
    remote: str


@dataclass
class RemoteDescriptor:
    """One named remote of a repository."""
    name: str
    fetch_url: str
    push_url: str
    branches: Dict[str, BranchTracking] = field(default_factory=dict)
    remote_branches: List[str] = field(default_factory=list)


@dataclass
class StatusReport:
    """Version control status of a working copy relative to its remote."""
    vcs: Optional[str] = None
    branch: Optional[str] = None
    detached: bool = False
    revision: Optional[str] = None
    dirty: bool = False
    ahead: int = 0
    behind: int = 0
    tag: Optional[str] = None
    tracking: Optional[str] = None
    no_remote: bool = False
    writable: bool = False
    fetch_url: Optional[str] = None
    push_url: Optional[str] = None
    remote_branches: List[str] = field(default_factory=list)
    tracked_branches: Dict[str, BranchTracking] = field(default_factory=dict)

    @property
    def is_repository(self) -> bool:
        return self.vcs is not None

    @property
    def diverged(self) -> bool:
        return bool(self.ahead) and bool(self.behind)

    @property
    def synchronized(self) -> bool:
        return self.is_repository and not self.ahead and not self.behind

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
