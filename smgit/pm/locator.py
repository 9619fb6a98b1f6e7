"""Parsing of source locators (repository URI plus optional revision)."""

import re
from dataclasses import dataclass, replace
from typing import Optional

from ..git.repository import is_full_revision


LOCAL_VENDOR = "local"

_SCP_LIKE = re.compile(r"^(?:[^@/]+@)?([^:/]+):(?!//)(.+)$")
_URL = re.compile(r"^(https?|git|ssh|git\+ssh)://(?:[^@/]+@)?([^/:]+)(?::\d+)?/(.+)$")
_BARE = re.compile(r"^([a-z0-9-]+(?:\.[a-z0-9-]+)+)/(.+)$", re.IGNORECASE)
_WINDOWS_DRIVE = re.compile(r"^[a-zA-Z]:[\\/]")


def _clean_path(path: str) -> str:
    path = path.strip("/")
    if path.endswith(".git"):
        path = path[:-4]
    return path


@dataclass(frozen=True)
class Locator:
    """
    A parsed source reference.

    Attributes:
        vendor: Hosting vendor (host name), or "local" for filesystem paths
        read_uri: URI used for anonymous fetching
        write_uri: URI used when the package is edited and pushed
        revision: Exact commit, branch, tag or version selector (None = default branch)
        original: The locator string as given
    """
    vendor: str
    read_uri: str
    write_uri: str
    revision: Optional[str] = None
    original: Optional[str] = None

    @classmethod
    def parse(cls, locator: str) -> "Locator":
        """
        Parse ``locator`` into its vendor, URIs and revision.

        Raises:
            ValueError: locator is not a recognizable repository reference
        """
        original = locator
        locator = locator.strip()
        base, _, revision = locator.partition("#")
        revision = revision.strip() or None
        if not base:
            raise ValueError(f"Empty source locator: '{original}'")

        if base.startswith("file://") or base.startswith((".", "/", "~")) or _WINDOWS_DRIVE.match(base):
            return cls(LOCAL_VENDOR, base, base, revision, original)

        m = _URL.match(base)
        if m:
            host, path = m.group(2), _clean_path(m.group(3))
            read_uri = base if m.group(1) in ("https", "http", "git") else f"https://{host}/{path}.git"
            return cls(host, read_uri, f"git@{host}:{path}.git", revision, original)

        m = _SCP_LIKE.match(base)
        if m and "." in m.group(1):
            host, path = m.group(1), _clean_path(m.group(2))
            return cls(host, f"https://{host}/{path}.git", base, revision, original)

        m = _BARE.match(base)
        if m:
            host, path = m.group(1), _clean_path(m.group(2))
            return cls(host, f"https://{host}/{path}.git", f"git@{host}:{path}.git", revision, original)

        raise ValueError(f"Unrecognized source locator: '{original}'")

    def uri(self, write: bool = False) -> str:
        return self.write_uri if write else self.read_uri

    @property
    def is_exact_revision(self) -> bool:
        return is_full_revision(self.revision)

    def with_revision(self, revision: Optional[str]) -> "Locator":
        return replace(self, revision=revision)

    def __str__(self):
        if self.revision:
            return f"{self.read_uri}#{self.revision}"
        return self.read_uri
