"""
Status reconciliation for git working copies.

The report says whether a working copy is ahead of, behind, diverged from or in
sync with ``origin``. It never merges. The answer comes from the status summary
git prints and, when that summary is silent, from four commit ranges measured
against ``origin/<branch>``:

    to_head          origin/<branch>..HEAD
    to_fetch_head    origin/<branch>..FETCH_HEAD
    from_head        HEAD..origin/<branch>
    from_fetch_head  FETCH_HEAD..origin/<branch>

``classify_ranges`` turns the four lists into ahead/behind counts.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..errors import CommandError, UNKNOWN_REVISION
from .repository import GitRepository
from .repository_info import DETACHED, StatusReport


_PORCELAIN_BRANCH = re.compile(r"^## (.*)$")
_PORCELAIN_COUNTS = re.compile(r"\[(.*)\]\s*$")
_LONG_BRANCH = re.compile(r"^(?:# )?On branch (.+)$")
_LONG_DETACHED = re.compile(r"^(?:# )?(?:HEAD detached (?:at|from) |Not currently on any branch)")
_LONG_AHEAD = re.compile(r"Your branch is ahead of .* by (\d+) commits?")
_LONG_BEHIND = re.compile(r"Your branch is behind .* by (\d+) commits?")
_LONG_DIVERGED = re.compile(r"have (\d+) and (\d+) different commits? each")
_LONG_CLEAN = re.compile(r"^(?:# )?nothing to commit[ ,(]*(?:working (?:directory|tree) clean)")
_TAG_DECORATION = re.compile(r"\btag: ([^,)]+)")


@dataclass
class StatusSummary:
    """What ``git status`` itself reports about the working copy."""
    branch: Optional[str] = None
    detached: bool = False
    unborn: bool = False
    dirty: bool = False
    ahead: int = 0
    behind: int = 0


def _parse_porcelain(lines: List[str]) -> StatusSummary:
    summary = StatusSummary()
    header = _PORCELAIN_BRANCH.match(lines[0]).group(1)

    counts = _PORCELAIN_COUNTS.search(header)
    if counts:
        header = header[:counts.start()].rstrip()
        for part in counts.group(1).split(","):
            part = part.strip()
            if part.startswith("ahead "):
                summary.ahead = int(part[len("ahead "):])
            elif part.startswith("behind "):
                summary.behind = int(part[len("behind "):])

    if header.startswith("HEAD (no branch)"):
        summary.detached = True
        summary.branch = DETACHED
    elif header.startswith("No commits yet on ") or header.startswith("Initial commit on "):
        summary.unborn = True
        summary.branch = header.split(" on ", 1)[1]
    else:
        summary.branch = header.split("...", 1)[0]

    summary.dirty = any(line.strip() for line in lines[1:])
    return summary


def _parse_long(lines: List[str]) -> StatusSummary:
    # Long form assumes a dirty tree until git says otherwise
    summary = StatusSummary(dirty=True)
    text = "\n".join(lines)

    for line in lines:
        m = _LONG_BRANCH.match(line)
        if m:
            summary.branch = m.group(1).strip()
            break
        if _LONG_DETACHED.match(line):
            summary.detached = True
            summary.branch = DETACHED
            break

    m = _LONG_AHEAD.search(text)
    if m:
        summary.ahead = int(m.group(1))
    m = _LONG_BEHIND.search(text)
    if m:
        summary.behind = int(m.group(1))
    m = _LONG_DIVERGED.search(text)
    if m:
        summary.ahead = int(m.group(1))
        summary.behind = int(m.group(2))

    if any(_LONG_CLEAN.match(line) for line in lines):
        summary.dirty = False
    if "No commits yet" in text or "Initial commit" in text:
        summary.unborn = True
    return summary


def parse_status_summary(output: str) -> StatusSummary:
    """
    Parse ``git status --porcelain --branch`` output.

    The long human-readable form (including the ``# ``-prefixed form of older git
    releases) is understood as well.
    """
    lines = output.splitlines()
    if lines and _PORCELAIN_BRANCH.match(lines[0]):
        return _parse_porcelain(lines)
    return _parse_long(lines)


def parse_tag_decoration(log_line: str) -> Optional[str]:
    """Tag name from a ``git log --oneline --decorate`` line, if HEAD is tagged."""
    m = _TAG_DECORATION.search(log_line)
    return m.group(1).strip() if m else None


def _same_commit(revision: str, entry: str) -> bool:
    # Entries are abbreviated ids; revisions are full ids
    return revision.startswith(entry) or entry.startswith(revision)


def classify_ranges(
    revision: str,
    to_head: List[str],
    to_fetch_head: List[str],
    from_head: List[str],
    from_fetch_head: List[str]
) -> Tuple[int, int]:
    """
    Classify the four range lists into ``(ahead, behind)`` counts.

    Rules are tried in order and the first match wins. Combinations no rule
    covers come back as ``(0, 0)``, the same as a synchronized working copy.
    """
    ahead = 0
    behind = 0

    if (not to_head and not to_fetch_head and not from_head and from_fetch_head
            and not _same_commit(revision, from_fetch_head[0])):
        return ahead, len(from_fetch_head)

    if not to_head and not to_fetch_head and not from_head and not from_fetch_head:
        return ahead, behind

    if (to_head and to_fetch_head and not from_head and not from_fetch_head
            and to_head[0] != to_fetch_head[0]):
        if _same_commit(revision, to_head[0]):
            ahead = len(to_head)
            if to_fetch_head[0] not in to_head:
                behind = len(to_fetch_head)
        else:
            # HEAD is not the tip of the local side, so it is not ahead
            behind = len(to_fetch_head)
        return ahead, behind

    if to_head and not to_fetch_head and not from_head and not from_fetch_head:
        return len(to_head), behind

    if not to_head and not from_fetch_head and bool(to_fetch_head) != bool(from_head):
        return ahead, len(to_fetch_head or from_head)

    if not to_fetch_head and from_head and not from_fetch_head:
        behind = len(from_head)
        if to_head:
            ahead = len(to_head)
        return ahead, behind

    return ahead, behind


class StatusReconciler:
    """Computes a ``StatusReport`` for one working copy."""

    def __init__(self, repository: GitRepository, remote: str = "origin"):
        self.repository = repository
        self.remote = remote
        self.logger = logging.getLogger('smgit.git.status')

    def status(self, fetch: bool = False, write_uri: Optional[str] = None) -> StatusReport:
        """
        Determine the status of the working copy.

        Args:
            fetch: Fetch the remote before comparing
            write_uri: Authoritative write URI; sets ``writable`` when the push
                URL of the remote equals it

        Returns:
            StatusReport; ``vcs`` is None when the path is not a working copy
        """
        repo = self.repository
        report = StatusReport()
        if not repo.is_working_copy():
            return report

        if fetch:
            repo.fetch(self.remote)

        summary = parse_status_summary(repo.git("status", "--porcelain", "--branch", verbose=False))
        report.vcs = "git"
        report.dirty = summary.dirty
        report.ahead = summary.ahead
        report.behind = summary.behind
        report.branch = summary.branch

        if summary.unborn:
            self.logger.debug(f"{repo.path} has no commits yet")
            return report

        report.revision = repo.current_revision()
        if summary.detached or summary.branch == DETACHED:
            report.detached = True
            report.branch = report.revision

        self._apply_remote(report, write_uri)
        report.tag = self._tag_at_head()

        if report.ahead or report.behind:
            # git already measured the divergence against the upstream
            return report

        if report.branch == report.revision:
            # Ahead/behind are branch concepts; nothing to compare for an exact ref
            return report

        self._reconcile(report)
        return report

    def _apply_remote(self, report: StatusReport, write_uri: Optional[str]) -> None:
        remote = self.repository.remotes().get(self.remote)
        if remote is None:
            return
        report.fetch_url = remote.fetch_url
        report.push_url = remote.push_url
        report.remote_branches = list(remote.remote_branches)
        report.tracked_branches = dict(remote.branches)
        if report.branch in remote.branches:
            report.tracking = remote.name
        if write_uri:
            report.writable = remote.push_url == write_uri

    def _tag_at_head(self) -> Optional[str]:
        entries = self.repository.log(max_count=1, decorate=True)
        if not entries:
            return None
        return parse_tag_decoration(entries[0])

    def _reconcile(self, report: StatusReport) -> None:
        repo = self.repository
        remote_ref = f"{self.remote}/{report.branch}"
        # Without a previous fetch nothing is known beyond the remote-tracking branch
        fetch_ref = "FETCH_HEAD" if (repo.git_dir / "FETCH_HEAD").is_file() else remote_ref

        try:
            to_head = repo.log_ids(f"{remote_ref}..HEAD")
            to_fetch_head = repo.log_ids(f"{remote_ref}..{fetch_ref}")
            from_head = repo.log_ids(f"HEAD..{remote_ref}")
            from_fetch_head = repo.log_ids(f"{fetch_ref}..{remote_ref}")
        except CommandError as e:
            if not UNKNOWN_REVISION.search(e.output):
                raise
            self.logger.debug(f"No remote branch '{remote_ref}' for {repo.path}")
            report.no_remote = True
            report.ahead = len(repo.log_ids("HEAD"))
            return

        self.logger.debug(
            f"Ranges for {remote_ref}: to_head={len(to_head)} to_fetch_head={len(to_fetch_head)} "
            f"from_head={len(from_head)} from_fetch_head={len(from_fetch_head)}"
        )
        report.ahead, report.behind = classify_ranges(
            report.revision, to_head, to_fetch_head, from_head, from_fetch_head
        )
