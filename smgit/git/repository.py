"""Query layer over a git working copy, built on the command gateway."""

import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Set, Union

from ..errors import (
    CommandError,
    PERMISSION_DENIED,
    REMOTE_REF_MISSING,
    UNKNOWN_REVISION,
    UNQUALIFIED_DESTINATION,
)
from .gateway import GitCommandGateway
from .remotes import parse_remote_show
from .repository_info import DETACHED, RemoteDescriptor, StatusCode


FULL_REVISION = re.compile(r"^[0-9a-f]{40}$")
_COMMIT_SUMMARY = re.compile(r"\d+ files? changed")


def is_full_revision(ref: Optional[str]) -> bool:
    """True when ``ref`` is an exact 40 character commit id."""
    return bool(ref) and bool(FULL_REVISION.match(ref))


class GitRepository:
    """
    Handle on a directory believed to contain a git working copy.

    The handle holds no state beyond its path and flags; every query runs git
    afresh through the gateway.
    """

    def __init__(
        self,
        path: Union[str, Path],
        gateway: GitCommandGateway,
        verbose: bool = False,
        debug: bool = False
    ):
        self.path = Path(path)
        self.git_dir = self.path / ".git"
        self.gateway = gateway
        self.verbose = verbose
        self.debug = debug
        self.logger = logging.getLogger('smgit.git.repository')

    def __repr__(self):
        return f"GitRepository({str(self.path)!r})"

    def git(self, *args: str, verbose: Optional[bool] = None) -> str:
        """Run a git command in this working copy."""
        if verbose is None:
            verbose = self.verbose
        return self.gateway.run(list(args), cwd=self.path, verbose=verbose)

    # -- working copy -------------------------------------------------------

    def is_working_copy(self) -> bool:
        return self.git_dir.exists()

    def current_revision(self) -> str:
        return self.git("rev-parse", "HEAD").strip()

    def rev_parse(self, ref: str) -> str:
        return self.git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}").strip()

    def current_branch(self) -> str:
        """Name of the checked out branch, or ``DETACHED``."""
        try:
            output = self.git("symbolic-ref", "-q", "HEAD", verbose=False).strip()
        except CommandError:
            # symbolic-ref exits non-zero when HEAD holds a bare commit id
            return DETACHED
        if output.startswith("refs/heads/"):
            return output[len("refs/heads/"):]
        return DETACHED

    def local_branches(self) -> List[str]:
        output = self.git("branch", "--list", "--format=%(refname:short)", verbose=False)
        return [line.strip() for line in output.splitlines() if line.strip()]

    # -- remotes ------------------------------------------------------------

    def remote_names(self) -> List[str]:
        output = self.git("remote", "show", verbose=False)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def remotes(self) -> Dict[str, RemoteDescriptor]:
        """All remotes of this working copy, queried without network access."""
        remotes = {}
        for name in self.remote_names():
            output = self.git("remote", "show", "-n", name, verbose=False)
            remotes[name] = parse_remote_show(output, name)
        return remotes

    def remote_for_url(self, url: str) -> Optional[str]:
        """Name of the remote fetching from ``url``."""
        for name, remote in self.remotes().items():
            if remote.fetch_url == url:
                return name
        return None

    def set_remote_url(self, name: str, uri: str, push: bool = False) -> None:
        args = ["remote", "set-url"]
        if push:
            args.append("--push")
        self.git(*args, name, uri, verbose=False)

    # -- tags ---------------------------------------------------------------

    def tags(self) -> Set[str]:
        output = self.git("tag", verbose=False)
        return {line.strip() for line in output.splitlines() if line.strip()}

    def tag(self, name: str) -> None:
        """Create tag ``name`` at HEAD and verify it exists afterwards."""
        self.git("tag", name)
        if name not in self.tags():
            raise CommandError(["tag", name], f"Error tagging. New tag '{name}' not found when verifying!")

    # -- refs ---------------------------------------------------------------

    def contains_ref(self, ref: str, all_branches: bool = False) -> Optional[List[str]]:
        """
        Branches containing ``ref``.

        Args:
            all_branches: Include remote-tracking branches

        Returns:
            Ordered branch names, an empty list when no branch contains the
            commit, or None when ``ref`` does not resolve to a known commit.
        """
        args = ["branch", "--contains", ref]
        if all_branches:
            args.insert(1, "-a")
        try:
            output = self.git(*args, verbose=False)
        except CommandError as e:
            if UNKNOWN_REVISION.search(e.output):
                return None
            raise

        branches = []
        for line in output.splitlines():
            name = line.lstrip("*+ ").strip()
            if not name or name.startswith("("):
                continue
            branches.append(name)
        return branches

    def branch_tracking(self, local_name: str, remote_tracked: str) -> None:
        """Create ``local_name`` tracking ``remote_tracked`` (e.g. ``origin/dev``)."""
        output = self.git("branch", "--track", local_name, remote_tracked)
        expected = re.compile(rf"[Bb]ranch '?{re.escape(local_name)}'? set up to track")
        if not expected.search(output):
            raise CommandError(["branch", "--track", local_name, remote_tracked],
                               f"Error creating branch: {output}")

    # -- log ----------------------------------------------------------------

    def log(
        self,
        revision_range: Optional[str] = None,
        max_count: Optional[int] = None,
        decorate: bool = False
    ) -> List[str]:
        args = ["log", "--oneline"]
        if decorate:
            args.append("--decorate")
        if max_count is not None:
            args.extend(["-n", str(max_count)])
        if revision_range:
            args.append(revision_range)
        output = self.git(*args, verbose=False)
        return [line for line in output.splitlines() if line.strip()]

    def log_ids(self, revision_range: Optional[str] = None) -> List[str]:
        """Abbreviated commit ids of ``revision_range``, newest first."""
        return [line.split()[0] for line in self.log(revision_range)]

    # -- network ------------------------------------------------------------

    def fetch(self, remote: str = "origin", branch: Optional[str] = None, tags: bool = False) -> StatusCode:
        """
        Fetch from ``remote``, optionally a single branch and/or tags.

        Returns:
            StatusCode.NOT_MODIFIED when git reported nothing, else StatusCode.OK
        """
        args = ["fetch", remote]
        if branch:
            args.append(branch)
        if tags:
            args.append("--tags")
        output = self.git(*args)
        if not output.strip():
            return StatusCode.NOT_MODIFIED
        return StatusCode.OK

    def pull(self, remote: str, ref: str) -> str:
        return self.git("pull", remote, ref)

    def push(self, remote: Optional[str] = None, branch: Optional[str] = None, tags: bool = False) -> str:
        assert remote is not None, "'remote' not set!"
        assert branch is not None, "'branch' not set!"
        args = ["push", remote, branch]
        if tags:
            args.append("--tags")
        return self.git(*args)

    def can_push(self, remote: str = "origin", probe_branch: str = "__smgit-push-probe__") -> bool:
        """
        Probe write access by pushing the deletion of a branch that never exists.

        A permission error means the remote is read-only for us. A complaint about
        the destination itself means the push got through authentication.
        """
        try:
            self.git("push", remote, f":{probe_branch}", verbose=False)
        except CommandError as e:
            if PERMISSION_DENIED.search(e.output):
                self.logger.debug(f"No push access to '{remote}' from {self.path}")
                return False
            if UNQUALIFIED_DESTINATION.search(e.output) or REMOTE_REF_MISSING.search(e.output):
                return True
            raise
        return True

    # -- working tree -------------------------------------------------------

    def reset(self, ref: Optional[str] = None) -> str:
        args = ["reset", "-q"]
        if ref:
            args.append(ref)
        return self.git(*args, verbose=False)

    def symbolic_ref(self, target: str) -> None:
        self.git("symbolic-ref", "HEAD", target, verbose=False)

    def checkout(self, ref: str, symbolic: bool = False) -> None:
        """
        Move HEAD to ``ref``.

        A symbolic checkout rewrites HEAD without touching tracked files and then
        resets the index, so only version control metadata changes.
        """
        if not symbolic:
            self.git("checkout", "-q", ref)
            return

        if is_full_revision(ref):
            (self.git_dir / "HEAD").write_text(ref + "\n")
            self.reset()
            return

        if ref in self.local_branches():
            self.symbolic_ref(f"refs/heads/{ref}")
            self.reset()
            return

        remote_commit = self._try_rev_parse(f"origin/{ref}")
        if remote_commit:
            # HEAD now names an unborn branch; resetting creates it at the commit
            self.symbolic_ref(f"refs/heads/{ref}")
            self.reset(remote_commit)
            return

        commit = self._try_rev_parse(ref)
        if not commit:
            raise CommandError(["rev-parse", ref],
                               f"error: pathspec '{ref}' did not match any file(s) known to git")
        (self.git_dir / "HEAD").write_text(commit + "\n")
        self.reset()

    def _try_rev_parse(self, ref: str) -> Optional[str]:
        try:
            return self.rev_parse(ref) or None
        except CommandError:
            return None

    def fast_forward(self, upstream: str) -> str:
        """Advance the checked out branch to ``upstream`` without merging."""
        return self.git("merge", "--ff-only", "-q", upstream)

    def commit(self, message: str, add: bool = False) -> str:
        if add:
            self.git("add", ".")
        output = self.git("commit", "-m", message)
        if not _COMMIT_SUMMARY.search(output):
            raise CommandError(["commit", "-m", message], f"Error committing: {output}")
        return output
