"""
Package cache and fetch orchestration.

A package is populated in two stages:

    download  ensure the cache holds an up to date clone of the source
              (clone on first use, fetch afterwards unless the requested exact
              revision is already present)
    extract   copy the cached clone into the package directory and check out
              the requested branch, tag, exact revision or version selector

Both stages return HTTP-style status codes: 200 when something changed, 304 when
nothing had to be done. A destination with local work (dirty or ahead of its
remote) is never overwritten, and a destination that fails to populate is
removed again before the error propagates.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..config import Config
from ..errors import (
    CommandError,
    NOT_EXPORTED,
    PATHSPEC_MISMATCH,
    PreconditionError,
    RefResolutionError,
)
from ..git.gateway import GitCommandGateway
from ..git.repository import GitRepository, is_full_revision
from ..git.repository_info import DETACHED, StatusCode, StatusReport
from ..git.status import StatusReconciler
from .cache import cache_entry_for
from .locator import Locator
from .performance_logger import PerformanceLogger
from .selector import resolve_version_selector


# Files copied next to .git when only version control metadata is restored
VCS_METADATA_FILES = (".git", ".gitignore", ".gitmodules")

# Commit of a read-only install, written where .git used to be
REVISION_MARKER = ".smgit-revision"


@dataclass
class FetchOptions:
    """Options of a download/extract/install run."""
    write: bool = False        # use the write URI of the locator
    cached: bool = False       # never fetch an existing cache entry
    delete: bool = False       # always repopulate the destination
    readonly: bool = False     # strip .git from the destination afterwards
    vcs_only: bool = False     # restore only version control metadata
    use_cache: bool = True     # False populates the destination directly
    tags: bool = False         # include tags when fetching
    branch_only: bool = False  # fetch only the requested branch
    verbose: bool = False
    debug: bool = False


@dataclass
class DownloadResult:
    """Outcome of the download stage."""
    status_code: StatusCode
    cache_path: Path


@dataclass
class _Target:
    """How a requested revision is realized in a working copy."""
    ref: str
    kind: str  # "branch", "exact", "tag"


class PackageFetcher:
    """Populates package directories from cached git clones."""

    def __init__(self, config: Config, gateway: Optional[GitCommandGateway] = None):
        self.config = config
        self.gateway = gateway or GitCommandGateway(config)
        self.logger = logging.getLogger('smgit.pm.fetch')
        self.perf_logger = PerformanceLogger()

    def repository(self, path: Union[str, Path], options: Optional[FetchOptions] = None) -> GitRepository:
        options = options or FetchOptions()
        return GitRepository(path, self.gateway, verbose=options.verbose, debug=options.debug)

    # -- plugin operations --------------------------------------------------

    def install(self, locator: Locator, package_path: Union[str, Path],
                options: Optional[FetchOptions] = None) -> StatusCode:
        """Download ``locator`` into the cache and extract it to ``package_path``."""
        options = options or FetchOptions()
        package_path = Path(package_path)

        if not options.use_cache:
            return self._install_direct(locator, package_path, options)

        # Refuse before touching the network when the destination holds local work
        self._guard_destination(locator, package_path, options)

        result = self.download(locator, options)
        return self.extract(locator, package_path, result.cache_path, options,
                            changed=result.status_code == StatusCode.OK)

    def download(self, locator: Locator, options: Optional[FetchOptions] = None) -> DownloadResult:
        """
        Make sure the cache holds a clone of ``locator`` that knows its revision.

        Returns:
            DownloadResult with 200 when the cache was cloned or fetched new
            objects, 304 otherwise
        """
        options = options or FetchOptions()
        uri = locator.uri(options.write)
        entry = cache_entry_for(uri, self.config.cache_dir)
        status_code = self._update(entry.path, locator, uri, options)
        return DownloadResult(status_code=status_code, cache_path=entry.path)

    def extract(
        self,
        locator: Locator,
        package_path: Union[str, Path],
        cache_path: Union[str, Path],
        options: Optional[FetchOptions] = None,
        changed: bool = False
    ) -> StatusCode:
        """
        Copy the cached clone to ``package_path`` and check out the requested revision.

        Args:
            changed: The download stage reported new content

        Raises:
            PreconditionError: destination is dirty or ahead of its remote, or the
                cache entry does not exist
        """
        options = options or FetchOptions()
        package_path = Path(package_path)
        cache_path = Path(cache_path)
        uri = locator.uri(options.write)

        if not (cache_path / ".git").is_dir():
            raise PreconditionError(f"No cached clone of '{uri}' at '{cache_path}'")

        report = self._guard_destination(locator, package_path, options)
        cache_repo = self.repository(cache_path, options)

        needs_copy = (
            changed
            or options.delete
            or options.vcs_only
            or not package_path.exists()
            or (report is None and not options.readonly)
            or not self._at_target(cache_repo, locator, self._installed_revision(package_path, report))
        )
        if not needs_copy:
            self.logger.info("Not modified")
            return StatusCode.NOT_MODIFIED

        self._populate(cache_repo, locator, package_path, options)
        return StatusCode.OK

    def status(self, package_path: Union[str, Path], fetch: bool = False,
               locator: Optional[Locator] = None, options: Optional[FetchOptions] = None) -> StatusReport:
        """Status of the working copy at ``package_path``."""
        repo = self.repository(package_path, options)
        write_uri = locator.write_uri if locator else None
        return StatusReconciler(repo).status(fetch=fetch, write_uri=write_uri)

    # -- cache --------------------------------------------------------------

    def _update(self, repo_path: Path, locator: Locator, uri: str, options: FetchOptions) -> StatusCode:
        """Clone ``uri`` to ``repo_path`` or fetch into the existing clone."""
        repo = self.repository(repo_path, options)

        if repo_path.exists() and not repo.is_working_copy():
            self.logger.warning(f"Cached repository at '{repo_path}' is corrupt. Re-cloning.")
            shutil.rmtree(repo_path)

        if not repo_path.exists():
            self._clone(repo, locator, uri, options)
            return StatusCode.OK

        if locator.is_exact_revision and repo.contains_ref(locator.revision, all_branches=True):
            self.logger.debug(f"Revision {locator.revision} already in '{repo_path}', not fetching")
            return StatusCode.NOT_MODIFIED

        if options.cached:
            self.logger.info(f"SKIP: Fetching '{uri}' to '{repo_path}'.")
            return StatusCode.NOT_MODIFIED

        branch = None
        if options.branch_only and locator.revision and self._is_branch(repo, locator.revision):
            branch = locator.revision

        self.logger.info(f"Fetching '{uri}' to '{repo_path}'.")
        with self.perf_logger.time_operation("fetch", {"uri": uri}):
            return repo.fetch("origin", branch=branch, tags=options.tags)

    def _clone(self, repo: GitRepository, locator: Locator, uri: str, options: FetchOptions) -> None:
        self.logger.info(f"Cloning '{uri}' to '{repo.path}'.")
        try:
            with self.perf_logger.time_operation("clone", {"uri": uri}):
                self.gateway.clone(uri, repo.path, verbose=options.verbose)
        except CommandError as e:
            if NOT_EXPORTED.search(e.output):
                self.logger.error(
                    "Access denied or repository not exported. Maybe clone in write mode?"
                )
            raise

        if not repo.can_push("origin", self.config.push_probe_branch):
            # Fetching through an unusable write URI would keep failing authentication
            self.logger.debug(f"No push access to '{uri}', using '{locator.read_uri}' for origin")
            repo.set_remote_url("origin", locator.read_uri)
            repo.set_remote_url("origin", locator.read_uri, push=True)

    # -- destination --------------------------------------------------------

    def _guard_destination(self, locator: Locator, package_path: Path,
                           options: FetchOptions) -> Optional[StatusReport]:
        """Status of an existing destination working copy; refuses local work."""
        if not package_path.exists():
            return None
        repo = self.repository(package_path, options)
        if not repo.is_working_copy():
            return None

        report = StatusReconciler(repo).status()
        if report.dirty or report.ahead:
            raise PreconditionError(
                f"Cannot clone '{locator.uri(options.write)}' to '{package_path}' "
                f"as git repository at target is dirty or ahead."
            )
        return report

    def _installed_revision(self, package_path: Path, report: Optional[StatusReport]) -> Optional[str]:
        """Commit the destination holds, from git or from a read-only install marker."""
        if report is not None:
            return report.revision
        marker = package_path / REVISION_MARKER
        if marker.is_file():
            return marker.read_text(encoding="utf-8").strip() or None
        return None

    def _at_target(self, cache_repo: GitRepository, locator: Locator, installed: Optional[str]) -> bool:
        """True when ``installed`` is the commit the locator asks for."""
        if not installed:
            return False
        try:
            target = self._resolve_target(cache_repo, locator.revision)
            ref = target.ref
            if target.kind == "branch" and self._is_remote_branch(cache_repo, ref):
                ref = f"origin/{ref}"
            commit = cache_repo.rev_parse(ref)
        except (CommandError, RefResolutionError):
            return False
        return installed == commit

    def _populate(self, cache_repo: GitRepository, locator: Locator,
                  package_path: Path, options: FetchOptions) -> None:
        try:
            with self.perf_logger.time_operation("copy", {"to": str(package_path)}):
                self._copy(cache_repo.path, package_path, options)
            self.logger.info(f"Checking out '{locator.revision or 'default branch'}' at '{package_path}'.")
            repo = self.repository(package_path, options)
            with self.perf_logger.time_operation("checkout", {"revision": locator.revision}):
                self._checkout(repo, locator.revision, symbolic=options.vcs_only)
            if options.readonly:
                self._strip_metadata(repo)
        except Exception:
            self._rollback(package_path, options)
            raise

    def _copy(self, cache_path: Path, package_path: Path, options: FetchOptions) -> None:
        if options.vcs_only:
            self.logger.info(f"Copying version control metadata of '{cache_path}' to '{package_path}'.")
            package_path.mkdir(parents=True, exist_ok=True)
            if (package_path / ".git").exists():
                shutil.rmtree(package_path / ".git")
            for name in VCS_METADATA_FILES:
                source = cache_path / name
                if source.is_dir():
                    shutil.copytree(source, package_path / name, symlinks=True)
                elif source.is_file():
                    shutil.copy2(source, package_path / name)
            return

        if package_path.exists():
            shutil.rmtree(package_path)
        package_path.parent.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Copying '{cache_path}' to '{package_path}'.")
        shutil.copytree(cache_path, package_path, symlinks=True)

    def _strip_metadata(self, repo: GitRepository) -> None:
        revision = repo.current_revision()
        shutil.rmtree(repo.git_dir)
        (repo.path / REVISION_MARKER).write_text(revision + "\n", encoding="utf-8")

    def _rollback(self, package_path: Path, options: FetchOptions) -> None:
        if options.vcs_only:
            # The content belongs to someone else; only undo the metadata
            target = package_path / ".git"
        else:
            target = package_path
        self.logger.debug(f"Removing partially populated '{target}'")
        shutil.rmtree(target, ignore_errors=True)

    # -- refs ---------------------------------------------------------------

    def _is_remote_branch(self, repo: GitRepository, name: str) -> bool:
        origin = repo.remotes().get("origin")
        return origin is not None and name in origin.remote_branches

    def _is_branch(self, repo: GitRepository, revision: str) -> bool:
        # A tag named like a remote branch is taken for the branch
        return revision == self.config.default_branch or self._is_remote_branch(repo, revision)

    def _default_revision(self, repo: GitRepository) -> str:
        branch = repo.current_branch()
        return self.config.default_branch if branch == DETACHED else branch

    def _resolve_target(self, repo: GitRepository, revision: Optional[str]) -> _Target:
        """
        Decide how ``revision`` is checked out in ``repo``.

        Raises:
            RefResolutionError: revision is neither a ref, a tag nor a selector
                matching a tag
        """
        if not revision:
            revision = self._default_revision(repo)

        if self._is_branch(repo, revision):
            return _Target(revision, "branch")

        if is_full_revision(revision) or repo.contains_ref(revision) is not None:
            return _Target(revision, "exact")

        if revision in repo.tags():
            return _Target(revision, "tag")

        return _Target(resolve_version_selector(revision, repo.tags()), "tag")

    def _checkout(self, repo: GitRepository, revision: Optional[str], symbolic: bool = False) -> None:
        target = self._resolve_target(repo, revision)

        if target.kind == "branch" and target.ref not in repo.local_branches():
            if self._is_remote_branch(repo, target.ref):
                repo.branch_tracking(target.ref, f"origin/{target.ref}")

        try:
            repo.checkout(target.ref, symbolic=symbolic)
        except CommandError as e:
            if not PATHSPEC_MISMATCH.search(e.output) or not revision:
                raise
            # One retry: the revision may be a selector that shadows no ref
            tag = resolve_version_selector(revision, repo.tags())
            self.logger.debug(f"Checkout of '{target.ref}' failed, retrying with tag '{tag}'")
            repo.checkout(tag, symbolic=symbolic)
            return

        # A copied local branch may lag behind what the cache fetched
        if target.kind == "branch" and not symbolic and self._is_remote_branch(repo, target.ref):
            repo.fast_forward(f"origin/{target.ref}")

    # -- direct-disk mode ---------------------------------------------------

    def _install_direct(self, locator: Locator, package_path: Path, options: FetchOptions) -> StatusCode:
        """Install without the cache: the destination itself is the clone."""
        uri = locator.uri(options.write)
        repo = self.repository(package_path, options)

        if package_path.exists() and not repo.is_working_copy():
            if not options.delete:
                raise PreconditionError(
                    f"Cannot clone '{uri}' to '{package_path}' as it exists and is not a git repository."
                )
            shutil.rmtree(package_path)

        if not package_path.exists():
            self._clone(repo, locator, uri, options)
            try:
                self._checkout(repo, locator.revision)
                if options.readonly:
                    self._strip_metadata(repo)
            except Exception:
                self._rollback(package_path, options)
                raise
            return StatusCode.OK

        report = self._guard_destination(locator, package_path, options)
        self._update(package_path, locator, uri, options)
        self._checkout(repo, locator.revision)
        revision = repo.current_revision()
        if options.readonly:
            self._strip_metadata(repo)

        if report is not None and report.revision == revision:
            self.logger.info("Not modified")
            return StatusCode.NOT_MODIFIED
        return StatusCode.OK
