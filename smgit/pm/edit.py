"""
Promotion of an installed package to an editable git working copy.

The existing package directory is moved aside to a timestamped backup, the
package is cloned again in write mode and auxiliary directories (installed
dependencies) are copied from the backup into the new working copy. The backup
stays complete until the new working copy is ready.
"""

import json
import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..errors import PreconditionError
from ..git.repository_info import StatusCode
from .fetch import FetchOptions, PackageFetcher
from .locator import Locator


PACKAGE_DESCRIPTOR = "package.json"


@dataclass
class EditOptions:
    locator: Optional[Union[str, Locator]] = None  # defaults to the package descriptor
    use_cache: bool = True
    verbose: bool = False
    debug: bool = False


def backup_path_for(package_path: Path) -> Path:
    """``<path>~backup-<milliseconds since epoch>``"""
    return package_path.with_name(f"{package_path.name}~backup-{int(time.time() * 1000)}")


def descriptor_repository(package_path: Path) -> Optional[str]:
    """Repository URI declared in the package descriptor, if any."""
    descriptor = package_path / PACKAGE_DESCRIPTOR
    if not descriptor.is_file():
        return None

    with open(descriptor, 'r', encoding='utf-8') as f:
        data = json.load(f)

    repository = data.get("repository")
    if repository is None and data.get("repositories"):
        repository = data["repositories"][0]
    if isinstance(repository, dict):
        repository = repository.get("url")
    return repository or None


class PackageEditor:
    """Turns read-only package snapshots into remote-tracking working copies."""

    def __init__(self, fetcher: PackageFetcher):
        self.fetcher = fetcher
        self.config = fetcher.config
        self.logger = logging.getLogger('smgit.pm.edit')

    def source_locator(self, package_path: Path, options: EditOptions) -> Locator:
        source = options.locator
        if source is None:
            source = descriptor_repository(package_path)
        if source is None:
            raise PreconditionError(
                f"No repository for '{package_path}': pass a locator or declare "
                f"'repository' in {PACKAGE_DESCRIPTOR}"
            )
        if isinstance(source, Locator):
            return source
        return Locator.parse(source)

    def edit(self, package_path: Union[str, Path], options: Optional[EditOptions] = None) -> StatusCode:
        """
        Replace the package at ``package_path`` with a writable clone of its source.

        Raises:
            PreconditionError: the package is already a git working copy, or its
                source repository is unknown
        """
        options = options or EditOptions()
        package_path = Path(package_path)

        if self.fetcher.repository(package_path).is_working_copy():
            raise PreconditionError(f"'{package_path}' is already a git repository")

        locator = self.source_locator(package_path, options)
        backup_path = backup_path_for(package_path)

        self.logger.info(f"Moving '{package_path}' to '{backup_path}'.")
        shutil.move(str(package_path), str(backup_path))

        fetch_options = FetchOptions(
            write=True,
            delete=True,
            use_cache=options.use_cache,
            verbose=options.verbose,
            debug=options.debug
        )
        try:
            status_code = self.fetcher.install(locator, package_path, fetch_options)
            self._restore_auxiliary_dirs(backup_path, package_path)
        except Exception:
            self.logger.error(
                f"Editing '{package_path}' failed. Previous contents are kept at '{backup_path}'."
            )
            raise

        self.logger.debug(f"Removing backup '{backup_path}'")
        shutil.rmtree(backup_path)
        return status_code

    def _restore_auxiliary_dirs(self, backup_path: Path, package_path: Path) -> None:
        for name in self.config.auxiliary_dirs:
            source = backup_path / name
            if not source.is_dir():
                continue
            target = package_path / name
            if target.exists():
                shutil.rmtree(target)
            self.logger.info(f"Restoring '{name}' from backup.")
            shutil.copytree(source, target, symlinks=True)
