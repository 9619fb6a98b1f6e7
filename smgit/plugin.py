"""
Plugin surface consumed by the sm package manager.

Every operation accepts locators as strings or parsed ``Locator`` objects.
Locators naming a hosting vendor this backend does not support are reported
as an error and the operation returns None.
"""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional, Union

from .config import Config, load_configuration
from .git.gateway import GitCommandGateway
from .git.repository_info import StatusCode, StatusReport
from .pm.cache import cache_entry_for
from .pm.edit import EditOptions, PackageEditor
from .pm.fetch import DownloadResult, FetchOptions, PackageFetcher
from .pm.locator import LOCAL_VENDOR, Locator


logger = logging.getLogger('smgit.plugin')

LocatorLike = Union[str, Locator]

_fetcher: Optional[PackageFetcher] = None


def get_fetcher(config: Optional[Config] = None) -> PackageFetcher:
    """Shared fetcher; a new one is created whenever ``config`` is given."""
    global _fetcher
    if config is not None or _fetcher is None:
        config = config or load_configuration()
        _fetcher = PackageFetcher(config, GitCommandGateway(config))
    return _fetcher


def _resolve_locator(locator: LocatorLike, fetcher: PackageFetcher) -> Optional[Locator]:
    if not isinstance(locator, Locator):
        locator = Locator.parse(locator)
    vendor = locator.vendor
    if vendor != LOCAL_VENDOR and vendor not in fetcher.config.supported_vendors:
        logger.error(f"Unsupported vendor '{vendor}' in '{locator.original or locator}'")
        return None
    return locator


def install(locator: LocatorLike, package_path: Union[str, Path],
            options: Optional[FetchOptions] = None,
            fetcher: Optional[PackageFetcher] = None) -> Optional[StatusCode]:
    fetcher = fetcher or get_fetcher()
    parsed = _resolve_locator(locator, fetcher)
    if parsed is None:
        return None
    return fetcher.install(parsed, package_path, options)


def status(path: Union[str, Path], now: bool = False, verbose: bool = False, debug: bool = False,
           locator: Optional[LocatorLike] = None,
           fetcher: Optional[PackageFetcher] = None) -> Optional[StatusReport]:
    """
    Status of the working copy at ``path``.

    Args:
        now: Fetch from origin before computing ahead/behind
        locator: Source of the package; enables the ``writable`` check
    """
    fetcher = fetcher or get_fetcher()
    parsed = None
    if locator is not None:
        parsed = _resolve_locator(locator, fetcher)
        if parsed is None:
            return None
    options = FetchOptions(verbose=verbose, debug=debug)
    return fetcher.status(path, fetch=now, locator=parsed, options=options)


def download(from_locator: LocatorLike, package_path: Union[str, Path] = None,
             options: Optional[FetchOptions] = None,
             fetcher: Optional[PackageFetcher] = None) -> Optional[DownloadResult]:
    """Populate the cache for ``from_locator``; ``package_path`` is not touched."""
    fetcher = fetcher or get_fetcher()
    parsed = _resolve_locator(from_locator, fetcher)
    if parsed is None:
        return None
    return fetcher.download(parsed, options)


def extract(from_locator: LocatorLike, package_path: Union[str, Path],
            cache_path: Optional[Union[str, Path]] = None,
            options: Optional[FetchOptions] = None,
            fetcher: Optional[PackageFetcher] = None) -> Optional[StatusCode]:
    """Populate ``package_path`` from an existing cache entry."""
    fetcher = fetcher or get_fetcher()
    parsed = _resolve_locator(from_locator, fetcher)
    if parsed is None:
        return None
    if cache_path is None:
        options = options or FetchOptions()
        cache_path = cache_entry_for(parsed.uri(options.write), fetcher.config.cache_dir).path
    return fetcher.extract(parsed, package_path, cache_path, options)


def edit(path: Union[str, Path], options: Optional[EditOptions] = None,
         fetcher: Optional[PackageFetcher] = None) -> Optional[StatusCode]:
    """Promote the package at ``path`` to a working copy of its source repository."""
    fetcher = fetcher or get_fetcher()
    options = options or EditOptions()
    editor = PackageEditor(fetcher)
    # The source may come from the package descriptor
    parsed = _resolve_locator(editor.source_locator(Path(path), options), fetcher)
    if parsed is None:
        return None
    return editor.edit(path, replace(options, locator=parsed))
