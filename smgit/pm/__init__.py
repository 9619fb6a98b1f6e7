"""Package cache, fetch orchestration and the edit workflow."""

from .locator import Locator
from .cache import CacheEntry, cache_entry_for, cache_key
from .fetch import DownloadResult, FetchOptions, PackageFetcher
from .edit import EditOptions, PackageEditor

__all__ = [
    'Locator',
    'CacheEntry',
    'cache_entry_for',
    'cache_key',
    'DownloadResult',
    'FetchOptions',
    'PackageFetcher',
    'EditOptions',
    'PackageEditor'
]
