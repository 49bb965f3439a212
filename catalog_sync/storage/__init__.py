"""
Storage Layer.

This package handles all local persistence: the SQLite-backed store with its
two collections, the catalog snapshot cache, the media cache and the INI
configuration file.
"""

from .catalog_cache import CatalogCache
from .config_manager import ConfigManager
from .media_cache import MediaFreshnessTracker
from .store import CATALOG, MEDIA_CACHE, PersistentStore

__all__ = [
    "CATALOG",
    "MEDIA_CACHE",
    "CatalogCache",
    "ConfigManager",
    "MediaFreshnessTracker",
    "PersistentStore",
]
