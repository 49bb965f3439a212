"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application: configuration, the catalog
snapshot, cached media and sync statistics.
"""

from .catalog import CatalogMeta, CatalogSnapshot, FeatureRecord, Product
from .config import SheetSource, SyncConfig
from .media import DownloadedMedia, MediaCacheEntry, MediaPayload
from .stats import JobOutcome, SyncProgress, SyncResult

__all__ = [
    "CatalogMeta",
    "CatalogSnapshot",
    "DownloadedMedia",
    "FeatureRecord",
    "JobOutcome",
    "MediaCacheEntry",
    "MediaPayload",
    "Product",
    "SheetSource",
    "SyncConfig",
    "SyncProgress",
    "SyncResult",
]
