"""
Remote collaborator layer.

Protocols the sync engine consumes plus the default aiohttp adapters for the
published sheet and the media CDN.
"""

from .media_client import MediaClient
from .protocols import CatalogSource, MediaSource
from .sheets_client import SheetsClient

__all__ = ["CatalogSource", "MediaClient", "MediaSource", "SheetsClient"]
