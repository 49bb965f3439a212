"""
Per-URL freshness bookkeeping for cached media, layered on the `media-cache`
collection. Media caching is best effort: storage errors never reach callers.
"""

import logging
from datetime import datetime, timezone

from catalog_sync.exceptions import CatalogSyncError
from catalog_sync.models.media import MediaCacheEntry, MediaPayload

from .store import MEDIA_CACHE, PersistentStore

log = logging.getLogger(__name__)


class MediaFreshnessTracker:
    """Stores and retrieves cached media entries and their freshness tokens."""

    def __init__(self, store: PersistentStore):
        self.store = store

    async def get_entry(self, url: str) -> MediaCacheEntry | None:
        """Returns the cached entry for `url`, or None if absent or unreadable."""
        try:
            return await self.store.read(MEDIA_CACHE, url)
        except CatalogSyncError as e:
            log.debug(f"Media cache read failed for '{url}': {e}")
            return None

    async def get_freshness_token(self, url: str) -> str | None:
        """
        Returns the last known modification marker for `url`. Entries stored
        without a token count as absent.
        """
        try:
            tokens = await self.store.read_tokens([url])
        except CatalogSyncError as e:
            log.debug(f"Media cache read failed for '{url}': {e}")
            return None
        return tokens.get(url)

    async def record_download(
        self, url: str, token: str, payload: MediaPayload
    ) -> bool:
        """
        Replaces the entry for `url` with a freshly downloaded payload and the
        token observed for it. Returns False if the write failed.
        """
        entry = MediaCacheEntry(
            url=url,
            freshness_token=token,
            payload=payload,
            stored_at=datetime.now(timezone.utc),
        )
        try:
            await self.store.transactional_write(MEDIA_CACHE, {url: entry})
            return True
        except CatalogSyncError as e:
            log.warning(f"[yellow]Could not cache media '{url}': {e}[/yellow]")
            return False

    async def clear(self) -> bool:
        """Evicts every cached media entry."""
        try:
            await self.store.clear(MEDIA_CACHE)
            return True
        except CatalogSyncError as e:
            log.error(f"Failed to clear media cache: {e}")
            return False
