"""
Decides whether the cached catalog must be re-fetched by comparing its version
with the one currently published on the sheet.
"""

import asyncio
import logging
from dataclasses import dataclass

from catalog_sync.api.protocols import CatalogSource
from catalog_sync.models.config import SheetSource
from catalog_sync.storage.catalog_cache import CatalogCache

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class VersionCheck:
    """Outcome of one version check."""

    should_fetch: bool
    cached_version: str | None
    remote_version: str


def is_stale(cached_version: str | None, remote_version: str) -> bool:
    """
    True unless the cached version equals the remote one exactly.

    Versions are opaque: a remote that moved backwards (e.g. a sheet restored
    from history) is as much a change as one that moved forwards.
    """
    if not cached_version:
        return True
    return cached_version != remote_version


class VersionChecker:
    """Compares the cached catalog version with the remote version marker."""

    def __init__(self, cache: CatalogCache, source_client: CatalogSource):
        self.cache = cache
        self.source_client = source_client

    async def should_fetch_catalog(self, source: SheetSource) -> VersionCheck:
        """
        Fetches the remote version and reads the cache concurrently.

        Raises:
            RemoteFetchFailed: If the remote version could not be fetched. The
            caller decides whether to fall back to the cache.
        """
        remote_version, cached = await asyncio.gather(
            self.source_client.fetch_remote_version(source),
            self.cache.get_cached_catalog(),
        )
        cached_version = cached.version if cached else None
        should_fetch = is_stale(cached_version, remote_version)

        if should_fetch:
            log.debug(
                f"Catalog version changed: cached={cached_version!r} "
                f"remote={remote_version!r}"
            )
        else:
            log.debug(f"Cached catalog v{cached_version} is current.")
        return VersionCheck(should_fetch, cached_version, remote_version)
