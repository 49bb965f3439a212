"""
Loads the catalog for a front end: serves the cache while it is current,
re-fetches when the sheet version changed, and falls back to the cache when
the sheet cannot be reached. Without a cache (the store could not be
opened) every load goes to the sheet and nothing is persisted.
"""

import logging
from collections.abc import Collection
from dataclasses import dataclass
from datetime import datetime, timezone

from catalog_sync.api.protocols import CatalogSource
from catalog_sync.exceptions import (
    CacheWriteFailed,
    NoCatalogAvailable,
    RemoteFetchFailed,
)
from catalog_sync.mapping import map_rows_to_feature_records, map_rows_to_products
from catalog_sync.models.catalog import CatalogMeta, CatalogSnapshot, FeatureRecord, Product
from catalog_sync.models.config import SheetSource
from catalog_sync.storage.catalog_cache import CatalogCache

from .version_checker import VersionChecker

log = logging.getLogger(__name__)

ORIGIN_REMOTE = "remote"
ORIGIN_CACHE = "cache"


@dataclass(frozen=True)
class CatalogLoad:
    """A loaded snapshot, where it came from, and the error that forced a fallback."""

    snapshot: CatalogSnapshot
    origin: str
    error: str | None = None

    @property
    def from_cache(self) -> bool:
        return self.origin == ORIGIN_CACHE


class CatalogLoader:
    def __init__(
        self,
        cache: CatalogCache | None,
        checker: VersionChecker | None,
        source_client: CatalogSource,
        allowed_categories: Collection[str] | None = None,
    ):
        self.cache = cache
        self.checker = checker
        self.source_client = source_client
        self.allowed_categories = allowed_categories

    async def load(self, source: SheetSource) -> CatalogLoad:
        """
        Returns the current catalog, fetching it only if the version changed.

        Raises:
            NoCatalogAvailable: If the sheet is unreachable and nothing is cached.
        """
        if self.cache is None or self.checker is None:
            return await self.refresh(source)

        try:
            check = await self.checker.should_fetch_catalog(source)
        except RemoteFetchFailed as e:
            return await self._fall_back(e)

        if not check.should_fetch:
            cached = await self.cache.get_cached_catalog()
            if cached is not None:
                return CatalogLoad(cached, ORIGIN_CACHE)

        return await self._fetch_and_store(source, check.remote_version)

    async def refresh(self, source: SheetSource) -> CatalogLoad:
        """Re-fetches the catalog regardless of the cached version."""
        try:
            version = await self.source_client.fetch_remote_version(source)
        except RemoteFetchFailed as e:
            return await self._fall_back(e)
        return await self._fetch_and_store(source, version)

    async def _fetch_and_store(self, source: SheetSource, version: str) -> CatalogLoad:
        try:
            rows = await self.source_client.fetch_tabular_rows(
                source, source.items_gid, source.data_start_row
            )
        except RemoteFetchFailed as e:
            return await self._fall_back(e)

        products = map_rows_to_products(rows, self.allowed_categories)
        features = await self._fetch_features(source)
        log.info(f"Fetched catalog v{version}: {len(products)} products.")

        if self.cache is None:
            return CatalogLoad(_in_memory(products, version, features, rows), ORIGIN_REMOTE)
        try:
            snapshot = await self.cache.set_cached_catalog(
                products, version, features, raw_rows=rows
            )
        except CacheWriteFailed as e:
            log.warning(f"[yellow]{e}. Using the fetched catalog in memory.[/yellow]")
            snapshot = _in_memory(products, version, features, rows)
        return CatalogLoad(snapshot, ORIGIN_REMOTE)

    async def _fetch_features(self, source: SheetSource) -> list[FeatureRecord] | None:
        if not source.features_gid:
            return None
        try:
            rows = await self.source_client.fetch_tabular_rows(
                source, source.features_gid, source.features_data_start_row
            )
        except RemoteFetchFailed as e:
            log.warning(f"[yellow]Features tab unavailable, continuing without: {e}[/yellow]")
            return None
        return map_rows_to_feature_records(rows)

    async def _fall_back(self, error: RemoteFetchFailed) -> CatalogLoad:
        cached = None
        if self.cache is not None:
            cached = await self.cache.get_cached_catalog()
        if cached is None:
            raise NoCatalogAvailable(
                "No cached catalog and the sheet is unreachable. "
                "Connect to the internet and try again."
            ) from error
        log.warning(
            f"[yellow]Sheet unreachable, using cached catalog v{cached.version}: "
            f"{error}[/yellow]"
        )
        return CatalogLoad(cached, ORIGIN_CACHE, error=str(error))


def _in_memory(
    products: list[Product],
    version: str,
    features: list[FeatureRecord] | None,
    rows: list[list[str]],
) -> CatalogSnapshot:
    return CatalogSnapshot(
        products=products,
        meta=CatalogMeta(version=version, last_updated=datetime.now(timezone.utc)),
        features=features or [],
        raw_rows=rows,
    )
