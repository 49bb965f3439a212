"""
Reads and writes the catalog snapshot (products, meta, features, raw rows) as one
logical unit in the `catalog` collection.
"""

import logging
from collections.abc import Sequence
from datetime import datetime, timezone

from pydantic import ValidationError

from catalog_sync.exceptions import CacheWriteFailed, CatalogSyncError
from catalog_sync.models.catalog import (
    CatalogMeta,
    CatalogSnapshot,
    FeatureRecord,
    Product,
)

from .store import CATALOG, PersistentStore

log = logging.getLogger(__name__)

KEY_PRODUCTS = "products"
KEY_META = "meta"
KEY_FEATURES = "features"
KEY_RAW_ROWS = "raw_rows"

SNAPSHOT_KEYS = [KEY_PRODUCTS, KEY_META, KEY_FEATURES, KEY_RAW_ROWS]


class CatalogCache:
    """Presents the cached catalog snapshot over the persistent store."""

    def __init__(self, store: PersistentStore):
        self.store = store

    async def get_cached_catalog(self) -> CatalogSnapshot | None:
        """
        Returns the cached snapshot, or None on a miss.

        Missing or malformed `meta`/`products`, and any storage error, are all
        treated as a miss; this method never raises.
        """
        try:
            raw = await self.store.read_many(CATALOG, SNAPSHOT_KEYS)
        except CatalogSyncError as e:
            log.warning(f"Catalog cache read failed, treating as miss: {e}")
            return None

        if not raw.get(KEY_META) or not isinstance(raw.get(KEY_PRODUCTS), list):
            return None

        features = raw.get(KEY_FEATURES)
        raw_rows = raw.get(KEY_RAW_ROWS)
        try:
            return CatalogSnapshot(
                products=raw[KEY_PRODUCTS],
                meta=raw[KEY_META],
                features=features if isinstance(features, list) else [],
                raw_rows=_coerce_rows(raw_rows),
            )
        except ValidationError as e:
            log.debug(f"Cached catalog is malformed, treating as miss: {e}")
            return None

    async def set_cached_catalog(
        self,
        products: Sequence[Product],
        version: str,
        features: Sequence[FeatureRecord] | None = None,
        raw_rows: Sequence[Sequence[str]] | None = None,
    ) -> CatalogSnapshot:
        """
        Persists a new snapshot, stamping `last_updated` with the current time.

        All four keys are written in one transaction; absent optional fields are
        deleted in that same transaction so no earlier write can leak through.

        Raises:
            CacheWriteFailed: If the snapshot could not be persisted. The caller
            should keep using the data it already holds in memory.
        """
        snapshot = CatalogSnapshot(
            products=list(products),
            meta=CatalogMeta(
                version=str(version), last_updated=datetime.now(timezone.utc)
            ),
            features=list(features or []),
            raw_rows=[list(r) for r in raw_rows] if raw_rows is not None else None,
        )
        entries = {
            KEY_PRODUCTS: [p.model_dump(mode="json") for p in snapshot.products],
            KEY_META: snapshot.meta.model_dump(mode="json"),
            KEY_FEATURES: (
                [f.model_dump(mode="json") for f in snapshot.features]
                if features is not None
                else None
            ),
            KEY_RAW_ROWS: snapshot.raw_rows,
        }
        try:
            await self.store.transactional_write(CATALOG, entries)
        except CatalogSyncError as e:
            raise CacheWriteFailed(f"Could not cache catalog v{version}: {e}") from e

        log.debug(
            f"Cached catalog v{version} ({len(snapshot.products)} products, "
            f"{len(snapshot.features)} features)."
        )
        return snapshot

    async def clear(self) -> bool:
        """Drops the cached snapshot so the next load re-fetches from the sheet."""
        try:
            await self.store.transactional_write(CATALOG, dict.fromkeys(SNAPSHOT_KEYS))
            return True
        except CatalogSyncError as e:
            log.error(f"Failed to clear catalog cache: {e}")
            return False


def _coerce_rows(value) -> list[list[str]] | None:
    """Raw rows are optional; anything that is not a list of rows is dropped."""
    if not isinstance(value, list):
        return None
    return [[str(c) for c in row] if isinstance(row, list) else [] for row in value]
