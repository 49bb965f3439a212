import pytest

from catalog_sync.core.catalog_loader import ORIGIN_CACHE, ORIGIN_REMOTE, CatalogLoader
from catalog_sync.core.version_checker import VersionChecker
from catalog_sync.exceptions import NoCatalogAvailable

ITEM_ROWS = [
    ["sv.Brand.A1"],
    ["LineGap"],
    [""],
    ["ol.Other.B2"],
]
FEATURE_ROWS = [
    ["Key", "Label", "Media"],
    ["Gen.Threading", "Perfect threading", "https://videos.test/t.mp4"],
]


@pytest.fixture
def loader(cache, catalog_source):
    catalog_source.rows = ITEM_ROWS
    catalog_source.feature_rows = FEATURE_ROWS
    return CatalogLoader(cache, VersionChecker(cache, catalog_source), catalog_source)


@pytest.mark.asyncio
async def test_first_load_fetches_and_caches(loader, cache, sheet_source):
    load = await loader.load(sheet_source)

    assert load.origin == ORIGIN_REMOTE
    assert [p.id for p in load.snapshot.products] == ["sv.Brand.A1", "ol.Other.B2"]
    assert [f.key for f in load.snapshot.features] == ["Gen.Threading"]
    assert load.snapshot.raw_rows == ITEM_ROWS

    cached = await cache.get_cached_catalog()
    assert cached.version == "1"
    assert cached.products == load.snapshot.products


@pytest.mark.asyncio
async def test_unchanged_version_serves_cache(loader, catalog_source, sheet_source):
    await loader.load(sheet_source)
    catalog_source.row_calls.clear()

    load = await loader.load(sheet_source)
    assert load.origin == ORIGIN_CACHE
    assert load.error is None
    assert catalog_source.row_calls == []


@pytest.mark.asyncio
async def test_changed_version_refetches(loader, catalog_source, sheet_source):
    await loader.load(sheet_source)
    catalog_source.version = "2"
    catalog_source.rows = [["sv.New.C3"]]

    load = await loader.load(sheet_source)
    assert load.origin == ORIGIN_REMOTE
    assert load.snapshot.version == "2"
    assert [p.id for p in load.snapshot.products] == ["sv.New.C3"]


@pytest.mark.asyncio
async def test_unreachable_sheet_falls_back_to_cache(loader, catalog_source, sheet_source):
    await loader.load(sheet_source)
    catalog_source.fail_version = True

    load = await loader.load(sheet_source)
    assert load.from_cache
    assert "unreachable" in load.error
    assert len(load.snapshot.products) == 2


@pytest.mark.asyncio
async def test_unreachable_sheet_without_cache(loader, catalog_source, sheet_source):
    catalog_source.fail_version = True
    with pytest.raises(NoCatalogAvailable):
        await loader.load(sheet_source)


@pytest.mark.asyncio
async def test_failed_row_fetch_falls_back_to_cache(loader, catalog_source, sheet_source):
    await loader.load(sheet_source)
    catalog_source.version = "2"
    catalog_source.fail_gids.add(sheet_source.items_gid)

    load = await loader.load(sheet_source)
    assert load.from_cache
    assert load.snapshot.version == "1"


@pytest.mark.asyncio
async def test_features_failure_is_not_fatal(loader, catalog_source, sheet_source):
    catalog_source.fail_gids.add(sheet_source.features_gid)
    load = await loader.load(sheet_source)
    assert load.origin == ORIGIN_REMOTE
    assert load.snapshot.features == []
    assert len(load.snapshot.products) == 2


@pytest.mark.asyncio
async def test_cache_write_failure_still_returns_catalog(
    loader, store, sheet_source
):
    store.close()
    load = await loader.load(sheet_source)
    assert load.origin == ORIGIN_REMOTE
    assert load.snapshot.version == "1"
    assert len(load.snapshot.products) == 2


@pytest.mark.asyncio
async def test_refresh_ignores_version(loader, catalog_source, sheet_source):
    await loader.load(sheet_source)
    catalog_source.row_calls.clear()

    load = await loader.refresh(sheet_source)
    assert load.origin == ORIGIN_REMOTE
    assert sheet_source.items_gid in catalog_source.row_calls


@pytest.mark.asyncio
async def test_allowed_categories(cache, catalog_source, sheet_source):
    catalog_source.rows = ITEM_ROWS
    loader = CatalogLoader(
        cache, VersionChecker(cache, catalog_source), catalog_source, {"sv"}
    )
    load = await loader.load(sheet_source)
    assert [p.id for p in load.snapshot.products] == ["sv.Brand.A1"]


@pytest.mark.asyncio
async def test_loader_without_cache_fetches_every_time(catalog_source, sheet_source):
    catalog_source.rows = ITEM_ROWS
    loader = CatalogLoader(None, None, catalog_source)

    load = await loader.load(sheet_source)
    assert load.origin == ORIGIN_REMOTE
    assert [p.id for p in load.snapshot.products] == ["sv.Brand.A1", "ol.Other.B2"]

    await loader.load(sheet_source)
    assert catalog_source.row_calls.count(sheet_source.items_gid) == 2

    catalog_source.fail_version = True
    with pytest.raises(NoCatalogAvailable):
        await loader.load(sheet_source)
