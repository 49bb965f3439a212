import sqlite3
from datetime import datetime, timezone

import pytest

from catalog_sync.exceptions import StoreUnavailable, WriteFailed
from catalog_sync.models.media import MediaCacheEntry, MediaPayload
from catalog_sync.storage.store import CATALOG, MEDIA_CACHE, SCHEMA_VERSION, PersistentStore


def test_open_creates_schema_and_is_idempotent(tmp_path):
    path = tmp_path / "nested" / "catalog.sqlite"
    PersistentStore.open(path).close()
    PersistentStore.open(path).close()

    conn = sqlite3.connect(path)
    try:
        tables = {r[0] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        version = conn.execute("PRAGMA user_version").fetchone()[0]
    finally:
        conn.close()
    assert {"catalog", "media_cache"} <= tables
    assert version == SCHEMA_VERSION


def test_open_tolerates_newer_schema(tmp_path):
    path = tmp_path / "catalog.sqlite"
    PersistentStore.open(path).close()
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA user_version = 99")
    conn.close()

    store = PersistentStore.open(path)
    assert not store.closed
    store.close()


def test_open_unopenable_path_raises(tmp_path):
    with pytest.raises(StoreUnavailable):
        PersistentStore.open(tmp_path)


@pytest.mark.asyncio
async def test_write_read_and_delete(store):
    await store.transactional_write(CATALOG, {"a": {"x": 1}, "b": [1, 2]})
    assert await store.read(CATALOG, "a") == {"x": 1}
    assert await store.read_many(CATALOG, ["a", "b", "missing"]) == {"a": {"x": 1}, "b": [1, 2]}

    await store.transactional_write(CATALOG, {"a": None, "b": [3]})
    assert await store.read(CATALOG, "a") is None
    assert await store.read(CATALOG, "b") == [3]


@pytest.mark.asyncio
async def test_failed_write_leaves_prior_state(store):
    await store.transactional_write(CATALOG, {"a": 1})

    with pytest.raises(WriteFailed):
        await store.transactional_write(CATALOG, {"a": 2, "b": object()})

    assert await store.read(CATALOG, "a") == 1
    assert await store.read(CATALOG, "b") is None


@pytest.mark.asyncio
async def test_media_entries_round_trip(store):
    entry = MediaCacheEntry(
        url="https://cdn.test/a.jpg",
        freshness_token="tok",
        payload=MediaPayload(b"\x89PNG", "image/png"),
        stored_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
    )
    await store.transactional_write(MEDIA_CACHE, {entry.url: entry})

    loaded = await store.read(MEDIA_CACHE, entry.url)
    assert loaded == entry
    assert loaded.stored_at == entry.stored_at

    stats = await store.stats()
    assert stats["media_entries"] == 1
    assert stats["media_bytes"] == 4

    assert await store.clear(MEDIA_CACHE) == 1
    assert await store.read(MEDIA_CACHE, entry.url) is None


@pytest.mark.asyncio
async def test_read_many_handles_large_key_sets(store):
    entries = {f"k{i}": i for i in range(1500)}
    await store.transactional_write(CATALOG, entries)
    assert await store.read_many(CATALOG, list(entries)) == entries


@pytest.mark.asyncio
async def test_closed_store_rejects_operations(store):
    store.close()
    with pytest.raises(StoreUnavailable):
        await store.read(CATALOG, "a")
    with pytest.raises(WriteFailed):
        await store.transactional_write(CATALOG, {"a": 1})
    assert await store.stats() is None


@pytest.mark.asyncio
async def test_unknown_collection(store):
    with pytest.raises(ValueError):
        await store.transactional_write("other", {"a": 1})


@pytest.mark.asyncio
async def test_vacuum(store):
    await store.transactional_write(CATALOG, {"a": 1})
    assert await store.vacuum() is True
