import pytest

from catalog_sync.models.media import MediaCacheEntry, MediaPayload
from catalog_sync.storage.store import MEDIA_CACHE

URL = "https://cdn.test/a.jpg"


@pytest.mark.asyncio
async def test_unknown_url_has_no_token(tracker):
    assert await tracker.get_freshness_token(URL) is None
    assert await tracker.get_entry(URL) is None


@pytest.mark.asyncio
async def test_record_download_replaces_entry(tracker):
    assert await tracker.record_download(URL, "t1", MediaPayload(b"one", "image/jpeg"))
    assert await tracker.record_download(URL, "t2", MediaPayload(b"two", "image/png"))

    entry = await tracker.get_entry(URL)
    assert entry.freshness_token == "t2"
    assert entry.payload == MediaPayload(b"two", "image/png")
    assert entry.stored_at is not None
    assert await tracker.get_freshness_token(URL) == "t2"


@pytest.mark.asyncio
async def test_empty_token_counts_as_absent(tracker, store):
    entry = MediaCacheEntry(url=URL, freshness_token="", payload=None)
    await store.transactional_write(MEDIA_CACHE, {URL: entry})
    assert await tracker.get_freshness_token(URL) is None


@pytest.mark.asyncio
async def test_storage_errors_are_swallowed(tracker, store):
    store.close()
    assert await tracker.get_entry(URL) is None
    assert await tracker.get_freshness_token(URL) is None
    assert await tracker.record_download(URL, "t", MediaPayload(b"x")) is False
    assert await tracker.clear() is False


@pytest.mark.asyncio
async def test_clear(tracker):
    await tracker.record_download(URL, "t", MediaPayload(b"x"))
    assert await tracker.clear() is True
    assert await tracker.get_entry(URL) is None


@pytest.mark.asyncio
async def test_token_lookup_does_not_load_payload(tracker, store, monkeypatch):
    await tracker.record_download(URL, "tok", MediaPayload(b"\0" * (1 << 20), "video/mp4"))

    full_reads = []
    original = store._read_many_sync

    def spy(collection, keys):
        full_reads.append(collection)
        return original(collection, keys)

    monkeypatch.setattr(store, "_read_many_sync", spy)

    assert await tracker.get_freshness_token(URL) == "tok"
    assert full_reads == []
    assert await store.read_tokens([URL, "https://cdn.test/missing.jpg"]) == {URL: "tok"}
