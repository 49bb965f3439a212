"""Shared fixtures: a throwaway store and in-process fake remotes."""

import asyncio

import pytest

from catalog_sync.exceptions import (
    MediaDownloadFailed,
    MediaProbeFailed,
    RemoteFetchFailed,
)
from catalog_sync.models.catalog import Product
from catalog_sync.models.config import SheetSource
from catalog_sync.models.media import DownloadedMedia
from catalog_sync.storage.catalog_cache import CatalogCache
from catalog_sync.storage.media_cache import MediaFreshnessTracker
from catalog_sync.storage.store import PersistentStore

CDN = "https://cdn.test"
OLD_TOKEN = "Wed, 01 Jan 2025 00:00:00 GMT"
NEW_TOKEN = "Sat, 01 Feb 2025 00:00:00 GMT"


class FakeCatalogSource:
    def __init__(self, version="1", rows=None, feature_rows=None):
        self.version = version
        self.rows = rows or []
        self.feature_rows = feature_rows or []
        self.fail_version = False
        self.fail_gids: set[str] = set()
        self.version_calls = 0
        self.row_calls: list[str] = []

    async def fetch_remote_version(self, source):
        self.version_calls += 1
        if self.fail_version:
            raise RemoteFetchFailed("sheet unreachable")
        return self.version

    async def fetch_tabular_rows(self, source, gid, start_row=0):
        self.row_calls.append(gid)
        if gid in self.fail_gids:
            raise RemoteFetchFailed(f"tab {gid} unreachable")
        rows = self.feature_rows if gid == source.features_gid else self.rows
        return [list(r) for r in rows[start_row:]]


class FakeMediaSource:
    def __init__(self, token=OLD_TOKEN, delay=0.0):
        self.token = token
        self.tokens: dict[str, str | None] = {}
        self.delay = delay
        self.probe_failures: set[str] = set()
        self.download_failures: set[str] = set()
        self.broken: set[str] = set()
        self.probes: list[str] = []
        self.downloads: list[str] = []
        self.active = 0
        self.peak = 0

    def token_for(self, url):
        return self.tokens.get(url, self.token)

    async def probe_freshness(self, url):
        self.probes.append(url)
        if url in self.broken:
            raise RuntimeError("boom")
        if url in self.probe_failures:
            raise MediaProbeFailed(f"HEAD {url} failed")
        return self.token_for(url)

    async def download_payload(self, url):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(self.delay)
            if url in self.download_failures:
                raise MediaDownloadFailed(f"GET {url} returned 503")
            self.downloads.append(url)
            return DownloadedMedia(
                content=f"payload:{url}".encode(),
                content_type="image/jpeg",
                token=self.token_for(url),
            )
        finally:
            self.active -= 1


def make_products(count, category="sv"):
    return [
        Product(id=f"{category}.Brand.M{i}", image_filename=f"{category}.Brand.M{i} (1).jpg")
        for i in range(count)
    ]


@pytest.fixture
def store(tmp_path):
    store = PersistentStore.open(tmp_path / "catalog.sqlite")
    yield store
    store.close()


@pytest.fixture
def cache(store):
    return CatalogCache(store)


@pytest.fixture
def tracker(store):
    return MediaFreshnessTracker(store)


@pytest.fixture
def sheet_source():
    return SheetSource(sheet_id="sheet123", items_gid="10", db_gid="20", features_gid="30")


@pytest.fixture
def catalog_source():
    return FakeCatalogSource()


@pytest.fixture
def media_source():
    return FakeMediaSource()


@pytest.fixture
def products_factory():
    return make_products
