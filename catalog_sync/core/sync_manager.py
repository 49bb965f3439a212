"""
Incremental media synchronization: a bounded pool of workers checks each media
URL against its remote freshness marker and downloads only what changed.
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from catalog_sync.api.protocols import MediaSource
from catalog_sync.exceptions import MediaDownloadFailed, MediaProbeFailed
from catalog_sync.models.catalog import FeatureRecord, Product
from catalog_sync.models.config import DEFAULT_CONCURRENCY
from catalog_sync.models.stats import JobOutcome, SyncProgress, SyncResult
from catalog_sync.storage.media_cache import MediaFreshnessTracker
from catalog_sync.utils.formatting import format_duration, format_size
from catalog_sync.utils.urls import get_feature_media_url, get_image_url, is_remote_url

from .progress import ProgressChannel, ProgressSink

log = logging.getLogger(__name__)

MAX_CONCURRENCY = 32

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_freshness_token(token: str | None) -> datetime:
    """
    Parses an HTTP date (Last-Modified) or ISO-8601 timestamp. Anything
    unparsable counts as the epoch.
    """
    if not token:
        return _EPOCH
    try:
        parsed = parsedate_to_datetime(token)
    except (TypeError, ValueError):
        try:
            parsed = datetime.fromisoformat(token.strip().replace("Z", "+00:00"))
        except ValueError:
            return _EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def should_download(local_token: str | None, remote_token: str | None) -> bool:
    """
    Download when nothing is cached, or when the remote marker is known and
    strictly newer than the cached one.
    """
    if not local_token:
        return True
    if not remote_token:
        return False
    return parse_freshness_token(remote_token) > parse_freshness_token(local_token)


def get_unique_image_urls(products: Iterable[Product], cdn_base: str = "") -> list[str]:
    """
    Returns the canonical and lower-cased image URL of every product, keeping
    only remote URLs, de-duplicated in first-seen order.
    """
    urls = []
    for product in products:
        if not product.image_filename:
            continue
        urls.append(get_image_url(product.image_filename, cdn_base))
        urls.append(get_image_url(product.image_filename, cdn_base, lowercase=True))
    return list(dict.fromkeys(u for u in urls if is_remote_url(u)))


def get_unique_feature_media_urls(
    features: Iterable[FeatureRecord], cdn_base: str = ""
) -> list[str]:
    urls = (get_feature_media_url(f.url, cdn_base) for f in features if f.url)
    return list(dict.fromkeys(u for u in urls if is_remote_url(u)))


class MediaSyncManager:
    """Synchronizes product and feature media into the local media cache."""

    def __init__(
        self,
        tracker: MediaFreshnessTracker,
        media_source: MediaSource,
        concurrency: int = DEFAULT_CONCURRENCY,
        cdn_base: str = "",
        progress_buffer: int = 0,
    ):
        if not 1 <= concurrency <= MAX_CONCURRENCY:
            raise ValueError(f"Concurrency must be between 1 and {MAX_CONCURRENCY}.")
        self.tracker = tracker
        self.media_source = media_source
        self.concurrency = concurrency
        self.cdn_base = cdn_base
        self.progress_buffer = progress_buffer

    def collect_media_urls(
        self,
        products: Iterable[Product],
        features: Iterable[FeatureRecord] | None = None,
    ) -> list[str]:
        """All distinct media URLs referenced by the given catalog records."""
        urls = get_unique_image_urls(products, self.cdn_base)
        if features:
            urls += get_unique_feature_media_urls(features, self.cdn_base)
        return list(dict.fromkeys(urls))

    async def sync_media(
        self,
        products: Iterable[Product],
        features: Iterable[FeatureRecord] | None = None,
        on_progress: ProgressSink | None = None,
    ) -> SyncResult:
        """
        Brings every referenced media URL up to date.

        A progress event is published after each finished URL; the last one
        reports `current == total`. Per-URL failures are counted in the result
        and never abort the run. Cancelling the calling task stops all workers;
        every stored entry is complete, so the next run resumes where this one
        stopped.
        """
        urls = self.collect_media_urls(products, features)
        result = SyncResult(total=len(urls))

        async with ProgressChannel(on_progress, self.progress_buffer) as channel:
            if not urls:
                channel.publish(SyncProgress(0, 0, "Nothing to sync"))
                result.finish()
                return result

            queue: asyncio.Queue[str] = asyncio.Queue()
            for url in urls:
                queue.put_nowait(url)

            worker_count = min(self.concurrency, len(urls))
            log.debug(f"Syncing {len(urls)} media URLs with {worker_count} workers.")
            workers = [
                asyncio.create_task(self._worker(queue, result, channel))
                for _ in range(worker_count)
            ]
            try:
                await asyncio.gather(*workers)
            finally:
                for worker in workers:
                    if not worker.done():
                        worker.cancel()

        result.finish()
        log.info(
            f"Media sync finished in {format_duration(result.duration_s)}: "
            f"{result.downloaded} downloaded ({format_size(result.bytes_downloaded)}),"
            f" {result.up_to_date} up to date, {result.skipped} skipped,"
            f" {result.failed} failed."
        )
        return result

    async def _worker(
        self,
        queue: asyncio.Queue[str],
        result: SyncResult,
        channel: ProgressChannel,
    ) -> None:
        while True:
            try:
                url = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            outcome, size = await self._sync_one(url)
            result.record(url, outcome, size)

            current = result.completed
            if current >= result.total:
                message = "Done"
            else:
                message = f"Syncing media {current}/{result.total}"
            channel.publish(SyncProgress(current, result.total, message))

    async def _sync_one(self, url: str) -> tuple[JobOutcome, int]:
        """Probe, decide, download and record a single URL."""
        try:
            local_token = await self.tracker.get_freshness_token(url)

            try:
                remote_token = await self.media_source.probe_freshness(url)
            except MediaProbeFailed as e:
                if local_token:
                    log.debug(f"Probe failed for '{url}', keeping cached copy: {e}")
                    return JobOutcome.UP_TO_DATE, 0
                log.debug(f"Probe failed for '{url}', retrying next sync: {e}")
                return JobOutcome.SKIPPED, 0

            if not should_download(local_token, remote_token):
                log.debug(f"Up to date: {url}")
                return JobOutcome.UP_TO_DATE, 0

            try:
                media = await self.media_source.download_payload(url)
            except MediaDownloadFailed as e:
                log.debug(f"Download failed for '{url}', retrying next sync: {e}")
                return JobOutcome.SKIPPED, 0

            token = media.token or datetime.now(timezone.utc).isoformat()
            payload = media.payload
            if not await self.tracker.record_download(url, token, payload):
                return JobOutcome.SKIPPED, 0

            log.debug(f"Downloaded {format_size(payload.size)}: {url}")
            return JobOutcome.DOWNLOADED, payload.size
        except Exception as e:
            log.warning(f"[yellow]Unexpected error syncing '{url}': {e}[/yellow]")
            return JobOutcome.FAILED, 0
