"""
Resolves media URLs to something displayable: a local file holding the cached
payload when there is one, otherwise the remote URL itself.
"""

import logging
import mimetypes
import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

import aiofiles

from catalog_sync.models.media import MediaPayload
from catalog_sync.storage.media_cache import MediaFreshnessTracker
from catalog_sync.utils.urls import is_remote_url

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DisplayResult:
    display_url: str | None
    is_ready: bool
    is_local: bool = False


class LocalHandle:
    """A temporary file exposing one cached payload. Release is idempotent."""

    def __init__(self, path: Path, source_url: str, resolver: "DisplayResolver"):
        self.path = path
        self.source_url = source_url
        self._resolver = resolver
        self._released = False

    @property
    def uri(self) -> str:
        return self.path.as_uri()

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.path.unlink(missing_ok=True)
        self._resolver._forget(self)
        log.debug(f"Released local handle for '{self.source_url}'.")

    def __repr__(self) -> str:
        state = "released" if self._released else "live"
        return f"<LocalHandle {self.path.name} ({state})>"


def _suffix_for(url: str, content_type: str) -> str:
    suffix = PurePosixPath(unquote(urlparse(url).path)).suffix
    if suffix:
        return suffix.lower()
    return mimetypes.guess_extension(content_type.split(";")[0].strip()) or ""


class DisplayResolver:
    """
    Hands out display URLs for media, preferring the local cache.

    Cached payloads are written to files in a process-scoped temporary
    directory; every file is owned by a `LocalHandle` that must be released.
    """

    def __init__(self, tracker: MediaFreshnessTracker, handle_dir: Path | None = None):
        self.tracker = tracker
        self._handle_dir = handle_dir
        self._owns_dir = handle_dir is None
        self._handles: set[LocalHandle] = set()

    @property
    def active_handles(self) -> int:
        return len(self._handles)

    def _get_handle_dir(self) -> Path:
        if self._handle_dir is None:
            self._handle_dir = Path(tempfile.mkdtemp(prefix="catalog-sync-"))
        self._handle_dir.mkdir(parents=True, exist_ok=True)
        return self._handle_dir

    def _forget(self, handle: LocalHandle) -> None:
        self._handles.discard(handle)

    async def _create_handle(self, url: str, payload: MediaPayload) -> LocalHandle:
        name = f"{uuid.uuid4().hex}{_suffix_for(url, payload.content_type)}"
        path = self._get_handle_dir() / name
        try:
            async with aiofiles.open(path, "wb") as f:
                await f.write(payload.content)
        except BaseException:
            # No handle owns the file yet.
            path.unlink(missing_ok=True)
            raise
        handle = LocalHandle(path, url, self)
        self._handles.add(handle)
        return handle

    async def resolve_display_url(
        self, url: str | None
    ) -> tuple[DisplayResult, LocalHandle | None]:
        """
        Returns the URL to display for `url` and the local handle backing it,
        if any. Never waits for a sync; uncached media resolve to the remote URL.
        """
        if not url:
            return DisplayResult(None, True), None
        if not is_remote_url(url):
            return DisplayResult(url, True), None

        entry = await self.tracker.get_entry(url)
        if entry is None or entry.payload is None:
            return DisplayResult(url, True), None

        try:
            handle = await self._create_handle(url, entry.payload)
        except OSError as e:
            log.debug(f"Could not expose cached media for '{url}': {e}")
            return DisplayResult(url, True), None
        return DisplayResult(handle.uri, True, is_local=True), handle

    def slot(self) -> "DisplaySlot":
        return DisplaySlot(self)

    def close(self) -> None:
        """Releases every outstanding handle and removes the temporary directory."""
        for handle in list(self._handles):
            handle.release()
        if self._owns_dir and self._handle_dir is not None:
            shutil.rmtree(self._handle_dir, ignore_errors=True)
            self._handle_dir = None


class DisplaySlot:
    """
    One display position (e.g. an image element) that shows a single URL at a
    time. Requesting a new URL releases the previous handle once the new one
    has been resolved.
    """

    def __init__(self, resolver: DisplayResolver):
        self._resolver = resolver
        self._handle: LocalHandle | None = None
        self._generation = 0
        self._closed = False
        self.current: DisplayResult | None = None

    def _release_current(self) -> None:
        if self._handle is not None:
            self._handle.release()
            self._handle = None

    async def request(self, url: str | None) -> DisplayResult:
        """
        Resolves `url` for this slot. A request overtaken by a newer one on the
        same slot releases its own handle and returns a not-ready result.
        """
        if self._closed:
            raise RuntimeError("Display slot is closed.")
        self._generation += 1
        generation = self._generation

        if not url:
            self._release_current()
            self.current = DisplayResult(None, True)
            return self.current

        result, handle = await self._resolver.resolve_display_url(url)
        if generation != self._generation or self._closed:
            if handle is not None:
                handle.release()
            return DisplayResult(None, False)

        self._release_current()
        self._handle = handle
        self.current = result
        return result

    def close(self) -> None:
        self._closed = True
        self._generation += 1
        self._release_current()
        self.current = None

    async def __aenter__(self) -> "DisplaySlot":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
