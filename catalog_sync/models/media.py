"""
Data structures for cached media payloads.
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class MediaPayload:
    """Opaque binary content of a media file and its declared content type."""

    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class MediaCacheEntry:
    """
    One cached media file, keyed by its remote URL.

    `freshness_token` is always the token observed when `payload` was downloaded;
    entries are replaced wholesale and never merged.
    """

    url: str
    freshness_token: str
    payload: MediaPayload | None
    stored_at: datetime | None = field(default=None, compare=False)


@dataclass(frozen=True)
class DownloadedMedia:
    """Result of a full remote fetch: the payload and the remote freshness token."""

    content: bytes
    content_type: str
    token: str | None = None

    @property
    def payload(self) -> MediaPayload:
        return MediaPayload(self.content, self.content_type)
