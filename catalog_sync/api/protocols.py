"""
Interfaces of the remote collaborators the sync engine consumes.

The engine only depends on these protocols; `SheetsClient` and `MediaClient`
are the default implementations.
"""

from typing import Protocol

from catalog_sync.models.config import SheetSource
from catalog_sync.models.media import DownloadedMedia


class CatalogSource(Protocol):
    """Remote tabular catalog data."""

    async def fetch_remote_version(self, source: SheetSource) -> str:
        """
        Returns the current remote version token.

        Raises:
            RemoteFetchFailed: On network or parse errors.
        """
        ...

    async def fetch_tabular_rows(
        self, source: SheetSource, gid: str, start_row: int = 0
    ) -> list[list[str]]:
        """
        Returns the rows of one tab as lists of cell strings, skipping rows
        before `start_row`.

        Raises:
            RemoteFetchFailed: On network or parse errors.
        """
        ...


class MediaSource(Protocol):
    """Remote media object store."""

    async def probe_freshness(self, url: str) -> str | None:
        """
        Returns the remote freshness token (e.g. Last-Modified) or None when the
        remote does not provide one.

        Raises:
            MediaProbeFailed: When the probe itself fails.
        """
        ...

    async def download_payload(self, url: str) -> DownloadedMedia:
        """
        Fetches the full payload.

        Raises:
            MediaDownloadFailed: On a non-2xx response or a network error.
        """
        ...
