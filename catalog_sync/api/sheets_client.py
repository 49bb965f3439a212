"""
Async client for Google Sheets tabs published through the gviz JSON endpoint.
"""

import asyncio
import json
import logging
import re
from typing import Any

import aiohttp

from catalog_sync.exceptions import RemoteFetchFailed
from catalog_sync.models.config import SheetSource

log = logging.getLogger(__name__)

GVIZ_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq"

_GVIZ_JSONP_REGEX = re.compile(
    r"google\.visualization\.Query\.setResponse\(([\s\S]*)\);?\s*$"
)


def extract_gviz_table(text: str) -> dict[str, Any]:
    """
    Strips the JSONP wrapper from a gviz response and returns its `table`.

    Raises:
        RemoteFetchFailed: If the body is not a gviz response.
    """
    match = _GVIZ_JSONP_REGEX.search(text.strip())
    if not match:
        raise RemoteFetchFailed("Invalid gviz JSONP response.")
    try:
        data = json.loads(match.group(1).strip())
    except json.JSONDecodeError as e:
        raise RemoteFetchFailed(f"Malformed gviz JSON: {e}") from e
    table = data.get("table") if isinstance(data, dict) else None
    if not isinstance(table, dict):
        raise RemoteFetchFailed("Missing table in gviz response.")
    return table


def cell_value(cell: dict[str, Any] | None) -> str:
    """Returns a cell's value as a string; empty cells become ""."""
    if not cell or cell.get("v") is None:
        return ""
    value = cell["v"]
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def table_rows(table: dict[str, Any], start_row: int = 0) -> list[list[str]]:
    """Returns rows from `start_row` on as lists of cell strings."""
    rows = []
    for row in (table.get("rows") or [])[start_row:]:
        if not row or not row.get("c"):
            continue
        rows.append([cell_value(c) for c in row["c"]])
    return rows


class SheetsClient:
    """Fetches catalog tabs and the version cell from a published sheet."""

    def __init__(
        self,
        timeout: float = 30.0,
        session: aiohttp.ClientSession | None = None,
        url_template: str = GVIZ_URL,
    ):
        self.timeout = timeout
        self.url_template = url_template
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout, connect=15),
                headers={"Accept-Encoding": "gzip, deflate, br"},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self) -> "SheetsClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False

    async def _fetch_table(self, sheet_id: str, gid: str) -> dict[str, Any]:
        session = await self._get_session()
        params = {"tqx": "out:json", "gid": gid}
        try:
            async with session.get(
                self.url_template.format(sheet_id=sheet_id), params=params
            ) as r:
                if r.status == 404:
                    raise RemoteFetchFailed("Sheet not found (404).")
                if r.status >= 400:
                    raise RemoteFetchFailed(f"Sheet fetch failed: HTTP {r.status}")
                text = await r.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RemoteFetchFailed(f"Sheet fetch failed: {e}") from e
        log.debug(f"Fetched sheet tab gid={gid} ({len(text)} bytes).")
        return extract_gviz_table(text)

    async def fetch_remote_version(self, source: SheetSource) -> str:
        """Returns the version value from cell B1 of the db tab."""
        table = await self._fetch_table(source.sheet_id, source.db_gid)
        rows = table_rows(table)
        if not rows or len(rows[0]) < 2:
            return ""
        return rows[0][1].strip()

    async def fetch_tabular_rows(
        self, source: SheetSource, gid: str, start_row: int = 0
    ) -> list[list[str]]:
        table = await self._fetch_table(source.sheet_id, gid)
        return table_rows(table, start_row)
