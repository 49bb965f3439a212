"""
Manages the SQLite database that holds the two local collections: the catalog
snapshot and the media cache.
"""

import asyncio
import json
import logging
import sqlite3
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from catalog_sync.exceptions import StoreUnavailable, WriteFailed
from catalog_sync.models.media import MediaCacheEntry, MediaPayload

log = logging.getLogger(__name__)

CATALOG = "catalog"
MEDIA_CACHE = "media-cache"

_TABLES = {CATALOG: "catalog", MEDIA_CACHE: "media_cache"}

SCHEMA_VERSION = 1

# Each step upgrades the database from version N-1 to N.
_MIGRATIONS: dict[int, tuple[str, ...]] = {
    1: (
        """
        CREATE TABLE IF NOT EXISTS catalog (
            key TEXT PRIMARY KEY NOT NULL,
            value TEXT NOT NULL,
            updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """,
        """
        CREATE TABLE IF NOT EXISTS media_cache (
            url TEXT PRIMARY KEY NOT NULL,
            freshness_token TEXT NOT NULL,
            content_type TEXT,
            payload BLOB,
            stored_at TEXT
        );
        """,
    ),
}

# SQLite's default limit on variables in a query prior to 3.32.0
_BATCH_SIZE = 999


def _table_for(collection: str) -> str:
    try:
        return _TABLES[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection!r}") from None


class PersistentStore:
    """
    A durable, transactional key-value store with exactly two collections.

    Blocking SQLite calls run in worker threads, bounded by a connection
    semaphore. The store is opened once with `PersistentStore.open()` and
    closed explicitly with `close()`; every component receives the handle.
    """

    def __init__(self, db_path: Path, pool_size: int = 5):
        self.db_path = Path(db_path)
        self._pool_size = pool_size
        self._connection_semaphore = asyncio.Semaphore(pool_size)
        self._closed = True

    @classmethod
    def open(cls, db_path: Path, pool_size: int = 5) -> "PersistentStore":
        """
        Opens (creating if needed) the store at `db_path`.

        Schema creation and migrations only run for the steps that are missing,
        so opening an existing store is idempotent.

        Raises:
            StoreUnavailable: If the database file cannot be created or opened.
        """
        store = cls(db_path, pool_size)
        store._initialize_db()
        store._closed = False
        log.debug(f"Opened catalog store at '{store.db_path}'.")
        return store

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Marks the store closed; later operations raise StoreUnavailable."""
        if not self._closed:
            self._closed = True
            log.debug("Catalog store closed.")

    def __enter__(self) -> "PersistentStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA temp_store=MEMORY;")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Yields a fresh connection and always closes it afterwards."""
        if self._closed:
            raise StoreUnavailable("The catalog store is closed.")
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Failed to connect to catalog store: {e}") from e
        try:
            yield conn
        finally:
            conn.close()

    def _initialize_db(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._connect()
        except (OSError, sqlite3.Error) as e:
            raise StoreUnavailable(
                f"Cannot open catalog store at '{self.db_path}': {e}"
            ) from e
        try:
            current = conn.execute("PRAGMA user_version;").fetchone()[0]
            if current > SCHEMA_VERSION:
                # Written by a newer release; only known columns are ever selected.
                log.debug(
                    f"Catalog store schema v{current} is newer than v{SCHEMA_VERSION}."
                )
                return
            for version in range(current + 1, SCHEMA_VERSION + 1):
                with conn:
                    for statement in _MIGRATIONS[version]:
                        conn.execute(statement)
                    conn.execute(f"PRAGMA user_version = {version};")
                log.debug(f"Catalog store migrated to schema v{version}.")
        except sqlite3.Error as e:
            raise StoreUnavailable(
                f"Failed to initialize catalog store at '{self.db_path}': {e}"
            ) from e
        finally:
            conn.close()

    async def _run_in_executor(self, func, *args):
        """Runs a synchronous database function within the connection pool semaphore."""
        async with self._connection_semaphore:
            return await asyncio.to_thread(func, *args)

    # Reads

    def _read_many_sync(self, collection: str, keys: list[str]) -> dict[str, Any]:
        table = _table_for(collection)
        key_column = "url" if collection == MEDIA_CACHE else "key"
        results: dict[str, Any] = {}
        if not keys:
            return results
        try:
            with self._connection() as conn:
                for i in range(0, len(keys), _BATCH_SIZE):
                    chunk = keys[i : i + _BATCH_SIZE]
                    placeholders = ",".join("?" * len(chunk))
                    if collection == MEDIA_CACHE:
                        query = (
                            "SELECT url, freshness_token, content_type, payload,"  # noqa: S608
                            f" stored_at FROM {table} WHERE {key_column} IN"
                            f" ({placeholders})"
                        )
                        for row in conn.execute(query, chunk):
                            results[row[0]] = _decode_media_row(row)
                    else:
                        query = (
                            f"SELECT key, value FROM {table} WHERE {key_column} IN"  # noqa: S608
                            f" ({placeholders})"
                        )
                        for key, value in conn.execute(query, chunk):
                            decoded = _decode_json_value(key, value)
                            if decoded is not None:
                                results[key] = decoded
            return results
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Read from '{collection}' failed: {e}") from e

    async def read(self, collection: str, key: str) -> Any | None:
        """Returns the value stored under `key`, or None when absent."""
        values = await self._run_in_executor(self._read_many_sync, collection, [key])
        return values.get(key)

    async def read_many(self, collection: str, keys: list[str]) -> dict[str, Any]:
        """
        Reads several keys in a single statement, so all returned values come
        from the same committed state. Absent keys are left out of the result.
        """
        return await self._run_in_executor(self._read_many_sync, collection, keys)

    def _read_tokens_sync(self, urls: list[str]) -> dict[str, str]:
        tokens: dict[str, str] = {}
        try:
            with self._connection() as conn:
                for i in range(0, len(urls), _BATCH_SIZE):
                    chunk = urls[i : i + _BATCH_SIZE]
                    placeholders = ",".join("?" * len(chunk))
                    query = (
                        "SELECT url, freshness_token FROM media_cache"  # noqa: S608
                        f" WHERE url IN ({placeholders})"
                    )
                    for url, token in conn.execute(query, chunk):
                        if token:
                            tokens[url] = token
            return tokens
        except sqlite3.Error as e:
            raise StoreUnavailable(f"Read from '{MEDIA_CACHE}' failed: {e}") from e

    async def read_tokens(self, urls: list[str]) -> dict[str, str]:
        """
        Returns the freshness tokens stored for `urls` without loading their
        payloads. URLs with no entry or an empty token are left out.
        """
        if not urls:
            return {}
        return await self._run_in_executor(self._read_tokens_sync, urls)

    # Writes

    def _write_sync(self, collection: str, entries: Mapping[str, Any]) -> None:
        table = _table_for(collection)
        try:
            with self._connection() as conn, conn:
                for key, value in entries.items():
                    if collection == MEDIA_CACHE:
                        if value is None:
                            conn.execute(f"DELETE FROM {table} WHERE url = ?", (key,))  # noqa: S608
                        else:
                            conn.execute(
                                f"INSERT OR REPLACE INTO {table} "  # noqa: S608
                                "(url, freshness_token, content_type, payload, stored_at)"
                                " VALUES (?, ?, ?, ?, ?)",
                                _encode_media_row(key, value),
                            )
                    elif value is None:
                        conn.execute(f"DELETE FROM {table} WHERE key = ?", (key,))  # noqa: S608
                    else:
                        conn.execute(
                            f"INSERT OR REPLACE INTO {table} (key, value, updated_at)"  # noqa: S608
                            " VALUES (?, ?, CURRENT_TIMESTAMP)",
                            (key, json.dumps(value)),
                        )
        except StoreUnavailable as e:
            raise WriteFailed(str(e)) from e
        except (sqlite3.Error, TypeError, ValueError) as e:
            raise WriteFailed(f"Write to '{collection}' failed: {e}") from e

    async def transactional_write(
        self, collection: str, entries: Mapping[str, Any]
    ) -> None:
        """
        Writes all `entries` in one transaction. A value of None deletes that key
        as part of the same transaction.

        Raises:
            WriteFailed: On any storage error; prior state is left intact.
        """
        _table_for(collection)
        if not entries:
            return
        await self._run_in_executor(self._write_sync, collection, dict(entries))

    # Maintenance

    def _clear_sync(self, collection: str) -> int:
        table = _table_for(collection)
        try:
            with self._connection() as conn, conn:
                cursor = conn.execute(f"DELETE FROM {table}")  # noqa: S608
                return cursor.rowcount
        except StoreUnavailable as e:
            raise WriteFailed(str(e)) from e
        except sqlite3.Error as e:
            raise WriteFailed(f"Clearing '{collection}' failed: {e}") from e

    async def clear(self, collection: str) -> int:
        """Removes every entry of a collection. Returns the number removed."""
        removed = await self._run_in_executor(self._clear_sync, collection)
        log.info(f"Cleared {removed} entries from '{collection}'.")
        return removed

    def _get_stats_sync(self) -> dict[str, Any] | None:
        try:
            with self._connection() as conn:
                catalog_keys = conn.execute("SELECT COUNT(*) FROM catalog").fetchone()[0]
                media_entries, media_bytes = conn.execute(
                    "SELECT COUNT(*), COALESCE(SUM(LENGTH(payload)), 0)"
                    " FROM media_cache"
                ).fetchone()
                return {
                    "catalog_keys": catalog_keys,
                    "media_entries": media_entries,
                    "media_bytes": media_bytes,
                }
        except (sqlite3.Error, StoreUnavailable) as e:
            log.error(f"Failed to get catalog store stats: {e}")
            return None

    async def stats(self) -> dict[str, Any] | None:
        """Returns entry counts and the total cached payload size."""
        return await self._run_in_executor(self._get_stats_sync)

    def _vacuum_sync(self) -> bool:
        try:
            with self._connection() as conn:
                conn.execute("VACUUM;")
                conn.execute("ANALYZE;")
            log.info("Catalog store optimized successfully.")
            return True
        except (sqlite3.Error, StoreUnavailable) as e:
            log.error(f"Catalog store vacuum failed: {e}")
            return False

    async def vacuum(self) -> bool:
        """Rebuilds the database file to reclaim space left by replaced payloads."""
        return await self._run_in_executor(self._vacuum_sync)


def _decode_json_value(key: str, value: str) -> Any | None:
    try:
        return json.loads(value)
    except (TypeError, json.JSONDecodeError) as e:
        log.debug(f"Ignoring undecodable catalog value for '{key}': {e}")
        return None


def _encode_media_row(url: str, entry: MediaCacheEntry) -> tuple:
    stored_at = entry.stored_at or datetime.now(timezone.utc)
    payload = entry.payload
    return (
        url,
        entry.freshness_token,
        payload.content_type if payload else None,
        sqlite3.Binary(payload.content) if payload else None,
        stored_at.isoformat(),
    )


def _decode_media_row(row: tuple) -> MediaCacheEntry:
    url, token, content_type, content, stored_at = row
    payload = None
    if content is not None:
        payload = MediaPayload(
            bytes(content), content_type or "application/octet-stream"
        )
    try:
        stored = datetime.fromisoformat(stored_at) if stored_at else None
    except ValueError:
        stored = None
    return MediaCacheEntry(
        url=url, freshness_token=token or "", payload=payload, stored_at=stored
    )
