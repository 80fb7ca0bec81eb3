"""SQLite implementation of the record store."""

import asyncio
import json
import logging
import sqlite3
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import aiosqlite
from pydantic_core import to_json

from ..errors import StoreUnavailableError
from .base import COLLECTIONS, BaseRecordStore, Collection

logger = logging.getLogger(__name__)

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS collections (
    name TEXT PRIMARY KEY,
    updated_at TEXT NOT NULL,
    data TEXT NOT NULL
);
"""


class SQLiteRecordStore(BaseRecordStore):
    """Record store persisting each collection as one JSON row."""

    def __init__(
        self, db_path: str, db_timeout: float = 5, max_read_connections: int = 3
    ):
        """Initialize SQLite record store with database path."""
        self._db_path = db_path
        self._timeout = db_timeout
        self._read_semaphore = asyncio.Semaphore(max_read_connections)
        # Writes limited to 1 to prevent conflicts
        self._write_semaphore = asyncio.Semaphore(1)

    @asynccontextmanager
    async def _get_connection(self, is_write: bool = False):
        semaphore = self._write_semaphore if is_write else self._read_semaphore

        try:
            await asyncio.wait_for(semaphore.acquire(), self._timeout)
        except TimeoutError as e:
            logger.warning(
                f"Store too busy: timeout acquiring semaphore for {self._db_path} ({'write' if is_write else 'read'} operation)"
            )
            raise StoreUnavailableError(
                f"Timed out waiting for {self._db_path}"
            ) from e

        try:
            async with aiosqlite.connect(self._db_path, timeout=self._timeout) as db:
                yield db
        except (sqlite3.OperationalError, sqlite3.DatabaseError) as e:
            logger.warning(
                f"SQLite error for {self._db_path} ({'write' if is_write else 'read'} operation): {e}"
            )
            raise StoreUnavailableError(f"SQLite store error: {e}") from e
        finally:
            semaphore.release()

    async def initialize(self):
        """Create the collections table and empty rows for each collection."""
        now = datetime.now(UTC).isoformat()
        async with self._get_connection(is_write=True) as db:
            await db.executescript(CREATE_TABLES_SQL)
            await db.executemany(
                "INSERT OR IGNORE INTO collections (name, updated_at, data) VALUES (?, ?, ?)",
                [(name, now, "[]") for name in COLLECTIONS],
            )
            await db.commit()

    async def read_all(self, collection: Collection) -> list[Any]:
        """Read every item of a collection."""
        async with self._get_connection() as db:
            async with db.execute(
                "SELECT data FROM collections WHERE name = ?", (collection,)
            ) as cursor:
                row = await cursor.fetchone()

        if row is None:
            return []
        try:
            data = json.loads(row[0])
        except json.JSONDecodeError as e:
            raise StoreUnavailableError(
                f"Collection {collection!r} is not valid JSON: {e}"
            ) from e
        if not isinstance(data, list):
            raise StoreUnavailableError(f"Collection {collection!r} is not a list")
        return data

    async def write_all(self, collection: Collection, items: list[Any]) -> None:
        """Replace a collection."""
        payload = to_json(items).decode()
        async with self._get_connection(is_write=True) as db:
            await db.execute(
                """
                INSERT INTO collections (name, updated_at, data) VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET updated_at = excluded.updated_at, data = excluded.data
                """,
                (collection, datetime.now(UTC).isoformat(), payload),
            )
            await db.commit()


@asynccontextmanager
async def connect_to_sqlite_store(database_path: str = "diamond.db"):
    """Create and initialize a SQLite record store."""
    store = SQLiteRecordStore(database_path)
    await store.initialize()
    try:
        yield store
    finally:
        await store.close()
