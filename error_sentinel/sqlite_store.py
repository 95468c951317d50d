"""Durable error store backed by an SQLite file.

Schema: one ``errors`` table keyed by an auto-assigned id, the event stored as
JSON, plus an index on ``timestamp`` for oldest-first eviction and time-range
queries. Blocking sqlite calls run in a worker thread via ``asyncio.to_thread``;
an ``asyncio.Lock`` serializes operations so a capacity check, eviction, and
insert are never interleaved with another ``put`` on the same store.
"""

import asyncio
import json
import logging
import sqlite3

from error_sentinel.errors import StoreError
from error_sentinel.models import ErrorEvent
from error_sentinel.store import ErrorStore

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS errors (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp INTEGER NOT NULL,
    payload TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_errors_timestamp ON errors(timestamp);
"""


class SQLiteErrorStore(ErrorStore):
    """Capacity-bounded error store persisted to *db_path*."""

    def __init__(self, db_path: str = "sentinel.db", capacity: int = 1000):
        super().__init__(capacity)
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self) -> None:
        if self._conn is not None:
            return
        try:
            self._conn = await asyncio.to_thread(self._connect)
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to open error store {self.db_path}: {exc}") from exc
        logger.info("Opened error store at %s (capacity=%d)", self.db_path, self.capacity)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, check_same_thread=False)
        conn.executescript(SCHEMA)
        conn.commit()
        return conn

    async def _run(self, func, *args):
        async with self._lock:
            # close() may have run while this call waited for the lock
            conn = self._conn
            if conn is None:
                raise StoreError("Error store is not open")
            try:
                return await asyncio.to_thread(func, conn, *args)
            except sqlite3.Error as exc:
                raise StoreError(f"Error store operation failed: {exc}") from exc

    # ------------------------------------------------------------------
    # Store contract
    # ------------------------------------------------------------------

    async def put(self, event: ErrorEvent) -> None:
        await self._run(self._put, event)

    async def get_all(self) -> list[ErrorEvent]:
        return await self._run(self._select, "SELECT payload FROM errors ORDER BY id", ())

    async def get_errors_by_time_range(self, start: int, end: int) -> list[ErrorEvent]:
        return await self._run(
            self._select,
            "SELECT payload FROM errors WHERE timestamp BETWEEN ? AND ? "
            "ORDER BY timestamp, id",
            (start, end),
        )

    async def clear(self) -> None:
        await self._run(self._clear)

    async def count(self) -> int:
        return await self._run(self._count)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Closed error store at %s", self.db_path)

    # ------------------------------------------------------------------
    # Blocking helpers (run in a worker thread)
    # ------------------------------------------------------------------

    def _put(self, conn: sqlite3.Connection, event: ErrorEvent) -> None:
        count = self._count(conn)
        if count >= self.capacity:
            # Normally exactly one; more if capacity shrank since the last run
            excess = count - self.capacity + 1
            conn.execute(
                "DELETE FROM errors WHERE id IN "
                "(SELECT id FROM errors ORDER BY timestamp, id LIMIT ?)",
                (excess,),
            )
            logger.debug("Evicted %d oldest error(s) from %s", excess, self.db_path)
        conn.execute(
            "INSERT INTO errors (timestamp, payload) VALUES (?, ?)",
            (event.timestamp, json.dumps(event.to_dict())),
        )
        conn.commit()

    @staticmethod
    def _select(conn: sqlite3.Connection, query: str, params: tuple) -> list[ErrorEvent]:
        rows = conn.execute(query, params).fetchall()
        return [ErrorEvent.from_dict(json.loads(row[0])) for row in rows]

    @staticmethod
    def _clear(conn: sqlite3.Connection) -> None:
        conn.execute("DELETE FROM errors")
        conn.commit()

    @staticmethod
    def _count(conn: sqlite3.Connection) -> int:
        return conn.execute("SELECT COUNT(*) FROM errors").fetchone()[0]
