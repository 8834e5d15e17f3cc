"""
SQLite Store - durable record storage on aiosqlite

One row per key; an upsert replaces the full record atomically and keeps
the original row position, so get_all() returns records in insertion order.
WAL mode lets readers continue while a write is committed.
"""

import sqlite3
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiosqlite

from ..errors import StoreError
from .base import Store

logger = logging.getLogger(__name__)


class SQLiteStore(Store):
    """
    Durable store backed by a SQLite database file.

    Usage:
        async with SQLiteStore(Path("records.sqlite")) as store:
            await store.set(sample.cid, sample.to_dict())
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        prefix: str = "",
        enable_wal: bool = True,
        table: str = "records",
    ):
        """
        Args:
            db_path: Path to SQLite database file (":memory:" for a private db)
            prefix: Optional key namespace
            enable_wal: Enable WAL mode (default: True)
            table: Table name
        """
        super().__init__(prefix)
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self.table = table
        self._enable_wal = enable_wal
        self._conn: Optional[aiosqlite.Connection] = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._conn is None:
            try:
                if isinstance(self.db_path, Path):
                    self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = await aiosqlite.connect(self.db_path, timeout=30.0)
            except (sqlite3.Error, OSError) as e:
                raise StoreError(f"Cannot open store at {self.db_path}: {e}") from e
            try:
                await self._init_db(conn)
            except sqlite3.Error as e:
                await conn.close()
                raise StoreError(f"Cannot open store at {self.db_path}: {e}") from e
            self._conn = conn
        return self._conn

    async def _init_db(self, conn: aiosqlite.Connection) -> None:
        """Initialize schema."""
        if self._enable_wal and self.db_path != ":memory:":
            await conn.execute("PRAGMA journal_mode=WAL")

        await conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP
            )
        """)
        await conn.commit()

    async def get(self, key: str) -> Optional[Dict[str, Any]]:
        key = self._make_key(key)
        conn = await self._get_connection()
        try:
            async with conn.execute(
                f"SELECT value FROM {self.table} WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read '{key}': {e}") from e
        return None if row is None else self._loads(key, row[0])

    async def set(self, key: str, value: Dict[str, Any]) -> None:
        key = self._make_key(key)
        raw = self._dumps(value)
        conn = await self._get_connection()
        try:
            await conn.execute(
                f"INSERT INTO {self.table} (key, value, updated_at) VALUES (?, ?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
                (key, raw, datetime.now().isoformat()),
            )
            await conn.commit()
        except sqlite3.Error as e:
            await conn.rollback()
            raise StoreError(f"Failed to write '{key}': {e}") from e

    async def remove(self, key: str) -> None:
        key = self._make_key(key)
        conn = await self._get_connection()
        try:
            await conn.execute(f"DELETE FROM {self.table} WHERE key = ?", (key,))
            await conn.commit()
        except sqlite3.Error as e:
            await conn.rollback()
            raise StoreError(f"Failed to remove '{key}': {e}") from e

    async def has(self, key: str) -> bool:
        key = self._make_key(key)
        conn = await self._get_connection()
        try:
            async with conn.execute(
                f"SELECT 1 FROM {self.table} WHERE key = ?", (key,)
            ) as cursor:
                return await cursor.fetchone() is not None
        except sqlite3.Error as e:
            raise StoreError(f"Failed to check '{key}': {e}") from e

    async def get_all(self) -> Dict[str, Dict[str, Any]]:
        conn = await self._get_connection()
        try:
            async with conn.execute(
                f"SELECT key, value FROM {self.table} WHERE substr(key, 1, ?) = ? ORDER BY rowid",
                (len(self.prefix), self.prefix),
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StoreError(f"Failed to read records: {e}") from e
        return {self._strip_key(key): self._loads(key, raw) for key, raw in rows}

    async def clear(self) -> None:
        conn = await self._get_connection()
        try:
            await conn.execute(
                f"DELETE FROM {self.table} WHERE substr(key, 1, ?) = ?",
                (len(self.prefix), self.prefix),
            )
            await conn.commit()
        except sqlite3.Error as e:
            await conn.rollback()
            raise StoreError(f"Failed to clear records: {e}") from e
        logger.debug(f"Cleared store {self.db_path}")

    async def close(self) -> None:
        """Close connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None
