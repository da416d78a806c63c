from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import aiosqlite

LOGGER = logging.getLogger(__name__)

SQLITE_PREFIX = "sqlite:///"


def parse_sqlite_path(url: str) -> str:
    if not url.startswith(SQLITE_PREFIX):
        raise ValueError("Unsupported storage URL. Use sqlite:///path/to/file.db")
    return url.replace(SQLITE_PREFIX, "", 1)


class Database:
    """Async SQLite handle backing the durable key-value slots."""

    def __init__(self, url: str) -> None:
        self._path = parse_sqlite_path(url)
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def connect(self) -> None:
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode = WAL;")
        await self._conn.commit()
        LOGGER.info("Connected to SQLite: %s", self._path)

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None

    async def execute(self, query: str, params: Sequence[Any] | None = None) -> None:
        assert self._conn is not None
        async with self._lock:
            await self._conn.execute(query, tuple(params or []))
            await self._conn.commit()

    async def fetchone(self, query: str, params: Sequence[Any] | None = None) -> dict[str, Any] | None:
        assert self._conn is not None
        async with self._lock:
            cursor = await self._conn.execute(query, tuple(params or []))
            row = await cursor.fetchone()
        if row is None:
            return None
        return dict(row)

    async def fetchall(self, query: str, params: Sequence[Any] | None = None) -> list[dict[str, Any]]:
        assert self._conn is not None
        async with self._lock:
            cursor = await self._conn.execute(query, tuple(params or []))
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    async def executescript(self, sql_script: str) -> None:
        assert self._conn is not None
        async with self._lock:
            await self._conn.executescript(sql_script)
            await self._conn.commit()
