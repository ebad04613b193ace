"""Base repository pattern for database operations."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import aiosqlite

from database.connection import get_db_pool

Row = Dict[str, Any]


def _as_dict(row: Optional[aiosqlite.Row]) -> Optional[Row]:
    return dict(row) if row is not None else None


class BaseRepository:
    """Base repository with common database operations.

    Every helper takes an optional ``conn``; when given, the statement runs
    on that connection (inside the caller's transaction) and nothing is
    committed here.
    """

    @staticmethod
    async def execute(
        query: str,
        params: Sequence[Any] = (),
        conn: Optional[aiosqlite.Connection] = None,
    ) -> Tuple[Optional[int], int]:
        """Execute a statement and return ``(lastrowid, rowcount)``."""
        if conn is not None:
            cursor = await conn.execute(query, params)
            return cursor.lastrowid, cursor.rowcount
        pool = get_db_pool()
        async with pool.connection() as own:
            cursor = await own.execute(query, params)
            await own.commit()
            return cursor.lastrowid, cursor.rowcount

    @staticmethod
    async def fetch_one(
        query: str,
        params: Sequence[Any] = (),
        conn: Optional[aiosqlite.Connection] = None,
    ) -> Optional[Row]:
        """Fetch a single row as a dict."""
        if conn is not None:
            cursor = await conn.execute(query, params)
            return _as_dict(await cursor.fetchone())
        pool = get_db_pool()
        async with pool.connection() as own:
            cursor = await own.execute(query, params)
            return _as_dict(await cursor.fetchone())

    @staticmethod
    async def fetch_all(
        query: str,
        params: Sequence[Any] = (),
        conn: Optional[aiosqlite.Connection] = None,
    ) -> List[Row]:
        """Fetch all rows as dicts."""
        if conn is not None:
            cursor = await conn.execute(query, params)
            return [dict(row) for row in await cursor.fetchall()]
        pool = get_db_pool()
        async with pool.connection() as own:
            cursor = await own.execute(query, params)
            return [dict(row) for row in await cursor.fetchall()]

    @staticmethod
    async def fetch_value(
        query: str,
        params: Sequence[Any] = (),
        conn: Optional[aiosqlite.Connection] = None,
    ) -> Optional[Any]:
        """Fetch a single value from a single row."""
        row = await BaseRepository.fetch_one(query, params, conn)
        return next(iter(row.values())) if row else None

    @staticmethod
    @asynccontextmanager
    async def immediate_transaction() -> AsyncIterator[aiosqlite.Connection]:
        """Open ``BEGIN IMMEDIATE`` and yield the connection.

        The write lock is taken before the first read, so a read-check-write
        sequence inside the block cannot interleave with another writer.
        Commits on success, rolls back on any exception.
        """
        pool = get_db_pool()
        async with pool.connection() as conn:
            await conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                await conn.rollback()
                raise
            else:
                await conn.commit()
