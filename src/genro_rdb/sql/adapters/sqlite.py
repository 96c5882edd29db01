# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite adapter on aiosqlite.

Every acquire() opens its own connection to the database file and
release() closes it, so an in-memory database lives only as long as one
SqlDb.connection() block. Rows are streamed from the open cursor; values
come back as stored and are decoded by SqliteDialect.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

import aiosqlite

from .base import StreamingAdapter

if TYPE_CHECKING:
    from ..request import SqlRequest


class SqliteAdapter(StreamingAdapter):
    """File-per-connection SQLite access with ``?`` placeholders.

    Args:
        db_path: Database file, or ``:memory:``.
        timeout: Seconds to wait on a locked database.
    """

    dialect_name = "sqlite"

    def __init__(self, db_path: str, timeout: float = 5.0):
        self.db_path = db_path or ":memory:"
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"SqliteAdapter({self.db_path!r})"

    async def acquire(self) -> aiosqlite.Connection:
        conn = await aiosqlite.connect(self.db_path, timeout=self.timeout)
        await conn.execute("PRAGMA foreign_keys = ON")
        return conn

    async def release(self, conn: aiosqlite.Connection) -> None:
        await conn.close()

    async def shutdown(self) -> None:
        """Nothing to close: connections do not outlive release()."""

    async def commit(self, conn: aiosqlite.Connection) -> None:
        await conn.commit()

    async def rollback(self, conn: aiosqlite.Connection) -> None:
        await conn.rollback()

    async def execute(self, conn: aiosqlite.Connection, request: SqlRequest) -> int:
        """Run a statement; the affected row count, -1 for DDL."""
        async with conn.execute(request.sql, request.values) as cursor:
            return cursor.rowcount

    async def stream(
        self, conn: aiosqlite.Connection, request: SqlRequest
    ) -> AsyncIterator[dict[str, Any]]:
        """Run a query and yield one dict per row, keyed by result column name."""
        async with conn.execute(request.sql, request.values) as cursor:
            names = [d[0] for d in cursor.description or ()]
            async for row in cursor:
                yield dict(zip(names, row, strict=True))
