# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base adapter classes for async database drivers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..request import SqlRequest


class DbAdapter(ABC):
    """Abstract base class for async database adapters.

    An adapter is the driver collaborator: it owns connections and runs the
    SQL text of a SqlRequest with its positional parameters. It knows nothing
    about metadata.

    Connection model:
    - acquire(): Returns a new connection (from pool or new file handle)
    - release(conn): Returns connection to pool or closes it
    - shutdown(): Closes connection pool (application shutdown only)

    Subclasses derive from StreamingAdapter or BlockingAdapter, depending on
    the row retrieval mode the driver supports natively, and set
    dialect_name so the matching Dialect can be chosen.
    """

    dialect_name: str = "generic"

    @abstractmethod
    async def acquire(self) -> Any:
        """Acquire a new connection.

        For pooled adapters: gets connection from pool.
        For file-based adapters: opens new connection.
        """
        ...

    @abstractmethod
    async def release(self, conn: Any) -> None:
        """Release a connection (return to pool or close)."""
        ...

    @abstractmethod
    async def shutdown(self) -> None:
        """Close connection pool (application shutdown)."""
        ...

    @abstractmethod
    async def commit(self, conn: Any) -> None:
        """Commit transaction on connection."""
        ...

    @abstractmethod
    async def rollback(self, conn: Any) -> None:
        """Rollback transaction on connection."""
        ...

    @abstractmethod
    async def execute(self, conn: Any, request: SqlRequest) -> int:
        """Execute a statement on connection, return affected row count."""
        ...


class StreamingAdapter(DbAdapter):
    """Adapter whose driver yields rows from an open cursor."""

    @abstractmethod
    def stream(self, conn: Any, request: SqlRequest) -> AsyncIterator[dict[str, Any]]:
        """Execute a query, yielding rows as dicts.

        The cursor must be closed when the iterator completes, is closed
        early, or raises.
        """
        ...


class BlockingAdapter(DbAdapter):
    """Adapter whose driver returns complete result sets."""

    @abstractmethod
    async def fetch_all(self, conn: Any, request: SqlRequest) -> list[dict[str, Any]]:
        """Execute a query, return all rows as dicts."""
        ...
