# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Execution modes over compiled SqlRequests.

Two contracts share the same write operation and differ in how rows are
returned:

- BlockingExecutor.select(): the awaiting task is suspended until the whole
  row set is materialized.
- StreamingExecutor.stream(): an async iterator pulling one row at a time.
  The sequence is finite and not restartable; re-issuing requires executing
  the request again.

A backend implements one native mode; the other one is derived:

- BlockingOverStreaming drains the stream before returning.
- StreamingOverBlocking executes eagerly, then replays the rows.

Early termination of a stream (``aclose()``, ``break`` inside
``contextlib.aclosing``) and errors propagate into the native iterator so
that its cursor is released.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .request import SqlRequest

Row = dict[str, Any]


class BlockingExecutor(ABC):
    """Executor returning fully materialized row sets."""

    @abstractmethod
    async def update(self, request: SqlRequest) -> int:
        """Execute a write statement, return the affected row count."""
        ...

    @abstractmethod
    async def select(self, request: SqlRequest) -> list[Row]:
        """Execute a query, return all rows."""
        ...

    async def execute(self, request: SqlRequest) -> None:
        """Execute a statement ignoring its result (DDL)."""
        await self.update(request)


class StreamingExecutor(ABC):
    """Executor producing rows lazily."""

    @abstractmethod
    async def update(self, request: SqlRequest) -> int:
        """Execute a write statement, return the affected row count."""
        ...

    @abstractmethod
    def stream(self, request: SqlRequest) -> AsyncIterator[Row]:
        """Execute a query, yielding rows on demand."""
        ...

    async def execute(self, request: SqlRequest) -> None:
        await self.update(request)


class BlockingOverStreaming(BlockingExecutor):
    """Blocking view of a streaming executor: drains the stream."""

    def __init__(self, streaming: StreamingExecutor):
        self.streaming = streaming

    async def update(self, request: SqlRequest) -> int:
        return await self.streaming.update(request)

    async def select(self, request: SqlRequest) -> list[Row]:
        return [row async for row in self.streaming.stream(request)]


class StreamingOverBlocking(StreamingExecutor):
    """Streaming view of a blocking executor: executes eagerly, replays rows."""

    def __init__(self, blocking: BlockingExecutor):
        self.blocking = blocking

    async def update(self, request: SqlRequest) -> int:
        return await self.blocking.update(request)

    async def stream(self, request: SqlRequest) -> AsyncIterator[Row]:
        rows = await self.blocking.select(request)
        for row in rows:
            yield row


def as_blocking(executor: BlockingExecutor | StreamingExecutor) -> BlockingExecutor:
    """Return executor itself if blocking, else wrap it."""
    if isinstance(executor, BlockingExecutor):
        return executor
    if isinstance(executor, StreamingOverBlocking):
        return executor.blocking
    return BlockingOverStreaming(executor)


def as_streaming(executor: BlockingExecutor | StreamingExecutor) -> StreamingExecutor:
    """Return executor itself if streaming, else wrap it."""
    if isinstance(executor, StreamingExecutor):
        return executor
    if isinstance(executor, BlockingOverStreaming):
        return executor.streaming
    return StreamingOverBlocking(executor)


__all__ = [
    "Row",
    "BlockingExecutor",
    "StreamingExecutor",
    "BlockingOverStreaming",
    "StreamingOverBlocking",
    "as_blocking",
    "as_streaming",
]
