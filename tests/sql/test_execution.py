# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for execution modes and the adapters between them."""

from __future__ import annotations

import contextlib

import pytest

from genro_rdb.sql.execution import (
    BlockingOverStreaming,
    StreamingExecutor,
    StreamingOverBlocking,
    as_blocking,
    as_streaming,
)
from genro_rdb.sql.request import SqlRequest

ROWS = [{"id": 1}, {"id": 2}, {"id": 3}]


class TrackingStreamingExecutor(StreamingExecutor):
    """Streaming executor recording how its iterators end."""

    def __init__(self, rows, fail_after=None):
        self.rows = rows
        self.fail_after = fail_after
        self.opened = 0
        self.closed = 0
        self.updates = []

    async def update(self, request):
        self.updates.append(request)
        return 5

    async def stream(self, request):
        self.opened += 1
        try:
            for i, row in enumerate(self.rows):
                if self.fail_after is not None and i == self.fail_after:
                    raise RuntimeError("connection lost")
                yield row
        finally:
            self.closed += 1


REQUEST = SqlRequest('SELECT "id" FROM "t"')


class TestAdapterSelection:
    def test_blocking_is_returned_as_is(self, recorder):
        assert as_blocking(recorder) is recorder

    def test_streaming_is_returned_as_is(self):
        native = TrackingStreamingExecutor(ROWS)
        assert as_streaming(native) is native

    def test_wrapping(self, recorder):
        native = TrackingStreamingExecutor(ROWS)
        assert isinstance(as_blocking(native), BlockingOverStreaming)
        assert isinstance(as_streaming(recorder), StreamingOverBlocking)

    def test_round_trip_unwraps(self, recorder):
        native = TrackingStreamingExecutor(ROWS)
        assert as_streaming(as_blocking(native)) is native
        assert as_blocking(as_streaming(recorder)) is recorder


class TestBlockingOverStreaming:
    async def test_select_drains_stream(self):
        native = TrackingStreamingExecutor(ROWS)
        rows = await BlockingOverStreaming(native).select(REQUEST)
        assert rows == ROWS
        assert native.closed == 1

    async def test_update_delegates(self):
        native = TrackingStreamingExecutor(ROWS)
        assert await BlockingOverStreaming(native).update(REQUEST) == 5
        assert native.updates == [REQUEST]

    async def test_error_propagates_and_closes(self):
        native = TrackingStreamingExecutor(ROWS, fail_after=1)
        with pytest.raises(RuntimeError, match="connection lost"):
            await BlockingOverStreaming(native).select(REQUEST)
        assert native.closed == 1


class TestStreamingOverBlocking:
    async def test_replays_rows(self, recorder):
        recorder.rows = ROWS
        rows = [row async for row in StreamingOverBlocking(recorder).stream(REQUEST)]
        assert rows == ROWS
        assert recorder.requests == [REQUEST]

    async def test_not_restartable(self, recorder):
        """Each stream() call executes the request again."""
        recorder.rows = ROWS
        streaming = StreamingOverBlocking(recorder)
        first = streaming.stream(REQUEST)
        assert [row async for row in first] == ROWS
        assert [row async for row in first] == []
        assert [row async for row in streaming.stream(REQUEST)] == ROWS
        assert len(recorder.requests) == 2

    async def test_execute_ignores_result(self, recorder):
        assert await StreamingOverBlocking(recorder).execute(REQUEST) is None
        assert recorder.requests == [REQUEST]


class TestEquivalence:
    async def test_same_rows_in_both_modes(self, recorder):
        """Blocking and streaming views of one backend yield the same sequence."""
        native = TrackingStreamingExecutor(ROWS)
        streamed = [row async for row in native.stream(REQUEST)]
        blocked = await as_blocking(native).select(REQUEST)
        assert streamed == blocked == ROWS

        recorder.rows = ROWS
        replayed = [row async for row in as_streaming(recorder).stream(REQUEST)]
        assert replayed == await recorder.select(REQUEST)


class TestEarlyTermination:
    async def test_aclose_releases_native_iterator(self):
        native = TrackingStreamingExecutor(ROWS)
        seen = []
        async with contextlib.aclosing(native.stream(REQUEST)) as rows:
            async for row in rows:
                seen.append(row)
                break
        assert seen == [ROWS[0]]
        assert native.opened == 1
        assert native.closed == 1
