# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for the exception hierarchy."""

from __future__ import annotations

import pytest

from genro_rdb.errors import (
    BatchInsertError,
    CompileError,
    ExecutionError,
    MappingError,
    MetadataError,
    RdbError,
    UnsupportedTypeError,
)
from genro_rdb.sql.request import SqlRequest


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_class", [MetadataError, CompileError, ExecutionError, MappingError]
    )
    def test_subclasses_of_rdb_error(self, error_class):
        assert issubclass(error_class, RdbError)

    def test_unsupported_type_is_metadata_error(self):
        assert issubclass(UnsupportedTypeError, MetadataError)

    def test_batch_insert_is_execution_error(self):
        assert issubclass(BatchInsertError, ExecutionError)


class TestMessages:
    def test_context_appended(self):
        """Operation, table and column are appended to the message."""
        e = MetadataError("Column not found", operation="query", table="items", column="foo")
        assert str(e) == "Column not found [operation=query, table=items, column=foo]"
        assert e.operation == "query"
        assert e.table == "items"
        assert e.column == "foo"

    def test_no_context(self):
        assert str(CompileError("bad")) == "bad"

    def test_execution_error_carries_request(self):
        """ExecutionError shows the failing SQL and parameters."""
        request = SqlRequest.of('DELETE FROM "items" WHERE "id" = ?', 7)
        e = ExecutionError("delete failed", request=request, table="items")
        assert e.request is request
        assert 'DELETE FROM "items"' in str(e)
        assert "[7]" in str(e)

    def test_unsupported_type(self):
        e = UnsupportedTypeError(complex, "sqlite", column="z")
        assert e.semantic_type is complex
        assert e.dialect == "sqlite"
        assert "complex" in str(e)
        assert "column=z" in str(e)

    def test_batch_insert_error(self):
        e = BatchInsertError("Batch insert failed", completed=500, chunk_index=1)
        assert e.completed == 500
        assert e.chunk_index == 1
        assert "chunk 1, 500 rows completed" in str(e)
