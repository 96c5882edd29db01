# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy for genro-rdb.

Every error carries the kind of operation that failed and, where known, the
table and column involved. ExecutionError additionally carries the compiled
SqlRequest so the failing statement can be reproduced.

Hierarchy:
    RdbError
        MetadataError
            UnsupportedTypeError
        CompileError
        ExecutionError
            BatchInsertError
        MappingError

MetadataError and CompileError are raised while compiling, before any SQL
reaches the executor.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .sql.request import SqlRequest


class RdbError(Exception):
    """Base class for all genro-rdb errors."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        table: str | None = None,
        column: str | None = None,
    ):
        self.operation = operation
        self.table = table
        self.column = column
        context = []
        if operation:
            context.append(f"operation={operation}")
        if table:
            context.append(f"table={table}")
        if column:
            context.append(f"column={column}")
        if context:
            message = f"{message} [{', '.join(context)}]"
        super().__init__(message)


class MetadataError(RdbError):
    """Referenced table or column not found, or invalid table definition."""


class UnsupportedTypeError(MetadataError):
    """Semantic type that the active dialect cannot map to a database type."""

    def __init__(self, semantic_type: Any, dialect: str, **kwargs: Any):
        self.semantic_type = semantic_type
        self.dialect = dialect
        type_name = getattr(semantic_type, "__name__", repr(semantic_type))
        super().__init__(f"Type {type_name} is not supported by dialect '{dialect}'", **kwargs)


class CompileError(RdbError):
    """Operation intent that cannot be compiled into SQL."""


class ExecutionError(RdbError):
    """Error raised by the executor while running a compiled request.

    The driver exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, request: SqlRequest | None = None, **kwargs: Any):
        self.request = request
        if request is not None:
            message = f"{message}\n  SQL: {request.sql}\n  params: {list(request.values)!r}"
        super().__init__(message, **kwargs)


class BatchInsertError(ExecutionError):
    """A chunk of a batch insert failed; remaining chunks were not executed.

    Attributes:
        completed: Number of rows written by the chunks that succeeded.
        chunk_index: Zero-based index of the failing chunk.
    """

    def __init__(
        self,
        message: str,
        completed: int,
        chunk_index: int,
        request: SqlRequest | None = None,
        **kwargs: Any,
    ):
        self.completed = completed
        self.chunk_index = chunk_index
        super().__init__(
            f"{message} (chunk {chunk_index}, {completed} rows completed)",
            request=request,
            **kwargs,
        )


class MappingError(RdbError):
    """Row value that cannot be coerced to the target property type."""


__all__ = [
    "RdbError",
    "MetadataError",
    "UnsupportedTypeError",
    "CompileError",
    "ExecutionError",
    "BatchInsertError",
    "MappingError",
]
