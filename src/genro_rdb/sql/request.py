# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Compiled SQL requests: text with positional placeholders plus parameters.

A SqlRequest is the only artifact that crosses from the builders into an
executor. Parameters are ordered; their position is the binding contract.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class SqlParameter:
    """Positional parameter value with its declared database type."""

    value: Any
    sql_type: str | None = None


@dataclass(frozen=True)
class SqlFragment:
    """Partial SQL clause with the parameters bound by its placeholders."""

    sql: str
    parameters: tuple[SqlParameter, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.sql)

    @classmethod
    def of(cls, sql: str, *values: Any) -> SqlFragment:
        """Build a fragment from raw values (no declared types)."""
        return cls(sql, tuple(SqlParameter(v) for v in values))

    @classmethod
    def join(cls, separator: str, fragments: Iterable[SqlFragment]) -> SqlFragment:
        """Join non-empty fragments, concatenating their parameters in order."""
        parts = [f for f in fragments if f]
        return cls(
            separator.join(f.sql for f in parts),
            tuple(p for f in parts for p in f.parameters),
        )


@dataclass(frozen=True)
class SqlRequest:
    """Immutable compiled statement.

    Attributes:
        sql: Statement text with the dialect's positional placeholders.
        parameters: Ordered parameters, one per placeholder.
    """

    sql: str
    parameters: tuple[SqlParameter, ...] = field(default=())

    @property
    def values(self) -> tuple[Any, ...]:
        """Raw parameter values in binding order."""
        return tuple(p.value for p in self.parameters)

    @property
    def is_empty(self) -> bool:
        return not self.sql.strip()

    @classmethod
    def of(cls, sql: str, *values: Any) -> SqlRequest:
        """Build a request from text and untyped values."""
        return cls(sql, tuple(SqlParameter(v) for v in values))

    @classmethod
    def from_fragment(cls, fragment: SqlFragment) -> SqlRequest:
        return cls(fragment.sql, fragment.parameters)

    def __str__(self) -> str:
        return self.sql


__all__ = ["SqlParameter", "SqlFragment", "SqlRequest"]
