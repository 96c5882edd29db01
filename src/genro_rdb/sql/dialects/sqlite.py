# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQLite dialect: ``?`` placeholders, no schemas, no ALTER COLUMN.

Value normalization keeps behavior aligned with PostgreSQL:
- datetime/date are stored as ISO strings and parsed back
- booleans are stored as 0/1 and converted back to bool
- Decimal is stored in a TEXT column with all its digits and read back as
  Decimal; such columns compare and sort as text
- dict/list are stored as JSON text
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from ..request import SqlRequest
from .base import Dialect, TypeRenderer

if TYPE_CHECKING:
    from ..metadata import Column, Table

logger = logging.getLogger(__name__)


def _varchar(length: int | None, precision: int | None, scale: int | None) -> str:
    return f"VARCHAR({length})" if length else "TEXT"


class SqliteDialect(Dialect):
    """SQLite dialect."""

    name = "sqlite"
    placeholder = "?"
    default_schema = "main"
    supports_schemas = False
    supports_comments = False
    supports_multi_row_insert = True
    max_parameters = 32766

    def build_type_renderers(self) -> dict[type, TypeRenderer]:
        return {
            str: _varchar,
            bool: lambda *_: "BOOLEAN",
            int: lambda *_: "INTEGER",
            float: lambda *_: "REAL",
            Decimal: lambda *_: "TEXT",
            datetime: lambda *_: "TIMESTAMP",
            date: lambda *_: "DATE",
            bytes: lambda *_: "BLOB",
            dict: lambda *_: "JSON",
            list: lambda *_: "JSON",
        }

    def encode_value(self, column: Column | None, value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        return super().encode_value(column, value)

    def render_literal(self, value: Any) -> str:
        if isinstance(value, bool):
            return "1" if value else "0"
        return super().render_literal(value)

    def render_upsert(
        self, table: Table, columns: Sequence[str], conflict_columns: Sequence[str]
    ) -> str | None:
        return self.on_conflict_clause(columns, conflict_columns)

    def render_alter_column(self, table: Table, old: Column, new: Column) -> list[str]:
        logger.warning(
            "SQLite cannot alter column %s.%s (%s -> %s), skipped",
            table.name,
            new.name,
            self.column_type(old),
            self.column_type(new),
        )
        return []

    def columns_request(self, schema: str, table_name: str) -> SqlRequest:
        return SqlRequest.of(
            'SELECT name, type, "notnull", pk FROM pragma_table_info(?, ?) ORDER BY cid',
            table_name,
            schema or self.default_schema,
        )

    def indexes_request(self, schema: str, table_name: str) -> SqlRequest:
        return SqlRequest.of(
            "SELECT name FROM pragma_index_list(?, ?) WHERE origin = 'c'",
            table_name,
            schema or self.default_schema,
        )


__all__ = ["SqliteDialect"]
