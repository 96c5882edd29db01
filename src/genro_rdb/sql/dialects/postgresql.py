# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""PostgreSQL dialect: ``%s`` placeholders (psycopg), schemas, comments."""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from ..request import SqlRequest
from .base import Dialect, TypeRenderer

if TYPE_CHECKING:
    from ..metadata import Column, Table

# format_type() spellings -> canonical names used by map_type()
_TYPE_ALIASES = {
    "CHARACTER VARYING": "VARCHAR",
    "CHARACTER": "CHAR",
    "INT": "INTEGER",
    "INT4": "INTEGER",
    "INT8": "BIGINT",
    "INT2": "SMALLINT",
    "FLOAT8": "DOUBLE PRECISION",
    "BOOL": "BOOLEAN",
    "DECIMAL": "NUMERIC",
    "TIMESTAMP WITHOUT TIME ZONE": "TIMESTAMP",
    "TIMESTAMP WITH TIME ZONE": "TIMESTAMPTZ",
}

_TYPE_PARTS = re.compile(r"^([A-Z0-9 ]+?)(\(.*\))?$")


def _varchar(length: int | None, precision: int | None, scale: int | None) -> str:
    return f"VARCHAR({length})" if length else "TEXT"


def _integer(length: int | None, precision: int | None, scale: int | None) -> str:
    return "BIGINT" if (length or precision or 0) > 9 else "INTEGER"


def _numeric(length: int | None, precision: int | None, scale: int | None) -> str:
    if precision:
        return f"NUMERIC({precision},{scale or 0})"
    return "NUMERIC"


class PostgresDialect(Dialect):
    """PostgreSQL dialect."""

    name = "postgresql"
    placeholder = "%s"
    default_schema = "public"
    supports_schemas = True
    supports_comments = True
    supports_multi_row_insert = True
    max_parameters = 65535

    def build_type_renderers(self) -> dict[type, TypeRenderer]:
        return {
            str: _varchar,
            bool: lambda *_: "BOOLEAN",
            int: _integer,
            float: lambda *_: "DOUBLE PRECISION",
            Decimal: _numeric,
            datetime: lambda *_: "TIMESTAMP",
            date: lambda *_: "DATE",
            bytes: lambda *_: "BYTEA",
            dict: lambda *_: "JSONB",
            list: lambda *_: "JSONB",
        }

    def normalize_type(self, type_name: str) -> str:
        text = super().normalize_type(type_name)
        match = _TYPE_PARTS.match(text)
        if not match:
            return text
        base, args = match.group(1).strip(), match.group(2) or ""
        return _TYPE_ALIASES.get(base, base) + args

    def render_upsert(
        self, table: Table, columns: Sequence[str], conflict_columns: Sequence[str]
    ) -> str | None:
        return self.on_conflict_clause(columns, conflict_columns)

    def render_alter_column(self, table: Table, old: Column, new: Column) -> list[str]:
        prefix = f"ALTER TABLE {self.qualified_name(table)} ALTER COLUMN {self.identifier(new.name)}"
        statements = []
        new_type = self.column_type(new)
        if self.column_type(old) != new_type:
            statements.append(f"{prefix} TYPE {new_type}")
        if old.nullable != new.nullable:
            statements.append(f"{prefix} {'DROP' if new.nullable else 'SET'} NOT NULL")
        return statements

    def render_comments(self, table: Table, columns: Sequence[Column]) -> list[str]:
        statements = []
        for col in columns:
            if col.comment:
                statements.append(
                    f"COMMENT ON COLUMN {self.qualified_name(table)}.{self.identifier(col.name)} "
                    f"IS {self.render_literal(col.comment)}"
                )
        return statements

    def render_table_comment(self, table: Table) -> list[str]:
        if table.comment is None:
            return []
        return [
            f"COMMENT ON TABLE {self.qualified_name(table)} IS {self.render_literal(table.comment)}"
        ]

    def columns_request(self, schema: str, table_name: str) -> SqlRequest:
        return SqlRequest.of(
            "SELECT a.attname AS name, "
            "format_type(a.atttypid, a.atttypmod) AS type, "
            "a.attnotnull AS notnull, "
            "COALESCE(i.indisprimary, false) AS pk "
            "FROM pg_attribute a "
            "JOIN pg_class c ON c.oid = a.attrelid "
            "JOIN pg_namespace n ON n.oid = c.relnamespace "
            "LEFT JOIN pg_index i ON i.indrelid = c.oid AND i.indisprimary "
            "AND a.attnum = ANY(i.indkey) "
            "WHERE n.nspname = %s AND c.relname = %s "
            "AND a.attnum > 0 AND NOT a.attisdropped "
            "ORDER BY a.attnum",
            schema or self.default_schema,
            table_name,
        )

    def indexes_request(self, schema: str, table_name: str) -> SqlRequest:
        return SqlRequest.of(
            "SELECT indexname AS name FROM pg_indexes "
            "WHERE schemaname = %s AND tablename = %s",
            schema or self.default_schema,
            table_name,
        )


__all__ = ["PostgresDialect"]
