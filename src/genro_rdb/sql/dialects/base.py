# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Base Dialect: per-backend SQL rendering and type-mapping rules.

A Dialect turns metadata into SQL text and never touches a connection.
Concrete dialects override the type table, the placeholder style and the
statements whose syntax differs between backends (upsert, ALTER COLUMN,
catalog introspection).

Type mapping is total: every semantic type the engine supports maps to a
database type name, anything else raises UnsupportedTypeError. The inverse
direction (database value -> Python value) lives in decode_value().
"""

from __future__ import annotations

import enum
import json
import math
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from ...errors import CompileError, MappingError, UnsupportedTypeError
from ..request import SqlFragment, SqlParameter, SqlRequest

if TYPE_CHECKING:
    from ..metadata import Column, Index, Table

TypeRenderer = Callable[[int | None, int | None, int | None], str]

_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Words reserved by SQL:2016 and commonly by SQLite/PostgreSQL.
SQL_RESERVED_WORDS = frozenset(
    """
    ALL ALTER AND ANY AS ASC AUTHORIZATION BETWEEN BOTH BY CASE CAST CHECK
    COLLATE COLUMN CONSTRAINT CREATE CROSS CURRENT_DATE CURRENT_TIME
    CURRENT_TIMESTAMP CURRENT_USER DEFAULT DEFERRABLE DELETE DESC DISTINCT DO
    DROP ELSE END EXCEPT EXISTS FALSE FETCH FOR FOREIGN FROM FULL GRANT GROUP
    HAVING IN INDEX INITIALLY INNER INSERT INTERSECT INTO IS JOIN KEY LEADING
    LEFT LIKE LIMIT NATURAL NOT NULL OFFSET ON ONLY OR ORDER OUTER PRIMARY
    REFERENCES RETURNING RIGHT SELECT SESSION_USER SET SOME TABLE THEN TO
    TRAILING TRUE UNION UNIQUE UPDATE USER USING VALUES WHEN WHERE WINDOW WITH
    """.split()
)


@dataclass(frozen=True)
class SqlExpression:
    """Raw SQL expression used as a DDL default, e.g. CURRENT_TIMESTAMP."""

    sql: str


class Dialect(ABC):
    """Abstract SQL dialect.

    Class attributes (override in subclass):
        name: Dialect identifier used by the registry.
        placeholder: Positional placeholder of the driver ("?" or "%s").
        quote_char: Identifier quote character.
        default_schema: Schema used when none is configured.
        supports_schemas: Whether table names are schema-qualified.
        supports_comments: Whether column/table comments can be stored.
        supports_multi_row_insert: INSERT ... VALUES (...), (...) allowed.
        max_parameters: Upper bound of placeholders in one statement.
        reserved_words: Identifiers always quoted.
    """

    name: str = "generic"
    placeholder: str = "?"
    quote_char: str = '"'
    default_schema: str = "public"
    supports_schemas: bool = True
    supports_comments: bool = False
    supports_multi_row_insert: bool = True
    max_parameters: int = 32766
    reserved_words: frozenset[str] = SQL_RESERVED_WORDS

    def __init__(self, quote_all: bool = True):
        self.quote_all = quote_all
        self.type_renderers: dict[type, TypeRenderer] = self.build_type_renderers()

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    # -------------------------------------------------------------------------
    # Identifiers
    # -------------------------------------------------------------------------

    def quote_identifier(self, name: str) -> str:
        """Quote an identifier, doubling any embedded quote character."""
        q = self.quote_char
        return f"{q}{name.replace(q, q + q)}{q}"

    def needs_quoting(self, name: str) -> bool:
        """True for reserved words, mixed case and non-plain identifiers."""
        return (
            name.upper() in self.reserved_words
            or not _PLAIN_IDENTIFIER.match(name)
            or name != name.lower()
        )

    def identifier(self, name: str) -> str:
        """Render an identifier, quoting it when required or configured."""
        if self.quote_all or self.needs_quoting(name):
            return self.quote_identifier(name)
        return name

    def qualified_name(self, table: Table) -> str:
        """Render the table name, schema-qualified when supported."""
        if self.supports_schemas and table.schema is not None:
            return f"{self.identifier(table.schema.name)}.{self.identifier(table.name)}"
        return self.identifier(table.name)

    # -------------------------------------------------------------------------
    # Types
    # -------------------------------------------------------------------------

    @abstractmethod
    def build_type_renderers(self) -> dict[type, TypeRenderer]:
        """Return semantic type -> renderer(length, precision, scale)."""
        ...

    def map_type(
        self,
        semantic_type: type | None,
        length: int | None = None,
        precision: int | None = None,
        scale: int | None = None,
    ) -> str:
        """Map a semantic type to a database type name.

        Raises:
            UnsupportedTypeError: If no renderer handles the type.
        """
        if semantic_type is not None:
            for candidate in getattr(semantic_type, "__mro__", (semantic_type,)):
                renderer = self.type_renderers.get(candidate)
                if renderer is not None:
                    return renderer(length, precision, scale)
        raise UnsupportedTypeError(semantic_type, self.name)

    def column_type(self, column: Column) -> str:
        """Database type of a column: explicit override or mapped type."""
        if column.db_type:
            return self.normalize_type(column.db_type)
        try:
            return self.map_type(column.type_, column.length, column.precision, column.scale)
        except UnsupportedTypeError as e:
            raise UnsupportedTypeError(
                column.type_,
                self.name,
                table=column.table.name if column.table else None,
                column=column.name,
            ) from e

    def normalize_type(self, type_name: str) -> str:
        """Canonical spelling of a type name, used to diff columns."""
        text = re.sub(r"\s+", " ", type_name.strip().upper())
        return re.sub(r"\s*([(),])\s*", r"\1", text)

    # -------------------------------------------------------------------------
    # Values
    # -------------------------------------------------------------------------

    def parameter(self, column: Column | None, value: Any) -> SqlParameter:
        """Positional parameter for a value bound to a column."""
        if column is None:
            return SqlParameter(self.encode_value(None, value))
        return SqlParameter(self.encode_value(column, value), self.column_type(column))

    def encode_value(self, column: Column | None, value: Any) -> Any:
        """Convert a Python value to what the driver accepts."""
        if value is None:
            return None
        if isinstance(value, enum.Enum):
            return value.value
        if isinstance(value, (dict, list)):
            return json.dumps(value)
        return value

    def decode_value(self, column: Column, value: Any) -> Any:
        """Convert a raw driver value to the column's semantic type.

        Raises:
            MappingError: If the value cannot be coerced.
        """
        target = column.type_
        if value is None or target is None:
            return value
        try:
            return coerce_value(target, value)
        except (TypeError, ValueError, InvalidOperation, json.JSONDecodeError) as e:
            raise MappingError(
                f"Cannot convert {value!r} to {getattr(target, '__name__', target)}",
                operation="decode",
                table=column.table.name if column.table else None,
                column=column.name,
            ) from e

    def render_literal(self, value: Any) -> str:
        """Render a value inline, for DDL defaults and comments only."""
        if value is None:
            return "NULL"
        if isinstance(value, SqlExpression):
            return value.sql
        if isinstance(value, enum.Enum):
            value = value.value
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        if isinstance(value, (int, Decimal)):
            return str(value)
        if isinstance(value, float):
            if not math.isfinite(value):
                raise CompileError(f"Cannot render non-finite float {value!r} as literal")
            return repr(value)
        if isinstance(value, (datetime, date)):
            value = value.isoformat()
        if isinstance(value, str):
            return "'" + value.replace("'", "''") + "'"
        raise CompileError(f"Cannot render {type(value).__name__} value as SQL literal")

    # -------------------------------------------------------------------------
    # Clauses
    # -------------------------------------------------------------------------

    def render_paging(self, offset: int, limit: int) -> SqlFragment:
        """LIMIT/OFFSET clause with positional parameters."""
        p = self.placeholder
        return SqlFragment.of(f"LIMIT {p} OFFSET {p}", int(limit), int(offset))

    def render_upsert(
        self, table: Table, columns: Sequence[str], conflict_columns: Sequence[str]
    ) -> str | None:
        """Clause appended to an INSERT to turn it into an upsert.

        Returns None when the backend has no native upsert; callers then
        fall back to check-then-insert/update.
        """
        return None

    def on_conflict_clause(self, columns: Sequence[str], conflict_columns: Sequence[str]) -> str:
        """ON CONFLICT (...) DO UPDATE clause shared by SQLite and PostgreSQL."""
        target = ", ".join(self.identifier(c) for c in conflict_columns)
        updates = [
            f"{self.identifier(c)} = excluded.{self.identifier(c)}"
            for c in columns
            if c not in conflict_columns
        ]
        if not updates:
            return f" ON CONFLICT ({target}) DO NOTHING"
        return f" ON CONFLICT ({target}) DO UPDATE SET {', '.join(updates)}"

    # -------------------------------------------------------------------------
    # DDL
    # -------------------------------------------------------------------------

    def render_column_definition(self, column: Column) -> str:
        parts = [self.identifier(column.name), self.column_type(column)]
        if not column.nullable:
            parts.append("NOT NULL")
        if column.default is not None and not callable(column.default):
            parts.append(f"DEFAULT {self.render_literal(column.default)}")
        return " ".join(parts)

    def render_create_table(self, table: Table) -> str:
        defs = [self.render_column_definition(c) for c in table.columns.values()]
        pks = table.primary_keys
        if pks:
            defs.append(f"PRIMARY KEY ({', '.join(self.identifier(c.name) for c in pks)})")
        return (
            f"CREATE TABLE IF NOT EXISTS {self.qualified_name(table)} (\n    "
            + ",\n    ".join(defs)
            + "\n)"
        )

    def render_add_column(self, table: Table, column: Column) -> str:
        return (
            f"ALTER TABLE {self.qualified_name(table)} "
            f"ADD COLUMN {self.render_column_definition(column)}"
        )

    def render_alter_column(self, table: Table, old: Column, new: Column) -> list[str]:
        """Statements turning column ``old`` into ``new``; empty if unsupported."""
        return []

    def render_create_index(self, table: Table, index: Index) -> str:
        unique = "UNIQUE " if index.unique else ""
        cols = ", ".join(
            f"{self.identifier(ic.column)} {ic.direction.upper()}" for ic in index.columns
        )
        return (
            f"CREATE {unique}INDEX IF NOT EXISTS {self.identifier(index.name)} "
            f"ON {self.qualified_name(table)} ({cols})"
        )

    def render_comments(self, table: Table, columns: Sequence[Column]) -> list[str]:
        """Comment statements for the given columns; empty if unsupported."""
        return []

    def render_table_comment(self, table: Table) -> list[str]:
        """Statements storing the table comment; empty if unsupported."""
        return []

    # -------------------------------------------------------------------------
    # Catalog introspection
    # -------------------------------------------------------------------------

    @abstractmethod
    def columns_request(self, schema: str, table_name: str) -> SqlRequest:
        """Query returning rows with name, type, notnull and pk keys."""
        ...

    @abstractmethod
    def indexes_request(self, schema: str, table_name: str) -> SqlRequest:
        """Query returning one row with a name key per user-created index."""
        ...

    def parse_column_row(self, row: dict[str, Any]) -> Column:
        """Build a Column from a row returned by columns_request()."""
        from ..metadata import Column

        return Column(
            row["name"],
            db_type=self.normalize_type(row["type"] or ""),
            nullable=not row["notnull"],
            primary_key=bool(row["pk"]),
        )


def coerce_value(target: type, value: Any) -> Any:
    """Convert value to target type or raise ValueError/TypeError."""
    if target in (dict, list):
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        if isinstance(value, str):
            value = json.loads(value)
        if not isinstance(value, target):
            raise TypeError(f"JSON value is {type(value).__name__}")
        return value
    if isinstance(target, type) and issubclass(target, enum.Enum):
        return target(value)
    if target is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, int) and value in (0, 1):
            return bool(value)
        if isinstance(value, str) and value.lower() in ("0", "1", "true", "false"):
            return value.lower() in ("1", "true")
        raise ValueError("not a boolean")
    if target is int:
        if isinstance(value, bool):
            raise TypeError("boolean is not an integer")
        if isinstance(value, int):
            return value
        if isinstance(value, (float, Decimal)):
            if value != int(value):
                raise ValueError("fractional value")
            return int(value)
        if isinstance(value, str):
            return int(value)
        raise TypeError(type(value).__name__)
    if target is float:
        if isinstance(value, (int, float, Decimal, str)) and not isinstance(value, bool):
            return float(value)
        raise TypeError(type(value).__name__)
    if target is Decimal:
        if isinstance(value, Decimal):
            return value
        if isinstance(value, (int, float, str)) and not isinstance(value, bool):
            return Decimal(str(value))
        raise TypeError(type(value).__name__)
    if target is datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            return datetime.fromisoformat(value)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        raise TypeError(type(value).__name__)
    if target is date:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            return date.fromisoformat(value[:10])
        raise TypeError(type(value).__name__)
    if target is bytes:
        if isinstance(value, (bytes, bytearray, memoryview)):
            return bytes(value)
        raise TypeError(type(value).__name__)
    if target is str:
        if isinstance(value, str):
            return value
        if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
            return str(value)
        raise TypeError(type(value).__name__)
    if isinstance(value, target):
        return value
    return target(value)


__all__ = ["Dialect", "SqlExpression", "SQL_RESERVED_WORDS", "TypeRenderer", "coerce_value"]
