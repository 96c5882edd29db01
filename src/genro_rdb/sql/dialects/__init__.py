# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SQL dialects for SQLite and PostgreSQL.

Components:
    Dialect: Abstract base defining quoting, type mapping, paging, upsert
             and DDL rendering rules.
    SqliteDialect: SQLite rules (reference dialect).
    PostgresDialect: PostgreSQL rules.
    get_dialect: Factory returning a dialect by name.

Example:
    dialect = get_dialect("sqlite")
    dialect.quote_identifier('we"ird')   # '"we""ird"'
    dialect.map_type(str, length=32)     # 'VARCHAR(32)'
    dialect.render_paging(20, 10).sql    # 'LIMIT ? OFFSET ?'
"""

from __future__ import annotations

from typing import Any

from .base import SQL_RESERVED_WORDS, Dialect, SqlExpression
from .postgresql import PostgresDialect
from .sqlite import SqliteDialect

__all__ = [
    "Dialect",
    "SqlExpression",
    "SqliteDialect",
    "PostgresDialect",
    "SQL_RESERVED_WORDS",
    "DIALECTS",
    "get_dialect",
]

# Dialect registry
DIALECTS: dict[str, type[Dialect]] = {
    "sqlite": SqliteDialect,
    "postgresql": PostgresDialect,
    "postgres": PostgresDialect,
}


def get_dialect(name: str, **kwargs: Any) -> Dialect:
    """Create a dialect by registry name.

    Raises:
        ValueError: If the name is not registered.
    """
    dialect_class = DIALECTS.get(name.lower())
    if dialect_class is None:
        raise ValueError(
            f"Unknown dialect: '{name}'. Supported: {', '.join(sorted(DIALECTS))}"
        )
    return dialect_class(**kwargs)
