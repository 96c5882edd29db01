# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""DDL builder: create a table or alter it towards a new definition.

The builder compares the target definition with the table currently known
to the Database metadata (registered in its schema, or loaded from the live
catalog with DatabaseOperator.load_table()):

- unknown table: CREATE TABLE IF NOT EXISTS, then indexes, then comments
- known table: ADD COLUMN for new columns, ALTER COLUMN for columns whose
  type or nullability changed, CREATE INDEX for new indexes

Columns that exist only in the known table are never dropped. After the
statements run, the merged definition is registered in the schema, so
building the same definition again compiles to no statements.

Example:
    ddl = (
        operator.create_or_alter("entity_test")
        .add_column("id", str, length=32, primary_key=True)
        .add_column("name", str)
        .add_column("create_time", str, alias="createTime")
        .index("idx_name", "name asc")
        .commit()
    )
    await ddl.execute()
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING, Any

from ..errors import CompileError, ExecutionError
from .metadata import Schema, Table
from .request import SqlRequest

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .dialects.base import Dialect
    from .metadata import Column, Database

logger = logging.getLogger(__name__)


class BuilderState(enum.Enum):
    NEW = "new"
    COLUMNS_ADDED = "columns_added"
    COMMITTED = "committed"


class TableBuilder:
    """Collects a table definition and compiles it into DDL requests.

    Args:
        database: Metadata root providing the dialect, schemas and executor.
        definition: Target table definition. It is copied; the caller's
            object is not modified.
    """

    def __init__(self, database: Database, definition: Table):
        self.database = database
        self.source = definition
        self.table = definition.copy()
        self.table.comment = definition.comment
        self.schema = self._resolve_schema(definition)
        self.table.schema = self.schema
        self.state = BuilderState.NEW

    def _resolve_schema(self, definition: Table) -> Schema:
        if definition.schema is None:
            return self.database.current_schema
        schema = self.database.get_schema(definition.schema.name)
        if schema is None:
            schema = self.database.add_schema(Schema(definition.schema.name))
        return schema

    def _check_open(self) -> None:
        if self.state is BuilderState.COMMITTED:
            raise CompileError(
                "Table builder already committed", operation="ddl", table=self.table.name
            )

    # -------------------------------------------------------------------------
    # Definition
    # -------------------------------------------------------------------------

    def add_column(self, name: str, type_: type | None = None, **kwargs: Any) -> TableBuilder:
        """Add (or redefine) a column. See Column for keyword arguments."""
        self._check_open()
        self.table.column(name, type_, **kwargs)
        self.state = BuilderState.COLUMNS_ADDED
        return self

    def primary_key(self, *names: str) -> TableBuilder:
        self._check_open()
        self.table.set_primary_key(*names)
        return self

    def index(self, name: str, columns: str | Sequence[str], unique: bool = False) -> TableBuilder:
        """Declare an index, e.g. ``index("idx_ns", "name asc,state desc")``."""
        self._check_open()
        self.table.index(name, columns, unique)
        return self

    def comment(self, text: str) -> TableBuilder:
        self._check_open()
        self.table.comment = text
        return self

    # -------------------------------------------------------------------------
    # Compilation
    # -------------------------------------------------------------------------

    def commit(self) -> TableDdl:
        """Freeze the definition and compile it against the known table.

        Raises:
            MetadataError: If a column type cannot be mapped by the dialect.
            CompileError: If the builder was already committed.
        """
        self._check_open()
        self.state = BuilderState.COMMITTED
        current = self.schema.get_table(self.table.name)
        if current is None:
            statements = self._create_statements()
            merged = self.table
        else:
            statements = self._alter_statements(current)
            merged = self._merge(current)
        merged.features = self.source.features
        requests = [SqlRequest(sql) for sql in statements]
        return TableDdl(self.database, self.schema, merged, requests)

    def _create_statements(self) -> list[str]:
        dialect = self.database.dialect
        table = self.table
        if not table.columns:
            raise CompileError("Table has no columns", operation="ddl", table=table.name)
        statements = [dialect.render_create_table(table)]
        statements.extend(dialect.render_create_index(table, idx) for idx in table.indexes.values())
        if dialect.supports_comments:
            statements.extend(dialect.render_table_comment(table))
            statements.extend(dialect.render_comments(table, list(table.columns.values())))
        return statements

    def _alter_statements(self, current: Table) -> list[str]:
        dialect = self.database.dialect
        table = self.table
        statements: list[str] = []
        added: list[Column] = []
        for col in table.columns.values():
            old = _find_column(current, col.name)
            if old is None:
                statements.append(dialect.render_add_column(table, col))
                added.append(col)
            elif _differs(dialect, old, col):
                statements.extend(dialect.render_alter_column(table, old, col))

        current_pk = [c.name for c in current.primary_keys]
        new_pk = [c.name for c in table.primary_keys]
        if current_pk and new_pk and current_pk != new_pk:
            logger.warning(
                "Primary key of %s differs from the database (%s -> %s), not altered",
                table.name,
                current_pk,
                new_pk,
            )

        known_indexes = {name.lower() for name in current.indexes}
        for idx in table.indexes.values():
            if idx.name.lower() not in known_indexes:
                statements.append(dialect.render_create_index(table, idx))

        if dialect.supports_comments:
            if table.comment is not None and table.comment != current.comment:
                statements.extend(dialect.render_table_comment(table))
            if added:
                statements.extend(dialect.render_comments(table, added))
        return statements

    def _merge(self, current: Table) -> Table:
        """New definition plus the columns and indexes only the known table has."""
        merged = self.table
        for old in current.columns.values():
            if _find_column(merged, old.name) is None:
                merged.add_column(old.copy())
        for name, idx in current.indexes.items():
            merged.indexes.setdefault(name, idx)
        if merged.comment is None:
            merged.comment = current.comment
        return merged


class TableDdl:
    """Compiled, ordered DDL requests for one table.

    Attributes:
        requests: Statements in execution order; empty when nothing changes.
        table: Definition registered in the schema after execute().
    """

    def __init__(self, database: Database, schema: Schema, table: Table, requests: list[SqlRequest]):
        self.database = database
        self.schema = schema
        self.table = table
        self.requests = requests

    def __len__(self) -> int:
        return len(self.requests)

    async def execute(self) -> Table:
        """Run the statements in order and register the resulting table.

        Raises:
            ExecutionError: If a statement fails. The table is not registered.
        """
        executor = self.database.blocking_executor
        for request in self.requests:
            logger.info("DDL %s: %s", self.table.name, request.sql)
            try:
                await executor.execute(request)
            except Exception as e:
                raise ExecutionError(
                    f"DDL failed: {e}", request=request, operation="ddl", table=self.table.name
                ) from e
        self.schema.add_table(self.table)
        return self.table


def _find_column(table: Table, name: str) -> Column | None:
    col = table.columns.get(name)
    if col is not None:
        return col
    lowered = name.lower()
    for col in table.columns.values():
        if col.name.lower() == lowered:
            return col
    return None


def _differs(dialect: Dialect, old: Column, new: Column) -> bool:
    if old.nullable != new.nullable:
        return True
    return dialect.column_type(old) != dialect.column_type(new)


__all__ = ["BuilderState", "TableBuilder", "TableDdl"]
