# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""DatabaseOperator: entry object bundling metadata, executors and builders.

Usage:
    operator = DatabaseOperator.from_config(RdbConfig(db_path="/data/app.db"))

    async with operator.connection():
        await operator.create_or_alter(parse_entity(EntityTest)).commit().execute()
        repo = operator.repository(EntityTest)
        await repo.insert(EntityTest(id="t1", name="a"))

    await operator.shutdown()
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from .config import RdbConfig, config_from_env
from .errors import ExecutionError, MetadataError, RdbError
from .sql.ddl import TableBuilder
from .sql.dialects import get_dialect
from .sql.dml import DeleteBuilder, InsertBuilder, UpdateBuilder
from .sql.entity import entity_table_name, parse_entity
from .sql.metadata import Database, Index, Table
from .sql.query import QueryBuilder
from .sql.repository import Repository
from .sql.sqldb import SqlDb

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from .sql.dialects.base import Dialect
    from .sql.execution import BlockingExecutor, StreamingExecutor

logger = logging.getLogger(__name__)


class DatabaseOperator:
    """Builders and repositories over one Database.

    Tables are referenced by name (current schema, or ``"schema.table"``)
    or by Table object.

    Attributes:
        database: Metadata root (dialect, schemas, executors).
        db: Connection manager, when built from a connection string.
    """

    def __init__(self, database: Database, db: SqlDb | None = None):
        self.database = database
        self.db = db

    @classmethod
    def create(
        cls,
        dialect: Dialect,
        executor: BlockingExecutor | StreamingExecutor,
        schema: str | None = None,
        batch_size: int = 500,
    ) -> DatabaseOperator:
        """Operator over an explicit dialect and executor."""
        database = Database(dialect, schema, batch_size=batch_size)
        database.register_executor(executor)
        return cls(database)

    @classmethod
    def from_config(cls, config: RdbConfig | None = None) -> DatabaseOperator:
        """Operator with adapter, dialect and executor built from configuration.

        Args:
            config: Configuration; None reads GENRO_RDB_* environment variables.
        """
        config = config or config_from_env()
        db = SqlDb(config.db_path, pool_size=config.pool_size)
        dialect = get_dialect(db.dialect_name, quote_all=config.quote_all)
        database = Database(dialect, config.schema, batch_size=config.batch_size)
        database.register_executor(db.executor())
        logger.debug("Database operator ready: %s (%s)", dialect.name, config.db_path)
        return cls(database, db)

    @property
    def dialect(self) -> Dialect:
        return self.database.dialect

    # -------------------------------------------------------------------------
    # Connection
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[DatabaseOperator]:
        """Per-task connection and transaction (see SqlDb.connection())."""
        if self.db is None:
            yield self
            return
        async with self.db.connection():
            yield self

    async def shutdown(self) -> None:
        if self.db is not None:
            await self.db.shutdown()

    # -------------------------------------------------------------------------
    # Tables
    # -------------------------------------------------------------------------

    def table(self, table: str | Table, operation: str | None = None) -> Table:
        if isinstance(table, Table):
            return table
        return self.database.get_table(table, operation)

    def create_or_alter(self, table: str | Table | type) -> TableBuilder:
        """DDL builder towards a Table, an entity dataclass or a table name.

        With a name, the builder starts from the known definition (or an
        empty table) so add_column() only adds what is new.
        """
        if isinstance(table, type):
            table = parse_entity(table)
        elif isinstance(table, str):
            known = self.database.find_table(None, table)
            table = known if known is not None else Table(table.split(".")[-1])
        return TableBuilder(self.database, table)

    async def load_table(self, name: str, schema: str | None = None) -> Table | None:
        """Read a table definition from the live catalog and register it.

        Returns None when the table does not exist in the database. Column
        types come back as database type names (Column.db_type); the semantic
        type of an already known column is kept.
        """
        dialect = self.database.dialect
        owner = self.database.get_schema(schema) if schema else self.database.current_schema
        if owner is None:
            raise MetadataError("Schema not found", operation="load_table", table=name)
        executor = self.database.blocking_executor
        request = dialect.columns_request(owner.name, name)
        try:
            rows = await executor.select(request)
            index_rows = await executor.select(dialect.indexes_request(owner.name, name)) if rows else []
        except RdbError:
            raise
        except Exception as e:
            raise ExecutionError(
                f"Catalog query failed: {e}", request=request, operation="load_table", table=name
            ) from e
        if not rows:
            return None

        known = owner.get_table(name)
        table = Table(name, comment=known.comment if known else None)
        for row in rows:
            column = dialect.parse_column_row(row)
            previous = known.get_column(column.name) if known else None
            if previous is not None:
                column.type_ = previous.type_
                column.alias = previous.alias
                column.comment = previous.comment
            table.add_column(column)
        for row in index_rows:
            table.add_index(Index(row["name"]))
        if known is not None:
            table.features = known.features
        owner.add_table(table)
        logger.debug("Loaded table %s from catalog (%d columns)", name, len(table.columns))
        return table

    # -------------------------------------------------------------------------
    # Builders
    # -------------------------------------------------------------------------

    def insert(self, table: str | Table) -> InsertBuilder:
        return InsertBuilder(self.database, self.table(table, "insert"))

    def query(self, table: str | Table) -> QueryBuilder:
        return QueryBuilder(self.database, self.table(table, "query"))

    def update(self, table: str | Table) -> UpdateBuilder:
        return UpdateBuilder(self.database, self.table(table, "update"))

    def delete(self, table: str | Table) -> DeleteBuilder:
        return DeleteBuilder(self.database, self.table(table, "delete"))

    def repository(self, record_type: type | None = None, table: str | Table | None = None) -> Repository:
        """Repository for an entity dataclass or, with record_type None, for dicts.

        The table defaults to the one registered under the entity's table
        name, so create_or_alter() must have run first.
        """
        if table is None:
            if record_type is None:
                raise MetadataError("repository() needs a record type or a table")
            table = entity_table_name(record_type)
        return Repository(self.database, self.table(table, "repository"), record_type)

    async def sync_table(self, table: str | Table | type) -> Table:
        """Load the live definition, then create or alter the table to match.

        Safe across process restarts: a table already in the database diffs
        against its catalog definition instead of being created again.
        """
        builder = self.create_or_alter(table)
        await self.load_table(builder.table.name, schema=builder.schema.name)
        builder = self.create_or_alter(table)
        return await builder.commit().execute()


__all__ = ["DatabaseOperator"]
