# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""CRUD facade over one table.

Records are either dataclass instances (entity repositories) or dicts keyed
by column or property name. Reads return the same kind of record.

Batch insert failure policy: chunks run sequentially in input order; the
first failing chunk aborts the batch and raises BatchInsertError with the
number of rows written by the previous chunks. Those rows are part of the
caller's transaction, so leaving the enclosing ``SqlDb.connection()``
block with the exception rolls them back.

Usage:
    repo = operator.repository(EntityTest)
    await repo.insert(EntityTest(id="t1", name="a", createTime="2024-01-01"))
    record = await repo.find_by_id("t1")
    total = await repo.create_query().count()
    await repo.create_delete().where("id", "t1").execute()
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import AsyncIterable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from genro_toolbox import get_uuid

from ..errors import BatchInsertError, ExecutionError, MappingError, MetadataError
from .dml import DeleteBuilder, InsertBuilder, UpdateBuilder
from .mapping import ColumnPropertyMapping, EntityResultWrapper, MapResultWrapper, ResultWrapper
from .query import QueryBuilder

if TYPE_CHECKING:
    from .metadata import Column, Database, Table

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500


class Repository:
    """Insert, read, update and delete records of one table.

    Args:
        database: Metadata root with registered executors.
        table: Table the records live in.
        record_type: Dataclass of the records; None for dict records.
    """

    def __init__(self, database: Database, table: Table, record_type: type | None = None):
        self.database = database
        self.table = table
        self.record_type = record_type
        self.mapping: ColumnPropertyMapping | None = None
        if record_type is not None:
            self.mapping = ColumnPropertyMapping.of(table, record_type)

    def __repr__(self) -> str:
        kind = self.record_type.__name__ if self.record_type else "dict"
        return f"Repository({self.table.name!r}, {kind})"

    @property
    def wrapper(self) -> ResultWrapper:
        if self.record_type is None:
            return MapResultWrapper(self.table, self.database.dialect)
        return EntityResultWrapper(self.table, self.database.dialect, self.record_type, self.mapping)

    # -------------------------------------------------------------------------
    # Primary key
    # -------------------------------------------------------------------------

    def _primary_keys(self, operation: str) -> list[Column]:
        pks = self.table.primary_keys
        if not pks:
            raise MetadataError("Table has no primary key", operation=operation, table=self.table.name)
        return pks

    def _id_values(self, id_: Any, operation: str) -> dict[str, Any]:
        """Column name -> value for a primary key given as scalar, tuple or mapping."""
        pks = self._primary_keys(operation)
        if isinstance(id_, Mapping):
            return {
                self.table.require_column(k, operation).name: v for k, v in id_.items()
            }
        if len(pks) == 1:
            return {pks[0].name: id_}
        if isinstance(id_, (tuple, list)) and len(id_) == len(pks):
            return {c.name: v for c, v in zip(pks, id_, strict=True)}
        raise MetadataError(
            f"Composite primary key needs {len(pks)} values", operation=operation, table=self.table.name
        )

    def new_pkey_value(self, column: Column) -> Any:
        """Value for a missing primary key: a UUID for string keys, else None."""
        if column.type_ is str:
            return get_uuid()
        return None

    # -------------------------------------------------------------------------
    # Record <-> column values
    # -------------------------------------------------------------------------

    def _values(self, record: Any) -> dict[str, Any]:
        if self.mapping is not None and not isinstance(record, Mapping):
            return self.mapping.values_of(record)
        if not isinstance(record, Mapping):
            raise MappingError(
                f"Expected a mapping record, got {type(record).__name__}", table=self.table.name
            )
        return {self.table.require_column(k, "insert").name: v for k, v in record.items()}

    def _set_property(self, record: Any, column: Column, value: Any) -> None:
        if isinstance(record, dict):
            key = column.name if column.name in record else column.property_name
            record[key] = value
        elif dataclasses.is_dataclass(record) and not type(record).__dataclass_params__.frozen:
            setattr(record, column.property_name, value)

    def _insert_values(self, record: Any) -> dict[str, Any]:
        values = self._values(record)
        for pk in self.table.primary_keys:
            if values.get(pk.name) is None:
                generated = self.new_pkey_value(pk)
                if generated is not None:
                    values[pk.name] = generated
                    self._set_property(record, pk, generated)
        return values

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def insert(self, record: Any) -> int:
        """Insert one record. A missing string primary key is generated."""
        return await self.create_insert().values(self._insert_values(record)).execute()

    async def insert_batch(
        self, records: Iterable[Any] | AsyncIterable[Any], chunk_size: int | None = None
    ) -> int:
        """Insert records in chunks, returning the number of rows inserted.

        Args:
            records: Sync or async iterable of records.
            chunk_size: Rows per chunk; defaults to Database.batch_size.

        Raises:
            BatchInsertError: If a chunk fails. Later chunks are not executed.
        """
        size = chunk_size
        if size is None:
            size = self.database.batch_size or DEFAULT_BATCH_SIZE
        if size <= 0:
            raise ValueError(f"chunk_size must be > 0, got {size}")
        completed = 0
        chunk_index = 0
        chunk: list[dict[str, Any]] = []

        async def flush() -> None:
            nonlocal completed, chunk_index, chunk
            builder = self.create_insert()
            for values in chunk:
                builder.values(values)
            try:
                completed += await builder.execute()
            except ExecutionError as e:
                raise BatchInsertError(
                    f"Batch insert failed: {e.__cause__ or e}",
                    completed=completed,
                    chunk_index=chunk_index,
                    request=e.request,
                    operation="insert_batch",
                    table=self.table.name,
                ) from e
            logger.debug(
                "Batch chunk %d inserted into %s (%d rows)", chunk_index, self.table.name, len(chunk)
            )
            chunk_index += 1
            chunk = []

        if isinstance(records, AsyncIterable):
            async for record in records:
                chunk.append(self._insert_values(record))
                if len(chunk) >= size:
                    await flush()
        else:
            for record in records:
                chunk.append(self._insert_values(record))
                if len(chunk) >= size:
                    await flush()
        if chunk:
            await flush()
        return completed

    async def save(self, record: Any) -> int:
        """Insert the record, or update it when its primary key exists.

        Uses the dialect's native upsert; otherwise checks for the key and
        runs an update or an insert.
        """
        values = self._insert_values(record)
        pks = self._primary_keys("save")
        dialect = self.database.dialect
        if dialect.render_upsert(self.table, list(values), [c.name for c in pks]) is not None:
            return await self.create_insert().values(values).upsert().execute()

        key = {c.name: values[c.name] for c in pks}
        exists = await self.create_query().where(**key).exists()
        if not exists:
            return await self.create_insert().values(values).execute()
        changes = {k: v for k, v in values.items() if k not in key}
        if not changes:
            return 0
        return await self.create_update().set_values(changes).where(**key).execute()

    async def find_by_id(self, id_: Any) -> Any | None:
        """Record with the given primary key, or None."""
        return await self.create_query().where(**self._id_values(id_, "find_by_id")).fetch_one()

    async def update_by_id(self, id_: Any, record: Any) -> int:
        """Update the record with the given primary key.

        Only non-None values are written; primary-key columns are never
        updated.
        """
        key = self._id_values(id_, "update_by_id")
        changes = {
            k: v
            for k, v in self._values(record).items()
            if v is not None and k not in key and not self.table.columns[k].primary_key
        }
        if not changes:
            return 0
        return await self.create_update().set_values(changes).where(**key).execute()

    async def delete_by_id(self, id_: Any) -> int:
        return await self.create_delete().where(**self._id_values(id_, "delete_by_id")).execute()

    # -------------------------------------------------------------------------
    # Builders
    # -------------------------------------------------------------------------

    def create_insert(self) -> InsertBuilder:
        return InsertBuilder(self.database, self.table)

    def create_query(self) -> QueryBuilder:
        return QueryBuilder(self.database, self.table, self.wrapper)

    def create_update(self) -> UpdateBuilder:
        return UpdateBuilder(self.database, self.table)

    def create_delete(self) -> DeleteBuilder:
        return DeleteBuilder(self.database, self.table)


__all__ = ["Repository", "DEFAULT_BATCH_SIZE"]
