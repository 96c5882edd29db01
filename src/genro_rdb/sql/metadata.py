# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""In-memory metadata model: Database -> Schema -> Table -> Column.

The model is backend-independent. Semantic types are plain Python types
(str, int, float, bool, Decimal, datetime, date, bytes, dict, list); the
active Dialect maps them to database type names.

Every Database and Table carries a FeatureRegistry: a lookup table from a
typed FeatureId to a capability object (executors, column-property mappings).

Example:
    Declaring a table::

        table = Table("entity_test")
        table.column("id", str, length=32, primary_key=True)
        table.column("name", str)
        table.column("create_time", str, alias="createTime")
        table.index("idx_name", "name asc")

        database = Database(SqliteDialect())
        database.current_schema.add_table(table)
        database.find_table(None, "entity_test")  # -> table
"""

from __future__ import annotations

import copy
import enum
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..errors import MetadataError

if TYPE_CHECKING:
    from .dialects.base import Dialect
    from .execution import BlockingExecutor, StreamingExecutor


# -----------------------------------------------------------------------------
# Feature registry
# -----------------------------------------------------------------------------


class FeatureType(enum.Enum):
    """Capability kinds that can be attached to a metadata node."""

    BLOCKING_EXECUTOR = "blocking_executor"
    STREAMING_EXECUTOR = "streaming_executor"
    COLUMN_PROPERTY_MAPPING = "column_property_mapping"


@dataclass(frozen=True)
class FeatureId:
    """Key of a feature: capability kind plus optional discriminator.

    The discriminator distinguishes several features of the same kind,
    e.g. one column-property mapping per record type.
    """

    type: FeatureType
    discriminator: Any = None

    @classmethod
    def of(cls, feature_type: FeatureType, discriminator: Any = None) -> FeatureId:
        return cls(feature_type, discriminator)


BLOCKING_EXECUTOR = FeatureId(FeatureType.BLOCKING_EXECUTOR)
STREAMING_EXECUTOR = FeatureId(FeatureType.STREAMING_EXECUTOR)


class FeatureRegistry:
    """Lookup-only mapping from FeatureId to feature instance."""

    def __init__(self) -> None:
        self._features: dict[FeatureId, Any] = {}

    def add(self, key: FeatureId, feature: Any) -> None:
        self._features[key] = feature

    def get(self, key: FeatureId) -> Any | None:
        return self._features.get(key)

    def of_type(self, feature_type: FeatureType) -> list[Any]:
        """Return all features of a capability kind."""
        return [f for k, f in self._features.items() if k.type is feature_type]

    def __contains__(self, key: object) -> bool:
        return key in self._features

    def __len__(self) -> int:
        return len(self._features)


# -----------------------------------------------------------------------------
# Columns and indexes
# -----------------------------------------------------------------------------


@dataclass
class Column:
    """Column definition.

    Attributes:
        name: Column name in the database.
        type_: Semantic (Python) type, e.g. ``str`` or ``Decimal``.
        alias: Property name used for record mapping (defaults to name).
        db_type: Explicit database type, overrides the dialect mapping.
        length: Length for character types.
        precision: Precision for numeric types.
        scale: Scale for numeric types.
        nullable: Whether NULL is allowed. Forced False for primary keys.
        primary_key: Member of the table's primary key.
        default: Literal default, SqlExpression, or callable used on insert.
        comment: Column comment.
    """

    name: str
    type_: type | None = None
    alias: str | None = None
    db_type: str | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    primary_key: bool = False
    default: Any = None
    comment: str | None = None
    table: Table | None = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.primary_key:
            self.nullable = False

    @property
    def property_name(self) -> str:
        """Name of the mapped record property."""
        return self.alias or self.name

    @property
    def full_name(self) -> str:
        return f"{self.table.name}.{self.name}" if self.table else self.name

    def copy(self) -> Column:
        """Detached copy (no owning table)."""
        clone = copy.copy(self)
        clone.table = None
        return clone


@dataclass(frozen=True)
class IndexColumn:
    column: str
    direction: str = "asc"


@dataclass
class Index:
    """Index declaration: name plus ordered (column, direction) list."""

    name: str
    columns: list[IndexColumn] = field(default_factory=list)
    unique: bool = False

    @classmethod
    def parse(cls, name: str, column_list: str | Sequence[str], unique: bool = False) -> Index:
        """Build an index from ``"name asc,state desc"`` or a list of such items."""
        items = column_list.split(",") if isinstance(column_list, str) else list(column_list)
        columns = []
        for item in items:
            parts = item.strip().split()
            if not parts:
                continue
            direction = parts[1].lower() if len(parts) > 1 else "asc"
            if direction not in ("asc", "desc"):
                raise MetadataError(f"Invalid index direction '{parts[1]}' in index '{name}'")
            columns.append(IndexColumn(parts[0], direction))
        if not columns:
            raise MetadataError(f"Index '{name}' has no columns")
        return cls(name, columns, unique)


# -----------------------------------------------------------------------------
# Table
# -----------------------------------------------------------------------------


class Table:
    """Table definition with ordered columns, indexes and features.

    Column insertion order is significant: DDL emits columns in this order
    and queries select them in this order.
    """

    def __init__(self, name: str, schema: Schema | None = None, comment: str | None = None):
        if not name:
            raise MetadataError("Table must define 'name'")
        self.name = name
        self.schema = schema
        self.comment = comment
        self.columns: dict[str, Column] = {}
        self.indexes: dict[str, Index] = {}
        self.features = FeatureRegistry()
        self._primary_key: tuple[str, ...] | None = None

    def __repr__(self) -> str:
        return f"Table({self.full_name!r}, columns={list(self.columns)})"

    @property
    def full_name(self) -> str:
        return f"{self.schema.name}.{self.name}" if self.schema else self.name

    # -------------------------------------------------------------------------
    # Columns
    # -------------------------------------------------------------------------

    def column(self, name: str, type_: type | None = None, **kwargs: Any) -> Column:
        """Declare a column and return it."""
        return self.add_column(Column(name, type_, **kwargs))

    def add_column(self, column: Column) -> Column:
        """Add a column; a column with the same name is replaced in place."""
        if column.primary_key and self._primary_key is not None:
            if column.name not in self._primary_key:
                raise MetadataError(
                    "Duplicate primary key declaration",
                    table=self.name,
                    column=column.name,
                )
        column.table = self
        self.columns[column.name] = column
        return column

    def get_column(self, name: str) -> Column | None:
        """Find a column by name, then by alias, then case-insensitively."""
        col = self.columns.get(name)
        if col is not None:
            return col
        for col in self.columns.values():
            if col.alias == name:
                return col
        lowered = name.lower()
        for col in self.columns.values():
            if col.name.lower() == lowered:
                return col
        return None

    def require_column(self, name: str, operation: str | None = None) -> Column:
        """Like get_column() but raises MetadataError when missing."""
        col = self.get_column(name)
        if col is None:
            raise MetadataError(
                "Column not found", operation=operation, table=self.name, column=name
            )
        return col

    def __iter__(self) -> Iterator[Column]:
        return iter(self.columns.values())

    # -------------------------------------------------------------------------
    # Primary key
    # -------------------------------------------------------------------------

    @property
    def primary_keys(self) -> list[Column]:
        if self._primary_key is not None:
            return [self.columns[n] for n in self._primary_key]
        return [c for c in self.columns.values() if c.primary_key]

    def set_primary_key(self, *names: str) -> None:
        """Declare the primary-key column set.

        Raises:
            MetadataError: If a different primary key is already declared
                or a column is unknown.
        """
        current = tuple(c.name for c in self.primary_keys)
        if current and current != names:
            raise MetadataError(
                f"Duplicate primary key declaration {names!r}, already {current!r}",
                table=self.name,
            )
        for n in names:
            col = self.require_column(n, "primary_key")
            col.primary_key = True
            col.nullable = False
        self._primary_key = tuple(names)

    # -------------------------------------------------------------------------
    # Indexes
    # -------------------------------------------------------------------------

    def index(
        self, name: str, columns: str | Sequence[str], unique: bool = False
    ) -> Index:
        """Declare an index from a ``"col asc,col2 desc"`` column list."""
        idx = Index.parse(name, columns, unique)
        idx.columns = [
            IndexColumn(self.require_column(ic.column, "index").name, ic.direction)
            for ic in idx.columns
        ]
        self.indexes[name] = idx
        return idx

    def add_index(self, index: Index) -> Index:
        self.indexes[index.name] = index
        return index

    # -------------------------------------------------------------------------
    # Copy
    # -------------------------------------------------------------------------

    def copy(self) -> Table:
        """Copy columns and indexes; features and schema are not copied."""
        clone = Table(self.name, comment=self.comment)
        for col in self.columns.values():
            clone.add_column(col.copy())
        for idx in self.indexes.values():
            clone.add_index(copy.deepcopy(idx))
        clone._primary_key = self._primary_key
        return clone


# -----------------------------------------------------------------------------
# Schema and Database
# -----------------------------------------------------------------------------


class Schema:
    """Named container of tables."""

    def __init__(self, name: str):
        self.name = name
        self.tables: dict[str, Table] = {}

    def __repr__(self) -> str:
        return f"Schema({self.name!r}, tables={list(self.tables)})"

    def add_table(self, table: Table) -> Table:
        """Register a table; last write wins on name conflict."""
        table.schema = self
        self.tables[table.name] = table
        return table

    def get_table(self, name: str) -> Table | None:
        return self.tables.get(name)

    def remove_table(self, name: str) -> Table | None:
        return self.tables.pop(name, None)


class Database:
    """Root of the metadata graph: dialect, schemas and features.

    Attributes:
        dialect: Active Dialect.
        current_schema: Schema used when a table name is not qualified.
        schemas: Named schemas.
        features: Registry of executors and other capabilities.
        batch_size: Default chunk size for batch inserts.
    """

    def __init__(self, dialect: Dialect, schema: str | Schema | None = None, batch_size: int = 500):
        self.dialect = dialect
        self.schemas: dict[str, Schema] = {}
        self.features = FeatureRegistry()
        self.batch_size = batch_size
        if schema is None:
            schema = dialect.default_schema
        if isinstance(schema, str):
            schema = Schema(schema)
        self.current_schema = self.add_schema(schema)

    def add_schema(self, schema: Schema) -> Schema:
        """Register a schema; last write wins on name conflict."""
        self.schemas[schema.name] = schema
        return schema

    def set_current_schema(self, schema: Schema) -> None:
        self.current_schema = self.add_schema(schema)

    def get_schema(self, name: str) -> Schema | None:
        return self.schemas.get(name)

    def find_table(self, schema: str | None, name: str) -> Table | None:
        """Find a table by schema and name.

        A dotted ``"schema.table"`` name overrides the schema argument. A
        None schema means the current schema.
        """
        if schema is None and "." in name:
            schema, name = name.split(".", 1)
        owner = self.current_schema if schema is None else self.schemas.get(schema)
        if owner is None:
            return None
        return owner.get_table(name)

    def get_table(self, name: str, operation: str | None = None) -> Table:
        """Like find_table() on the current schema, raising when missing."""
        table = self.find_table(None, name)
        if table is None:
            raise MetadataError("Table not found", operation=operation, table=name)
        return table

    # -------------------------------------------------------------------------
    # Features
    # -------------------------------------------------------------------------

    def add_feature(self, key: FeatureId, feature: Any) -> None:
        self.features.add(key, feature)

    def get_feature(self, key: FeatureId) -> Any | None:
        return self.features.get(key)

    def register_executor(self, executor: BlockingExecutor | StreamingExecutor) -> None:
        """Register an executor for both execution modes.

        The missing mode is derived through the matching adapter, so a
        backend only needs to implement one native mode.
        """
        from .execution import as_blocking, as_streaming

        self.add_feature(BLOCKING_EXECUTOR, as_blocking(executor))
        self.add_feature(STREAMING_EXECUTOR, as_streaming(executor))

    @property
    def blocking_executor(self) -> BlockingExecutor:
        executor = self.get_feature(BLOCKING_EXECUTOR)
        if executor is None:
            raise MetadataError("No blocking executor registered")
        return executor

    @property
    def streaming_executor(self) -> StreamingExecutor:
        executor = self.get_feature(STREAMING_EXECUTOR)
        if executor is None:
            raise MetadataError("No streaming executor registered")
        return executor


__all__ = [
    "FeatureType",
    "FeatureId",
    "FeatureRegistry",
    "BLOCKING_EXECUTOR",
    "STREAMING_EXECUTOR",
    "Column",
    "Index",
    "IndexColumn",
    "Table",
    "Schema",
    "Database",
]
