# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Row to record conversion.

A raw row is a dict of column name to driver value. Wrappers turn it into a
record:

- MapResultWrapper: dict keyed by property name (column alias), values
  decoded to the column's semantic type
- EntityResultWrapper: dataclass instance built through a cached
  ColumnPropertyMapping

Unmapped row columns are ignored. Properties whose column is absent from the
row keep the dataclass default (None when the field has none). A value that
cannot be converted raises MappingError.
"""

from __future__ import annotations

import dataclasses
import types
import typing
from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

from ..errors import MappingError
from .dialects.base import coerce_value
from .metadata import FeatureId, FeatureType

if TYPE_CHECKING:
    from .dialects.base import Dialect
    from .execution import Row
    from .metadata import Column, Table


@dataclasses.dataclass(frozen=True)
class PropertyMapping:
    """One column bound to one record property."""

    column: Column
    property_name: str
    property_type: Any = None
    required: bool = False


def resolve_type(hint: Any) -> Any:
    """Concrete class of a type hint, unwrapping Optional[X] and generics."""
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        return resolve_type(args[0]) if len(args) == 1 else None
    if origin is not None:
        return origin if isinstance(origin, type) else None
    return hint if isinstance(hint, type) else None


class ColumnPropertyMapping:
    """Column to property correspondence for one (table, record type) pair.

    Built once and cached in the table's feature registry, keyed by
    ``FeatureId(COLUMN_PROPERTY_MAPPING, record_type)``. Use of() to get it.
    """

    def __init__(self, table: Table, record_type: type):
        if not dataclasses.is_dataclass(record_type):
            raise MappingError(
                f"Record type {record_type.__name__} is not a dataclass", table=table.name
            )
        self.table = table
        self.record_type = record_type
        try:
            hints = typing.get_type_hints(record_type)
        except NameError:
            hints = {}
        by_property = {c.property_name: c for c in table.columns.values()}
        self.properties: list[PropertyMapping] = []
        for f in dataclasses.fields(record_type):
            if not f.init:
                continue
            column = by_property.get(f.name) or table.get_column(f.name)
            if column is None:
                continue
            required = f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
            self.properties.append(
                PropertyMapping(column, f.name, resolve_type(hints.get(f.name)), required)
            )

    @classmethod
    def of(cls, table: Table, record_type: type) -> ColumnPropertyMapping:
        """Cached mapping for table and record type."""
        key = FeatureId.of(FeatureType.COLUMN_PROPERTY_MAPPING, record_type)
        mapping = table.features.get(key)
        if mapping is None:
            mapping = cls(table, record_type)
            table.features.add(key, mapping)
        return mapping

    def get(self, property_name: str) -> PropertyMapping | None:
        for prop in self.properties:
            if prop.property_name == property_name:
                return prop
        return None

    def values_of(self, record: Any) -> dict[str, Any]:
        """Column name -> property value for every mapped property of record."""
        return {p.column.name: getattr(record, p.property_name) for p in self.properties}


class ResultWrapper(ABC):
    """Converts raw rows into records."""

    @abstractmethod
    def wrap(self, row: Row) -> Any:
        ...

    def wrap_all(self, rows: Iterable[Row]) -> list[Any]:
        return [self.wrap(row) for row in rows]


class RowResultWrapper(ResultWrapper):
    """Returns rows unchanged."""

    def wrap(self, row: Row) -> Row:
        return row


class MapResultWrapper(ResultWrapper):
    """Decode row values and key them by property name."""

    def __init__(self, table: Table, dialect: Dialect, use_property_names: bool = True):
        self.table = table
        self.dialect = dialect
        self.use_property_names = use_property_names

    def wrap(self, row: Row) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in row.items():
            column = self.table.columns.get(key) or self.table.get_column(key)
            if column is None:
                result[key] = value
                continue
            name = column.property_name if self.use_property_names else column.name
            result[name] = self.dialect.decode_value(column, value)
        return result


class EntityResultWrapper(ResultWrapper):
    """Build dataclass records from rows.

    Values are decoded with Dialect.decode_value(), then converted to the
    property's annotated type when it differs from the column's type.
    """

    def __init__(
        self,
        table: Table,
        dialect: Dialect,
        record_type: type,
        mapping: ColumnPropertyMapping | None = None,
    ):
        self.table = table
        self.dialect = dialect
        self.record_type = record_type
        self.mapping = mapping or ColumnPropertyMapping.of(table, record_type)

    def _lookup(self, row: Row, column: Column) -> tuple[bool, Any]:
        if column.name in row:
            return True, row[column.name]
        lowered = column.name.lower()
        for key, value in row.items():
            if key.lower() == lowered:
                return True, value
        return False, None

    def wrap(self, row: Row) -> Any:
        kwargs: dict[str, Any] = {}
        for prop in self.mapping.properties:
            found, raw = self._lookup(row, prop.column)
            if not found:
                if prop.required:
                    kwargs[prop.property_name] = None
                continue
            value = self.dialect.decode_value(prop.column, raw)
            target = prop.property_type
            if value is not None and target is not None and not isinstance(value, target):
                try:
                    value = coerce_value(target, value)
                except (TypeError, ValueError, ArithmeticError) as e:
                    raise MappingError(
                        f"Cannot convert {value!r} to {target.__name__}",
                        operation="wrap",
                        table=self.table.name,
                        column=prop.column.name,
                    ) from e
            kwargs[prop.property_name] = value
        return self.record_type(**kwargs)


__all__ = [
    "PropertyMapping",
    "resolve_type",
    "ColumnPropertyMapping",
    "ResultWrapper",
    "RowResultWrapper",
    "MapResultWrapper",
    "EntityResultWrapper",
]
