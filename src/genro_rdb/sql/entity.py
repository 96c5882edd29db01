# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Declarative entities: dataclasses described as tables.

An entity is a dataclass whose fields carry column options in their
metadata. parse_entity() reads it into a Table and registers the
column-property mapping on it; it does not register the table in any
schema, that is the job of the DDL builder.

Fields inherited from dataclass bases are part of the flat column list, so
a set of shared fields can live in a base dataclass.

Example:
    @entity("entity_test", indexes={"idx_name_state": "name asc,state desc"})
    @dataclass
    class EntityTest:
        id: str = column(length=32, primary_key=True)
        name: str | None = column(default=None)
        state: int | None = column(default=None)
        createTime: str | None = column("create_time", default=None)

    table = parse_entity(EntityTest)
    table.get_column("createTime").name   # 'create_time'
"""

from __future__ import annotations

import dataclasses
import re
import typing
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from ..errors import MetadataError
from .mapping import ColumnPropertyMapping, resolve_type
from .metadata import Column, Index, Schema, Table

METADATA_KEY = "genro_rdb"
ENTITY_ATTR = "__rdb_entity__"


@dataclasses.dataclass(frozen=True)
class ColumnOptions:
    """Column options stored in a dataclass field's metadata."""

    name: str | None = None
    type_: type | None = None
    db_type: str | None = None
    length: int | None = None
    precision: int | None = None
    scale: int | None = None
    nullable: bool = True
    primary_key: bool = False
    db_default: Any = None
    comment: str | None = None
    transient: bool = False


@dataclasses.dataclass(frozen=True)
class EntityOptions:
    name: str
    schema: str | None = None
    comment: str | None = None
    indexes: Any = None


def column(
    name: str | None = None,
    *,
    type_: type | None = None,
    db_type: str | None = None,
    length: int | None = None,
    precision: int | None = None,
    scale: int | None = None,
    nullable: bool = True,
    primary_key: bool = False,
    db_default: Any = None,
    comment: str | None = None,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
) -> Any:
    """Dataclass field mapped to a column.

    Args:
        name: Column name; defaults to the field name. When it differs, the
            field name becomes the column alias.
        type_: Semantic type; defaults to the field's annotation.
        db_default: Value or callable used by inserts when the value is None,
            and rendered as DEFAULT in DDL when it is a literal.
        default: Dataclass default for the field.
        default_factory: Dataclass default factory for the field.
    """
    options = ColumnOptions(
        name=name,
        type_=type_,
        db_type=db_type,
        length=length,
        precision=precision,
        scale=scale,
        nullable=nullable,
        primary_key=primary_key,
        db_default=db_default,
        comment=comment,
    )
    return dataclasses.field(
        default=default, default_factory=default_factory, metadata={METADATA_KEY: options}
    )


def transient(default: Any = None) -> Any:
    """Dataclass field that is not mapped to any column."""
    return dataclasses.field(default=default, metadata={METADATA_KEY: ColumnOptions(transient=True)})


def entity(
    name: str | None = None,
    schema: str | None = None,
    comment: str | None = None,
    indexes: Mapping[str, str | Sequence[str]] | Sequence[Index] | None = None,
) -> Callable[[type], type]:
    """Class decorator attaching table options to an entity dataclass."""

    def decorator(cls: type) -> type:
        setattr(cls, ENTITY_ATTR, EntityOptions(name or table_name(cls), schema, comment, indexes))
        return cls

    return decorator


def table_name(cls: type) -> str:
    """Default table name: class name in snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", cls.__name__).lower()


def entity_table_name(record_type: type) -> str:
    """Table name of an entity: the @entity name, else table_name()."""
    options: EntityOptions | None = getattr(record_type, ENTITY_ATTR, None)
    return options.name if options else table_name(record_type)


def parse_entity(record_type: type, name: str | None = None) -> Table:
    """Build Table metadata from an entity dataclass.

    Args:
        record_type: Dataclass, optionally decorated with @entity.
        name: Table name, overrides the decorator's.

    Returns:
        Unregistered Table with columns in field order, indexes and the
        ColumnPropertyMapping for record_type.

    Raises:
        MetadataError: If record_type is not a dataclass, or a field type
            cannot be resolved, or an index references an unknown column.
    """
    if not dataclasses.is_dataclass(record_type):
        raise MetadataError(f"Entity {record_type.__name__} is not a dataclass")
    options: EntityOptions | None = getattr(record_type, ENTITY_ATTR, None)
    tname = name or entity_table_name(record_type)
    table = Table(tname, comment=options.comment if options else None)
    if options and options.schema:
        table.schema = Schema(options.schema)

    try:
        hints = typing.get_type_hints(record_type)
    except NameError as e:
        raise MetadataError(
            f"Cannot resolve field types of {record_type.__name__}: {e}", table=tname
        ) from e

    for f in dataclasses.fields(record_type):
        opts: ColumnOptions = f.metadata.get(METADATA_KEY) or ColumnOptions()
        if opts.transient:
            continue
        col_name = opts.name or f.name
        semantic_type = opts.type_ or resolve_type(hints.get(f.name))
        table.add_column(
            Column(
                col_name,
                semantic_type,
                alias=f.name if f.name != col_name else None,
                db_type=opts.db_type,
                length=opts.length,
                precision=opts.precision,
                scale=opts.scale,
                nullable=opts.nullable,
                primary_key=opts.primary_key,
                default=opts.db_default,
                comment=opts.comment,
            )
        )

    indexes = options.indexes if options else None
    if isinstance(indexes, Mapping):
        for index_name, columns in indexes.items():
            table.index(index_name, columns)
    elif indexes:
        for idx in indexes:
            table.index(idx.name, [f"{ic.column} {ic.direction}" for ic in idx.columns], idx.unique)

    ColumnPropertyMapping.of(table, record_type)
    return table


__all__ = [
    "ColumnOptions",
    "EntityOptions",
    "column",
    "transient",
    "entity",
    "table_name",
    "entity_table_name",
    "parse_entity",
]
