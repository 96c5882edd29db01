# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Async query builder with fluent API, sorting, paging and count.

Usage:
    rows = await operator.query("users").where("active", True).fetch()
    row = await operator.query("users").where(id="u1").fetch_one()
    total = await operator.query("users").where("active", True).count()

    page = await (
        operator.query("users")
        .select("id", "name")
        .where("score", "gt", 10)
        .or_()
        .nest(lambda c: c.like("name", "a%").not_null("email"))
        .order_by(desc("score"), asc("id"))
        .paging(2, 20)
        .fetch()
    )

    async with contextlib.aclosing(operator.query("users").stream()) as rows:
        async for row in rows:
            ...

Paging: ``paging(i, size)`` selects rows ``[i*size, (i+1)*size)`` of the
ordered result. Pages are a partition of the result only when the order is
total: without order_by() (or with ties on the sort keys) the backend is
free to return rows in a different order on each execution.
"""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..errors import RdbError
from .conditions import Conditional
from .dml import TableOperation
from .mapping import MapResultWrapper, ResultWrapper
from .request import SqlFragment, SqlRequest

if TYPE_CHECKING:
    from .metadata import Column, Database, Table

ASC = "asc"
DESC = "desc"


@dataclass(frozen=True)
class SortSpec:
    column: str
    direction: str = ASC


def asc(column: str) -> SortSpec:
    return SortSpec(column, ASC)


def desc(column: str) -> SortSpec:
    return SortSpec(column, DESC)


def parse_sort(key: str | SortSpec) -> SortSpec:
    """Accept a SortSpec, ``"name"``, ``"name desc"`` or ``"-name"``."""
    if isinstance(key, SortSpec):
        return key
    parts = key.strip().split()
    if len(parts) == 1 and parts[0].startswith("-"):
        return SortSpec(parts[0][1:], DESC)
    direction = parts[1].lower() if len(parts) > 1 else ASC
    return SortSpec(parts[0], direction)


class QueryBuilder(TableOperation, Conditional):
    """SELECT builder.

    Results go through a ResultWrapper; the default MapResultWrapper returns
    dicts keyed by property name with decoded values.
    """

    operation = "query"

    def __init__(self, database: Database, table: Table, wrapper: ResultWrapper | None = None):
        TableOperation.__init__(self, database, table)
        Conditional.__init__(self)
        self._select: list[Column] = []
        self._order: list[SortSpec] = []
        self._paging: tuple[int, int] | None = None
        self.wrapper = wrapper or MapResultWrapper(table, self.dialect)

    def select(self, *columns: str) -> QueryBuilder:
        """Columns to select, by name or property name. Default: all columns."""
        self._select.extend(self.table.require_column(c, self.operation) for c in columns)
        return self

    def order_by(self, *keys: str | SortSpec) -> QueryBuilder:
        """Append sort keys; earlier keys take precedence."""
        for key in keys:
            sort = parse_sort(key)
            if sort.direction not in (ASC, DESC):
                raise self._compile_error(f"Invalid sort direction '{sort.direction}'", sort.column)
            self._order.append(sort)
        return self

    def paging(self, page_index: int, page_size: int) -> QueryBuilder:
        """Select the zero-based page ``page_index`` of ``page_size`` rows."""
        if page_index < 0:
            raise self._compile_error(f"Page index must be >= 0, got {page_index}")
        if page_size <= 0:
            raise self._compile_error(f"Page size must be > 0, got {page_size}")
        self._paging = (page_index, page_size)
        return self

    def wrap_with(self, wrapper: ResultWrapper) -> QueryBuilder:
        self.wrapper = wrapper
        return self

    # -------------------------------------------------------------------------
    # Compilation
    # -------------------------------------------------------------------------

    def _from_where(self) -> SqlFragment:
        sql = f" FROM {self.dialect.qualified_name(self.table)}"
        where = self._where(self)
        if where:
            return SqlFragment(f"{sql} WHERE {where.sql}", where.parameters)
        return SqlFragment(sql)

    def compile(self, paging: tuple[int, int] | None = None) -> SqlRequest:
        """Compile the SELECT, optionally overriding the paging."""
        columns = self._select or list(self.table.columns.values())
        if not columns:
            raise self._compile_error("Table has no columns")
        head = "SELECT " + ", ".join(self.dialect.identifier(c.name) for c in columns)
        body = self._from_where()
        sql = head + body.sql
        params = list(body.parameters)
        if self._order:
            keys = []
            for sort in self._order:
                col = self.table.require_column(sort.column, self.operation)
                keys.append(f"{self.dialect.identifier(col.name)} {sort.direction.upper()}")
            sql += " ORDER BY " + ", ".join(keys)
        page = paging or self._paging
        if page is not None:
            index, size = page
            fragment = self.dialect.render_paging(index * size, size)
            sql += f" {fragment.sql}"
            params.extend(fragment.parameters)
        return SqlRequest(sql, tuple(params))

    def compile_count(self) -> SqlRequest:
        """COUNT(*) over the same conditions, ignoring order and paging."""
        body = self._from_where()
        return SqlRequest(
            f"SELECT COUNT(*) AS {self.dialect.quote_identifier('total')}{body.sql}",
            body.parameters,
        )

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def _select_rows(self, request: SqlRequest) -> list[dict[str, Any]]:
        try:
            return await self.database.blocking_executor.select(request)
        except RdbError:
            raise
        except Exception as e:
            raise self._execution_error(e, request) from e

    async def fetch(self) -> list[Any]:
        """Execute and return all wrapped rows."""
        rows = await self._select_rows(self.compile())
        return self.wrapper.wrap_all(rows)

    async def fetch_one(self) -> Any | None:
        """Execute and return the first wrapped row of the current page, or None."""
        rows = await self._select_rows(self.compile(paging=None if self._paging else (0, 1)))
        return self.wrapper.wrap(rows[0]) if rows else None

    async def count(self) -> int:
        rows = await self._select_rows(self.compile_count())
        if not rows:
            return 0
        row = rows[0]
        return int(row.get("total", next(iter(row.values()))))

    async def exists(self) -> bool:
        """Return True if any matching row exists."""
        return await self.count() > 0

    async def stream(self) -> AsyncIterator[Any]:
        """Execute on the streaming executor, yielding wrapped rows on demand.

        Closing the iterator early closes the underlying cursor.
        """
        request = self.compile()
        executor = self.database.streaming_executor
        try:
            async with contextlib.aclosing(executor.stream(request)) as rows:
                async for row in rows:
                    yield self.wrapper.wrap(row)
        except RdbError:
            raise
        except Exception as e:
            raise self._execution_error(e, request) from e


__all__ = ["ASC", "DESC", "SortSpec", "asc", "desc", "parse_sort", "QueryBuilder"]
