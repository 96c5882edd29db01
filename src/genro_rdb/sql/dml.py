# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Insert, update and delete builders.

Builders compile intent plus table metadata into SqlRequests and run them
on the Database's blocking executor. Compilation errors (MetadataError,
CompileError) are raised before any statement reaches the executor; errors
from the executor are re-raised as ExecutionError carrying the request.

Update and delete refuse to compile without conditions unless
allow_unconditional() was called.

Example:
    await operator.insert("users").columns("id", "name").values("1", "A").values("2", "B").execute()
    await operator.update("users").set("name", "C").where("id", "1").execute()
    await operator.delete("users").where("id", "2").execute()
    await operator.delete("users").allow_unconditional().execute()
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ..errors import CompileError, ExecutionError, RdbError
from .conditions import ConditionCompiler, Conditional
from .dialects.base import SqlExpression
from .request import SqlFragment, SqlParameter, SqlRequest

if TYPE_CHECKING:
    from .metadata import Column, Database, Table


class TableOperation:
    """Common state of builders bound to one table."""

    operation = "sql"

    def __init__(self, database: Database, table: Table):
        self.database = database
        self.table = table
        self.dialect = database.dialect

    def _compile_error(self, message: str, column: str | None = None) -> CompileError:
        return CompileError(message, operation=self.operation, table=self.table.name, column=column)

    def _where(self, conditional: Conditional) -> SqlFragment:
        compiler = ConditionCompiler(self.table, self.dialect, self.operation)
        return compiler.compile(conditional.terms)

    def _execution_error(self, e: Exception, request: SqlRequest) -> ExecutionError:
        return ExecutionError(
            f"{self.operation} failed: {e}",
            request=request,
            operation=self.operation,
            table=self.table.name,
        )

    async def _update(self, request: SqlRequest) -> int:
        try:
            return await self.database.blocking_executor.update(request)
        except RdbError:
            raise
        except Exception as e:
            raise self._execution_error(e, request) from e


# -----------------------------------------------------------------------------
# Insert
# -----------------------------------------------------------------------------


class InsertBuilder(TableOperation):
    """INSERT builder supporting several value rows.

    Rows are given positionally after columns(), or as mappings keyed by
    column name or property name. Missing values are None; a None value is
    replaced by the column default (callables are invoked per row).

    Where the dialect allows it, rows are packed into multi-row statements
    bounded by the dialect's parameter limit; otherwise one statement is
    compiled per row.
    """

    operation = "insert"

    def __init__(self, database: Database, table: Table):
        super().__init__(database, table)
        self._columns: list[Column] | None = None
        self._rows: list[tuple[list[Any] | None, dict[str, Any] | None]] = []
        self._conflict: list[str] | None = None

    def columns(self, *names: str) -> InsertBuilder:
        self._columns = [self.table.require_column(n, self.operation) for n in names]
        return self

    def values(self, *args: Any, **kwargs: Any) -> InsertBuilder:
        """Add one row.

        Forms:
            values("1", "A")                 # positional, after columns()
            values({"id": "1", "name": "A"}) # mapping
            values(id="1", name="A")         # keywords
        """
        if len(args) == 1 and isinstance(args[0], Mapping) and not kwargs:
            self._rows.append((None, dict(args[0])))
        elif args and kwargs:
            raise self._compile_error("values() takes positional or named values, not both")
        elif args:
            self._rows.append((list(args), None))
        else:
            self._rows.append((None, dict(kwargs)))
        return self

    def upsert(self, *conflict_columns: str) -> InsertBuilder:
        """Turn the insert into an upsert on conflict_columns (default: primary key)."""
        names = conflict_columns or tuple(c.name for c in self.table.primary_keys)
        if not names:
            raise self._compile_error("Upsert needs conflict columns or a primary key")
        self._conflict = [self.table.require_column(n, self.operation).name for n in names]
        return self

    @property
    def row_count(self) -> int:
        return len(self._rows)

    # -------------------------------------------------------------------------
    # Compilation
    # -------------------------------------------------------------------------

    def _resolve_columns(self) -> list[Column]:
        if self._columns is not None:
            return self._columns
        seen: dict[str, Column] = {}
        for _, named in self._rows:
            if named is None:
                raise self._compile_error("Positional values require columns()")
            for key in named:
                col = self.table.require_column(key, self.operation)
                seen[col.name] = col
        # Columns with a default are always written so the default applies
        for col in self.table.columns.values():
            if col.default is not None and col.name not in seen:
                seen[col.name] = col
        return [c for c in self.table.columns.values() if c.name in seen]

    def _row_values(self, columns: list[Column], row: tuple[list[Any] | None, dict[str, Any] | None]) -> list[Any]:
        positional, named = row
        if positional is not None:
            if len(positional) != len(columns):
                raise self._compile_error(
                    f"Row has {len(positional)} values for {len(columns)} columns"
                )
            values = list(positional)
        else:
            by_column: dict[str, Any] = {}
            for key, value in named.items():
                by_column[self.table.require_column(key, self.operation).name] = value
            values = [by_column.get(c.name) for c in columns]
        for i, col in enumerate(columns):
            if values[i] is None and col.default is not None:
                values[i] = col.default() if callable(col.default) else col.default
        return values

    def _row_fragment(self, columns: list[Column], values: list[Any]) -> SqlFragment:
        parts: list[str] = []
        params: list[SqlParameter] = []
        for col, value in zip(columns, values, strict=True):
            if isinstance(value, SqlExpression):
                parts.append(value.sql)
            else:
                parts.append(self.dialect.placeholder)
                params.append(self.dialect.parameter(col, value))
        return SqlFragment(f"({', '.join(parts)})", tuple(params))

    def compile(self) -> list[SqlRequest]:
        """Compile the rows into one or more INSERT statements.

        Raises:
            CompileError: If there are no rows or a row does not match the
                column list, or upsert() is used on a dialect without it.
            MetadataError: If a column is unknown.
        """
        if not self._rows:
            raise self._compile_error("No values to insert")
        columns = self._resolve_columns()
        if not columns:
            raise self._compile_error("No columns to insert")

        prefix = (
            f"INSERT INTO {self.dialect.qualified_name(self.table)} "
            f"({', '.join(self.dialect.identifier(c.name) for c in columns)}) VALUES "
        )
        suffix = ""
        if self._conflict is not None:
            clause = self.dialect.render_upsert(
                self.table, [c.name for c in columns], self._conflict
            )
            if clause is None:
                raise self._compile_error(f"Dialect '{self.dialect.name}' has no native upsert")
            suffix = clause

        fragments = [self._row_fragment(columns, self._row_values(columns, r)) for r in self._rows]
        per_statement = 1
        if self.dialect.supports_multi_row_insert:
            per_statement = max(1, self.dialect.max_parameters // len(columns))

        requests = []
        for start in range(0, len(fragments), per_statement):
            rows = SqlFragment.join(", ", fragments[start : start + per_statement])
            requests.append(SqlRequest(prefix + rows.sql + suffix, rows.parameters))
        return requests

    async def execute(self) -> int:
        """Run the compiled statements in order, return the total affected count."""
        total = 0
        for request in self.compile():
            total += await self._update(request)
        return total


# -----------------------------------------------------------------------------
# Update / Delete
# -----------------------------------------------------------------------------


class UpdateBuilder(TableOperation, Conditional):
    """UPDATE builder: ``update(table).set(col, value).where(...).execute()``."""

    operation = "update"

    def __init__(self, database: Database, table: Table):
        TableOperation.__init__(self, database, table)
        Conditional.__init__(self)
        self._sets: list[tuple[Column, Any]] = []
        self._unconditional = False

    def set(self, column: str, value: Any) -> UpdateBuilder:
        col = self.table.require_column(column, self.operation)
        self._sets = [(c, v) for c, v in self._sets if c.name != col.name]
        self._sets.append((col, value))
        return self

    def set_values(self, values: Mapping[str, Any] | None = None, **kwargs: Any) -> UpdateBuilder:
        """Set several columns from a mapping keyed by column or property name."""
        for column, value in {**(values or {}), **kwargs}.items():
            self.set(column, value)
        return self

    def allow_unconditional(self) -> UpdateBuilder:
        """Permit compiling without conditions (updates every row)."""
        self._unconditional = True
        return self

    def compile(self) -> SqlRequest:
        """Compile the UPDATE statement.

        Raises:
            CompileError: If nothing is set, or there are no conditions and
                allow_unconditional() was not called.
        """
        if not self._sets:
            raise self._compile_error("Update has no SET clause")
        if not self.terms and not self._unconditional:
            raise self._compile_error("Unconditional update refused, call allow_unconditional()")
        parts: list[str] = []
        params: list[SqlParameter] = []
        for col, value in self._sets:
            name = self.dialect.identifier(col.name)
            if isinstance(value, SqlExpression):
                parts.append(f"{name} = {value.sql}")
            else:
                parts.append(f"{name} = {self.dialect.placeholder}")
                params.append(self.dialect.parameter(col, value))
        sql = f"UPDATE {self.dialect.qualified_name(self.table)} SET {', '.join(parts)}"
        where = self._where(self)
        if where:
            sql += f" WHERE {where.sql}"
            params.extend(where.parameters)
        return SqlRequest(sql, tuple(params))

    async def execute(self) -> int:
        return await self._update(self.compile())


class DeleteBuilder(TableOperation, Conditional):
    """DELETE builder: ``delete(table).where(...).execute()``."""

    operation = "delete"

    def __init__(self, database: Database, table: Table):
        TableOperation.__init__(self, database, table)
        Conditional.__init__(self)
        self._unconditional = False

    def allow_unconditional(self) -> DeleteBuilder:
        """Permit compiling without conditions (deletes every row)."""
        self._unconditional = True
        return self

    def compile(self) -> SqlRequest:
        if not self.terms and not self._unconditional:
            raise self._compile_error("Unconditional delete refused, call allow_unconditional()")
        sql = f"DELETE FROM {self.dialect.qualified_name(self.table)}"
        where = self._where(self)
        if where:
            return SqlRequest(f"{sql} WHERE {where.sql}", where.parameters)
        return SqlRequest(sql)

    async def execute(self) -> int:
        return await self._update(self.compile())


__all__ = ["TableOperation", "InsertBuilder", "UpdateBuilder", "DeleteBuilder"]
