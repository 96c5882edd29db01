# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Condition tree and its compiler.

A condition is either a Term (column, operator, value) or a Group of
conditions. Every node carries its own link (``and``/``or``) to the node
before it; the link of the first node in a sequence is ignored. Groups render
parenthesized, terms render as ``column op ?``. Values are always bound as
positional parameters, never inlined.

Operators (short name / SQL spelling):
    eq  =            not   !=, <>
    gt  >            gte   >=
    lt  <            lte   <=
    like LIKE        nlike NOT LIKE
    in  IN           nin   NOT IN
    btw BETWEEN      nbtw  NOT BETWEEN
    isnull IS NULL   notnull IS NOT NULL

Example:
    query.where("status", "active").or_().nest(
        Conditions().gt("score", 10).lte("score", 50)
    )
    # WHERE "status" = ? OR ("score" > ? AND "score" <= ?)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from ..errors import CompileError
from .request import SqlFragment

if TYPE_CHECKING:
    from .dialects.base import Dialect
    from .metadata import Table

LINK_AND = "and"
LINK_OR = "or"

OPERATORS = {
    "eq": "=",
    "not": "!=",
    "gt": ">",
    "gte": ">=",
    "lt": "<",
    "lte": "<=",
    "like": "LIKE",
    "nlike": "NOT LIKE",
    "in": "IN",
    "nin": "NOT IN",
    "btw": "BETWEEN",
    "nbtw": "NOT BETWEEN",
    "isnull": "IS NULL",
    "notnull": "IS NOT NULL",
}

_SQL_SPELLINGS = {sql: short for short, sql in OPERATORS.items()}
_SQL_SPELLINGS["<>"] = "not"


def normalize_operator(op: str) -> str:
    """Return the short operator name for a short name or SQL spelling.

    Raises:
        CompileError: If the operator is not supported.
    """
    key = op.strip()
    if key.lower() in OPERATORS:
        return key.lower()
    short = _SQL_SPELLINGS.get(" ".join(key.upper().split()))
    if short is None:
        raise CompileError(f"Operator '{op}' not supported")
    return short


@dataclass(frozen=True)
class Term:
    """Leaf condition: ``column op value``."""

    column: str
    op: str = "eq"
    value: Any = None
    link: str = LINK_AND


@dataclass(frozen=True)
class Group:
    """Parenthesized sequence of conditions. Must not be empty."""

    terms: tuple[Condition, ...]
    link: str = LINK_AND


Condition = Union[Term, Group]


# -----------------------------------------------------------------------------
# Fluent construction
# -----------------------------------------------------------------------------


class Conditional:
    """Mixin collecting a top-level condition sequence with a fluent API.

    Each appended condition takes the link set by the last and_()/or_()
    call, then the link resets to ``and``.
    """

    def __init__(self) -> None:
        self.terms: list[Condition] = []
        self._next_link = LINK_AND

    # -------------------------------------------------------------------------
    # Core
    # -------------------------------------------------------------------------

    def accept(self, column: str, op: str, value: Any = None):
        """Append a term for ``column op value``."""
        return self.add(Term(column, normalize_operator(op), value))

    def add(self, condition: Condition):
        """Append an existing Term or Group, applying the pending link."""
        if isinstance(condition, Term):
            condition = Term(condition.column, condition.op, condition.value, self._next_link)
        else:
            condition = Group(condition.terms, self._next_link)
        self.terms.append(condition)
        self._next_link = LINK_AND
        return self

    def where(self, *args: Any, **kwargs: Any):
        """Add conditions.

        Accepted forms:
            where(Term(...)) / where(Group(...))
            where("column", value)          # equality
            where("column", "gt", value)    # explicit operator
            where(name="x", state=1)        # equalities joined with and
        """
        if args:
            if len(args) == 1 and isinstance(args[0], (Term, Group)):
                self.add(args[0])
            elif len(args) == 2:
                self.accept(args[0], "eq", args[1])
            elif len(args) == 3:
                self.accept(args[0], args[1], args[2])
            else:
                raise CompileError(f"Invalid where() arguments: {args!r}")
        for column, value in kwargs.items():
            self.accept(column, "eq", value)
        return self

    def and_(self, *args: Any, **kwargs: Any):
        """Link the next condition with AND (optionally adding it)."""
        self._next_link = LINK_AND
        if args or kwargs:
            self.where(*args, **kwargs)
        return self

    def or_(self, *args: Any, **kwargs: Any):
        """Link the next condition with OR (optionally adding it)."""
        self._next_link = LINK_OR
        if args or kwargs:
            self.where(*args, **kwargs)
        return self

    def nest(self, conditions: Conditional | Callable[[Conditions], Any] | Sequence[Condition]):
        """Append a parenthesized group.

        Args:
            conditions: A Conditions builder, a callback receiving a fresh
                Conditions builder, or a sequence of conditions.
        """
        if callable(conditions) and not isinstance(conditions, Conditional):
            builder = Conditions()
            conditions(builder)
            conditions = builder
        terms = conditions.terms if isinstance(conditions, Conditional) else conditions
        return self.add(Group(tuple(terms)))

    # -------------------------------------------------------------------------
    # Operators
    # -------------------------------------------------------------------------

    def is_(self, column: str, value: Any):
        return self.accept(column, "eq", value)

    def not_(self, column: str, value: Any):
        return self.accept(column, "not", value)

    def gt(self, column: str, value: Any):
        return self.accept(column, "gt", value)

    def gte(self, column: str, value: Any):
        return self.accept(column, "gte", value)

    def lt(self, column: str, value: Any):
        return self.accept(column, "lt", value)

    def lte(self, column: str, value: Any):
        return self.accept(column, "lte", value)

    def like(self, column: str, pattern: str):
        return self.accept(column, "like", pattern)

    def not_like(self, column: str, pattern: str):
        return self.accept(column, "nlike", pattern)

    def in_(self, column: str, values: Sequence[Any]):
        return self.accept(column, "in", values)

    def not_in(self, column: str, values: Sequence[Any]):
        return self.accept(column, "nin", values)

    def between(self, column: str, low: Any, high: Any):
        return self.accept(column, "btw", (low, high))

    def not_between(self, column: str, low: Any, high: Any):
        return self.accept(column, "nbtw", (low, high))

    def is_null(self, column: str):
        return self.accept(column, "isnull")

    def not_null(self, column: str):
        return self.accept(column, "notnull")


class Conditions(Conditional):
    """Standalone condition builder, used for nested groups."""

    def group(self, link: str = LINK_AND) -> Group:
        return Group(tuple(self.terms), link)


# -----------------------------------------------------------------------------
# Compilation
# -----------------------------------------------------------------------------


class ConditionCompiler:
    """Compile a condition sequence against table metadata.

    Columns are resolved by name or alias (MetadataError when unknown) and
    rendered through the dialect's identifier quoting.
    """

    def __init__(self, table: Table, dialect: Dialect, operation: str = "query"):
        self.table = table
        self.dialect = dialect
        self.operation = operation

    def compile(self, conditions: Sequence[Condition]) -> SqlFragment:
        """Render a top-level sequence (no surrounding parentheses)."""
        return self._sequence(conditions)

    def _sequence(self, conditions: Sequence[Condition]) -> SqlFragment:
        sql_parts: list[str] = []
        params = []
        for i, node in enumerate(conditions):
            fragment = self._node(node)
            if i > 0:
                if node.link not in (LINK_AND, LINK_OR):
                    raise CompileError(
                        f"Invalid link '{node.link}'", operation=self.operation, table=self.table.name
                    )
                sql_parts.append(node.link.upper())
            sql_parts.append(fragment.sql)
            params.extend(fragment.parameters)
        return SqlFragment(" ".join(sql_parts), tuple(params))

    def _node(self, node: Condition) -> SqlFragment:
        if isinstance(node, Group):
            if not node.terms:
                raise CompileError(
                    "Empty condition group", operation=self.operation, table=self.table.name
                )
            inner = self._sequence(node.terms)
            return SqlFragment(f"({inner.sql})", inner.parameters)
        return self._term(node)

    def _term(self, term: Term) -> SqlFragment:
        column = self.table.require_column(term.column, self.operation)
        name = self.dialect.identifier(column.name)
        op = normalize_operator(term.op)
        sql_op = OPERATORS[op]
        p = self.dialect.placeholder
        value = term.value

        if op in ("isnull", "notnull"):
            return SqlFragment(f"{name} {sql_op}")

        if op in ("in", "nin"):
            if isinstance(value, (str, bytes)) or not isinstance(value, (list, tuple, set, frozenset)):
                raise CompileError(
                    f"{sql_op} requires a list, got {type(value).__name__}",
                    operation=self.operation,
                    table=self.table.name,
                    column=column.name,
                )
            if not value:
                # IN () is always false, NOT IN () is always true
                return SqlFragment("1=0" if op == "in" else "1=1")
            params = tuple(self.dialect.parameter(column, v) for v in value)
            return SqlFragment(f"{name} {sql_op} ({', '.join(p for _ in params)})", params)

        if op in ("btw", "nbtw"):
            if not isinstance(value, (list, tuple)) or len(value) != 2:
                raise CompileError(
                    f"{sql_op} requires [low, high]",
                    operation=self.operation,
                    table=self.table.name,
                    column=column.name,
                )
            params = (self.dialect.parameter(column, value[0]), self.dialect.parameter(column, value[1]))
            return SqlFragment(f"{name} {sql_op} {p} AND {p}", params)

        if value is None:
            raise CompileError(
                f"Operator {sql_op} requires a value, use is_null()/not_null() for NULL",
                operation=self.operation,
                table=self.table.name,
                column=column.name,
            )
        return SqlFragment(f"{name} {sql_op} {p}", (self.dialect.parameter(column, value),))


__all__ = [
    "Term",
    "Group",
    "Condition",
    "Conditional",
    "Conditions",
    "ConditionCompiler",
    "OPERATORS",
    "normalize_operator",
    "LINK_AND",
    "LINK_OR",
]
