# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for SQL dialects: quoting, type mapping, values, clauses, DDL."""

from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal

import pytest

from genro_rdb.errors import CompileError, MappingError, MetadataError, UnsupportedTypeError
from genro_rdb.sql.dialects import (
    Dialect,
    PostgresDialect,
    SqlExpression,
    SqliteDialect,
    get_dialect,
)
from genro_rdb.sql.metadata import Column, Schema, Table
from genro_rdb.sql.request import SqlRequest

SEMANTIC_TYPES = [str, int, float, bool, Decimal, datetime, date, bytes, dict, list]


class MinimalDialect(Dialect):
    """Dialect without native upsert."""

    name = "minimal"

    def build_type_renderers(self):
        return {str: lambda *_: "TEXT"}

    def columns_request(self, schema, table_name):
        return SqlRequest("")

    def indexes_request(self, schema, table_name):
        return SqlRequest("")


@pytest.fixture
def sqlite():
    return SqliteDialect()


@pytest.fixture
def pg():
    return PostgresDialect()


@pytest.fixture
def users():
    table = Table("users")
    table.column("id", str, length=32, primary_key=True)
    table.column("name", str)
    table.column("active", bool, default=True)
    table.column("created", datetime, default=SqlExpression("CURRENT_TIMESTAMP"))
    return table


class TestRegistry:
    def test_get_dialect(self):
        assert isinstance(get_dialect("sqlite"), SqliteDialect)
        assert isinstance(get_dialect("PostgreSQL"), PostgresDialect)
        assert isinstance(get_dialect("postgres"), PostgresDialect)

    def test_get_dialect_options(self):
        assert get_dialect("sqlite", quote_all=False).quote_all is False

    def test_unknown_dialect(self):
        with pytest.raises(ValueError, match="Unknown dialect"):
            get_dialect("oracle")


class TestQuoting:
    def test_quote_identifier_escapes_quotes(self, sqlite):
        """Embedded quote characters are doubled."""
        assert sqlite.quote_identifier("name") == '"name"'
        assert sqlite.quote_identifier('we"ird') == '"we""ird"'
        assert sqlite.quote_identifier('a"; DROP TABLE x; --') == '"a""; DROP TABLE x; --"'

    def test_quote_all(self, sqlite):
        assert sqlite.identifier("name") == '"name"'

    def test_selective_quoting(self):
        """Without quote_all only reserved, mixed-case and odd names are quoted."""
        dialect = SqliteDialect(quote_all=False)
        assert dialect.identifier("name") == "name"
        assert dialect.identifier("order") == '"order"'
        assert dialect.identifier("createTime") == '"createTime"'
        assert dialect.identifier("with space") == '"with space"'

    def test_reserved_words(self, sqlite):
        assert "SELECT" in sqlite.reserved_words
        assert isinstance(sqlite.reserved_words, frozenset)

    def test_qualified_name(self, sqlite, pg):
        table = Table("items")
        Schema("sales").add_table(table)
        assert sqlite.qualified_name(table) == '"items"'
        assert pg.qualified_name(table) == '"sales"."items"'


class TestTypeMapping:
    @pytest.mark.parametrize("dialect_class", [SqliteDialect, PostgresDialect])
    @pytest.mark.parametrize("semantic_type", SEMANTIC_TYPES)
    def test_total(self, dialect_class, semantic_type):
        """Every supported semantic type maps to a non-empty type name."""
        assert dialect_class().map_type(semantic_type)

    @pytest.mark.parametrize("dialect_class", [SqliteDialect, PostgresDialect])
    def test_unsupported_type(self, dialect_class):
        with pytest.raises(UnsupportedTypeError) as exc:
            dialect_class().map_type(complex)
        assert isinstance(exc.value, MetadataError)

    def test_none_type_unsupported(self, sqlite):
        with pytest.raises(UnsupportedTypeError):
            sqlite.map_type(None)

    def test_sqlite_types(self, sqlite):
        assert sqlite.map_type(str) == "TEXT"
        assert sqlite.map_type(str, length=32) == "VARCHAR(32)"
        assert sqlite.map_type(Decimal, precision=10, scale=2) == "TEXT"
        assert sqlite.map_type(bool) == "BOOLEAN"

    def test_postgres_types(self, pg):
        assert pg.map_type(int) == "INTEGER"
        assert pg.map_type(int, length=18) == "BIGINT"
        assert pg.map_type(dict) == "JSONB"
        assert pg.map_type(bytes) == "BYTEA"
        assert pg.map_type(Decimal, precision=12) == "NUMERIC(12,0)"

    def test_subclass_uses_base_renderer(self, sqlite):
        class Code(str):
            pass

        assert sqlite.map_type(Code, length=8) == "VARCHAR(8)"

    def test_column_type_override(self, sqlite):
        assert sqlite.column_type(Column("x", str, db_type="char( 3 )")) == "CHAR(3)"

    def test_column_type_error_carries_column(self, sqlite):
        table = Table("t")
        col = table.column("z", complex)
        with pytest.raises(UnsupportedTypeError) as exc:
            sqlite.column_type(col)
        assert exc.value.column == "z"
        assert exc.value.table == "t"

    def test_postgres_normalize_catalog_names(self, pg):
        """format_type() spellings compare equal to mapped names."""
        assert pg.normalize_type("character varying(32)") == "VARCHAR(32)"
        assert pg.normalize_type("timestamp without time zone") == "TIMESTAMP"
        assert pg.normalize_type("numeric(10, 2)") == "NUMERIC(10,2)"
        assert pg.normalize_type("integer") == "INTEGER"


class TestValues:
    def test_sqlite_encode(self, sqlite):
        assert sqlite.encode_value(None, True) == 1
        assert sqlite.encode_value(None, Decimal("1.50")) == "1.50"
        assert sqlite.encode_value(None, date(2024, 1, 2)) == "2024-01-02"
        assert sqlite.encode_value(None, {"a": 1}) == '{"a": 1}'
        assert sqlite.encode_value(None, None) is None

    def test_parameter_carries_type(self, sqlite):
        param = sqlite.parameter(Column("n", str, length=5), "abc")
        assert param.value == "abc"
        assert param.sql_type == "VARCHAR(5)"

    @pytest.mark.parametrize(
        "semantic_type, raw, expected",
        [
            (bool, 1, True),
            (bool, 0, False),
            (int, "12", 12),
            (float, 3, 3.0),
            (Decimal, "1.50", Decimal("1.50")),
            (datetime, "2024-01-02T03:04:05", datetime(2024, 1, 2, 3, 4, 5)),
            (date, "2024-01-02", date(2024, 1, 2)),
            (dict, '{"a": 1}', {"a": 1}),
            (list, "[1, 2]", [1, 2]),
            (str, "x", "x"),
        ],
    )
    def test_decode(self, sqlite, semantic_type, raw, expected):
        assert sqlite.decode_value(Column("c", semantic_type), raw) == expected

    def test_decode_none(self, sqlite):
        assert sqlite.decode_value(Column("c", int), None) is None

    def test_decode_failure(self, sqlite):
        table = Table("t")
        col = table.column("n", int)
        with pytest.raises(MappingError) as exc:
            sqlite.decode_value(col, "abc")
        assert exc.value.column == "n"

    def test_decode_fractional_int_fails(self, sqlite):
        with pytest.raises(MappingError):
            sqlite.decode_value(Column("n", int), 1.5)

    def test_render_literal(self, sqlite, pg):
        assert sqlite.render_literal("it's") == "'it''s'"
        assert sqlite.render_literal(True) == "1"
        assert pg.render_literal(True) == "TRUE"
        assert pg.render_literal(None) == "NULL"
        assert pg.render_literal(SqlExpression("now()")) == "now()"
        assert pg.render_literal(Decimal("2.5")) == "2.5"

    def test_render_literal_non_finite(self, pg):
        with pytest.raises(CompileError):
            pg.render_literal(math.inf)


class TestClauses:
    def test_paging(self, sqlite, pg):
        """Paging renders LIMIT/OFFSET with positional parameters."""
        fragment = sqlite.render_paging(20, 10)
        assert fragment.sql == "LIMIT ? OFFSET ?"
        assert [p.value for p in fragment.parameters] == [10, 20]
        assert pg.render_paging(0, 5).sql == "LIMIT %s OFFSET %s"

    def test_base_dialect_has_no_upsert(self, users):
        assert MinimalDialect().render_upsert(users, ["id", "name"], ["id"]) is None

    def test_upsert_clause(self, sqlite, users):
        clause = sqlite.render_upsert(users, ["id", "name"], ["id"])
        assert clause == ' ON CONFLICT ("id") DO UPDATE SET "name" = excluded."name"'

    def test_upsert_only_keys(self, pg, users):
        assert pg.render_upsert(users, ["id"], ["id"]) == ' ON CONFLICT ("id") DO NOTHING'


class TestDdl:
    def test_create_table(self, sqlite, users):
        sql = sqlite.render_create_table(users)
        assert sql.startswith('CREATE TABLE IF NOT EXISTS "users" (')
        assert '"id" VARCHAR(32) NOT NULL' in sql
        assert '"active" BOOLEAN DEFAULT 1' in sql
        assert '"created" TIMESTAMP DEFAULT CURRENT_TIMESTAMP' in sql
        assert 'PRIMARY KEY ("id")' in sql
        assert sql.index('"id"') < sql.index('"name"') < sql.index('"active"')

    def test_callable_default_not_rendered(self, sqlite):
        col = Column("token", str, default=lambda: "x")
        assert sqlite.render_column_definition(col) == '"token" TEXT'

    def test_add_column(self, sqlite, users):
        col = Column("age", int)
        assert sqlite.render_add_column(users, col) == 'ALTER TABLE "users" ADD COLUMN "age" INTEGER'

    def test_sqlite_cannot_alter_column(self, sqlite, users, caplog):
        """SQLite logs a warning and returns no statements."""
        old = Column("name", str)
        new = Column("name", str, length=10)
        with caplog.at_level("WARNING", logger="genro_rdb.sql.dialects.sqlite"):
            assert sqlite.render_alter_column(users, old, new) == []
        assert "cannot alter column" in caplog.text

    def test_postgres_alter_column(self, pg, users):
        old = Column("name", str)
        new = Column("name", str, length=10, nullable=False)
        assert pg.render_alter_column(users, old, new) == [
            'ALTER TABLE "users" ALTER COLUMN "name" TYPE VARCHAR(10)',
            'ALTER TABLE "users" ALTER COLUMN "name" SET NOT NULL',
        ]

    def test_create_index(self, sqlite, users):
        idx = users.index("idx_name", "name desc", unique=True)
        assert sqlite.render_create_index(users, idx) == (
            'CREATE UNIQUE INDEX IF NOT EXISTS "idx_name" ON "users" ("name" DESC)'
        )

    def test_comments(self, pg, sqlite, users):
        users.columns["name"].comment = "User's name"
        assert pg.render_comments(users, [users.columns["name"]]) == [
            'COMMENT ON COLUMN "users"."name" IS \'User\'\'s name\''
        ]
        assert sqlite.render_comments(users, [users.columns["name"]]) == []

    def test_parse_column_row(self, sqlite):
        col = sqlite.parse_column_row({"name": "id", "type": "varchar(32)", "notnull": 1, "pk": 1})
        assert col.name == "id"
        assert col.db_type == "VARCHAR(32)"
        assert col.primary_key is True
        assert col.nullable is False
