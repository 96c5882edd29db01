# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Tests for insert, update and delete builders."""

from __future__ import annotations

import pytest

from genro_rdb.errors import CompileError, ExecutionError, MetadataError
from genro_rdb.sql.dialects import SqlExpression
from genro_rdb.sql.dml import DeleteBuilder, InsertBuilder, UpdateBuilder


def values(request):
    return list(request.values)


class TestInsertCompile:
    def test_positional_rows(self, database, items):
        """Several rows compile into one multi-row statement."""
        builder = InsertBuilder(database, items).columns("id", "name").values(1, "a").values(2, "b")
        assert builder.row_count == 2
        (request,) = builder.compile()
        assert request.sql == 'INSERT INTO "items" ("id", "name") VALUES (?, ?), (?, ?)'
        assert values(request) == [1, "a", 2, "b"]

    def test_mapping_rows_apply_defaults(self, database, items):
        """Columns with a default are written; None values take the default."""
        builder = InsertBuilder(database, items).values({"id": 1, "name": "a"}).values(id=2, status=None)
        (request,) = builder.compile()
        assert request.sql == 'INSERT INTO "items" ("id", "name", "status") VALUES (?, ?, ?), (?, ?, ?)'
        assert values(request) == [1, "a", "active", 2, None, "active"]

    def test_callable_default(self, database, items):
        counter = iter(range(100))
        items.columns["score"].default = lambda: next(counter)
        (request,) = InsertBuilder(database, items).values(id=1).values(id=2).compile()
        assert values(request) == [1, "active", 0, 2, "active", 1]

    def test_property_names_accepted(self, database, items):
        (request,) = InsertBuilder(database, items).values(id=1, createdAt="2024").compile()
        assert '"created_at"' in request.sql

    def test_split_by_parameter_limit(self, database, items):
        database.dialect.max_parameters = 4
        builder = InsertBuilder(database, items).columns("id", "name")
        for i in range(5):
            builder.values(i, f"n{i}")
        requests = builder.compile()
        assert [len(r.parameters) for r in requests] == [4, 4, 2]

    def test_single_row_statements(self, database, items):
        database.dialect.supports_multi_row_insert = False
        builder = InsertBuilder(database, items).columns("id").values(1).values(2).values(3)
        requests = builder.compile()
        assert len(requests) == 3
        assert all(r.sql.endswith("VALUES (?)") for r in requests)

    def test_expression_value_inlined(self, database, items):
        (request,) = (
            InsertBuilder(database, items)
            .columns("id", "created_at")
            .values(1, SqlExpression("CURRENT_TIMESTAMP"))
            .compile()
        )
        assert request.sql.endswith("VALUES (?, CURRENT_TIMESTAMP)")
        assert values(request) == [1]

    def test_upsert(self, database, items):
        (request,) = InsertBuilder(database, items).columns("id", "name").values(1, "a").upsert().compile()
        assert request.sql.endswith(' ON CONFLICT ("id") DO UPDATE SET "name" = excluded."name"')

    def test_upsert_without_key(self, database, items):
        items.columns["id"].primary_key = False
        with pytest.raises(CompileError, match="conflict columns"):
            InsertBuilder(database, items).upsert()

    def test_no_rows(self, database, items):
        with pytest.raises(CompileError, match="No values"):
            InsertBuilder(database, items).compile()

    def test_positional_without_columns(self, database, items):
        with pytest.raises(CompileError, match="require columns"):
            InsertBuilder(database, items).values(1, "a").compile()

    def test_row_length_mismatch(self, database, items):
        with pytest.raises(CompileError, match="2 values for 1 columns"):
            InsertBuilder(database, items).columns("id").values(1, "a").compile()

    def test_mixed_values_forms(self, database, items):
        with pytest.raises(CompileError):
            InsertBuilder(database, items).values(1, name="a")

    def test_unknown_column(self, database, items):
        with pytest.raises(MetadataError):
            InsertBuilder(database, items).values(id=1, nope=2).compile()

    def test_hostile_values_are_parameters(self, database, items):
        hostile = "'); DROP TABLE items; --"
        (request,) = InsertBuilder(database, items).values(id=1, name=hostile).compile()
        assert hostile not in request.sql
        assert hostile in request.values


class TestInsertExecute:
    async def test_sums_counts(self, database, items, recorder):
        database.dialect.supports_multi_row_insert = False
        recorder.rowcount = 1
        count = await InsertBuilder(database, items).columns("id").values(1).values(2).execute()
        assert count == 2
        assert len(recorder.requests) == 2

    async def test_driver_error_wrapped(self, database, items, recorder):
        recorder.fail = RuntimeError("constraint failed")
        with pytest.raises(ExecutionError) as exc:
            await InsertBuilder(database, items).values(id=1).execute()
        assert exc.value.request is recorder.requests[0]
        assert isinstance(exc.value.__cause__, RuntimeError)
        assert exc.value.table == "items"

    async def test_compile_error_before_execution(self, database, items, recorder):
        with pytest.raises(MetadataError):
            await InsertBuilder(database, items).values(bad=1).execute()
        assert recorder.requests == []


class TestUpdate:
    def test_compile(self, database, items):
        request = UpdateBuilder(database, items).set("name", "b").where("id", 1).compile()
        assert request.sql == 'UPDATE "items" SET "name" = ? WHERE "id" = ?'
        assert values(request) == ["b", 1]

    def test_set_values_and_override(self, database, items):
        request = (
            UpdateBuilder(database, items)
            .set_values({"name": "x", "score": 1}, status="off")
            .set("name", "y")
            .where("id", 1)
            .compile()
        )
        assert request.sql == 'UPDATE "items" SET "score" = ?, "status" = ?, "name" = ? WHERE "id" = ?'
        assert values(request) == [1, "off", "y", 1]

    def test_expression(self, database, items):
        request = (
            UpdateBuilder(database, items)
            .set("score", SqlExpression('"score" + 1'))
            .where("id", 1)
            .compile()
        )
        assert request.sql == 'UPDATE "items" SET "score" = "score" + 1 WHERE "id" = ?'

    def test_unconditional_refused(self, database, items, recorder):
        """An update without conditions does not compile."""
        with pytest.raises(CompileError, match="allow_unconditional"):
            UpdateBuilder(database, items).set("name", "x").compile()

    async def test_unconditional_refused_before_execution(self, database, items, recorder):
        with pytest.raises(CompileError):
            await UpdateBuilder(database, items).set("name", "x").execute()
        assert recorder.requests == []

    def test_allow_unconditional(self, database, items):
        request = UpdateBuilder(database, items).set("name", "x").allow_unconditional().compile()
        assert request.sql == 'UPDATE "items" SET "name" = ?'

    def test_no_set(self, database, items):
        with pytest.raises(CompileError, match="no SET"):
            UpdateBuilder(database, items).where("id", 1).compile()

    async def test_execute_returns_count(self, database, items, recorder):
        recorder.rowcount = 3
        count = await UpdateBuilder(database, items).set("status", "x").gt("score", 1).execute()
        assert count == 3


class TestDelete:
    def test_compile(self, database, items):
        request = DeleteBuilder(database, items).where("status", "off").or_("score", "lt", 0).compile()
        assert request.sql == 'DELETE FROM "items" WHERE "status" = ? OR "score" < ?'
        assert values(request) == ["off", 0]

    def test_unconditional_refused(self, database, items):
        with pytest.raises(CompileError, match="Unconditional delete"):
            DeleteBuilder(database, items).compile()

    def test_allow_unconditional(self, database, items):
        assert DeleteBuilder(database, items).allow_unconditional().compile().sql == 'DELETE FROM "items"'


class TestSqliteDml:
    async def test_insert_update_delete(self, sqlite_operator, items):
        await sqlite_operator.create_or_alter(items).commit().execute()

        inserted = await (
            sqlite_operator.insert("items").columns("id", "name").values(1, "a").values(2, "b").execute()
        )
        assert inserted == 2

        updated = await sqlite_operator.update("items").set("name", "z").where("id", 1).execute()
        assert updated == 1

        deleted = await sqlite_operator.delete("items").where("id", 99).execute()
        assert deleted == 0

        deleted = await sqlite_operator.delete("items").allow_unconditional().execute()
        assert deleted == 2

    async def test_duplicate_key_raises_execution_error(self, sqlite_operator, items):
        await sqlite_operator.create_or_alter(items).commit().execute()
        await sqlite_operator.insert("items").values(id=1).execute()
        with pytest.raises(ExecutionError) as exc:
            await sqlite_operator.insert("items").values(id=1).execute()
        assert "INSERT INTO" in str(exc.value)

    async def test_upsert(self, sqlite_operator, items):
        await sqlite_operator.create_or_alter(items).commit().execute()
        await sqlite_operator.insert("items").values(id=1, name="a").execute()
        await sqlite_operator.insert("items").values(id=1, name="b").upsert().execute()
        row = await sqlite_operator.query("items").where(id=1).fetch_one()
        assert row["name"] == "b"
