"""Tests for the PostgreSQL Store: SQL compilation and execution."""

import json
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch
from uuid import UUID

import asyncpg
import pytest

from relay_store.db.postgres import PostgresStore
from relay_store.errors.problem_details import BadRequestError, StoreError
from relay_store.query import CountType, QueryPlan, SortDirection, SortKey

COLUMNS = "id, gpt_id, collection, body, created_at, updated_at"


def object_row(i: int) -> dict:
    created_at = datetime(2024, 1, 1, 12, i, tzinfo=timezone.utc)
    return {
        "id": UUID(int=i),
        "gpt_id": "test-gpt",
        "collection": "notes",
        "body": json.dumps({"index": i}),
        "created_at": created_at,
        "updated_at": created_at,
    }


class TestCompileSelect:
    """Test SELECT compilation of query plans."""

    def test_filters_bounds_and_limit(self):
        store = PostgresStore(pool=MagicMock())
        plan = (
            QueryPlan()
            .with_filter({"gpt_id": "g", "collection": "notes", "status": "open"})
            .with_bound_after(UUID(int=3))
            .with_limit(5)
        )

        query, params = store.compile_select(plan)

        assert query == (
            f"SELECT {COLUMNS} FROM objects "
            "WHERE gpt_id = $1 AND collection = $2 AND body @> $3::jsonb AND id > $4 "
            "ORDER BY id ASC LIMIT $5"
        )
        assert params == ["g", "notes", json.dumps({"status": "open"}), UUID(int=3), 5]

    def test_no_constraints(self):
        store = PostgresStore(pool=MagicMock())
        query, params = store.compile_select(QueryPlan())

        assert query == f"SELECT {COLUMNS} FROM objects WHERE TRUE ORDER BY id ASC"
        assert params == []

    def test_before_bound(self):
        store = PostgresStore(pool=MagicMock())
        query, params = store.compile_select(QueryPlan().with_bound_before(UUID(int=9)))

        assert "WHERE id < $1" in query
        assert params == [UUID(int=9)]

    def test_sort_on_document_field(self):
        store = PostgresStore(pool=MagicMock())
        plan = QueryPlan().with_sort((SortKey(field="title", direction=SortDirection.DESC),))

        query, params = store.compile_select(plan)

        assert query.endswith("ORDER BY (body -> $1::text) DESC, id DESC")
        assert params == ["title"]

    def test_reverse_window_without_restore(self):
        store = PostgresStore(pool=MagicMock())
        query, params = store.compile_select(QueryPlan().with_limit_reverse(3))

        assert query.endswith("ORDER BY id DESC LIMIT $1")
        assert "AS page" not in query
        assert params == [3]

    def test_aggregation_reverse_window_restores_order(self):
        store = PostgresStore(pool=MagicMock())
        plan = QueryPlan().with_aggregation({"gpt_id": "g"}).with_limit_reverse(3)

        query, params = store.compile_select(plan)

        assert query == (
            f"SELECT * FROM (SELECT {COLUMNS} FROM objects WHERE gpt_id = $1 "
            "ORDER BY id ASC LIMIT $2) AS page ORDER BY id DESC"
        )
        assert params == ["g", 3]

    def test_unknown_field_without_document_column(self):
        store = PostgresStore(pool=MagicMock(), table="items", columns=("id", "name"), document_column=None)

        with pytest.raises(BadRequestError):
            store.compile_select(QueryPlan().with_filter({"colour": "red"}))

        with pytest.raises(BadRequestError):
            store.compile_select(QueryPlan().with_sort((SortKey(field="colour"),)))

    def test_custom_table(self):
        store = PostgresStore(pool=MagicMock(), table="items", columns=("id", "name"), document_column=None)
        query, params = store.compile_select(QueryPlan().with_filter({"name": "x"}).with_limit(1))

        assert query == "SELECT id, name FROM items WHERE name = $1 ORDER BY id ASC LIMIT $2"
        assert params == ["x", 1]


class TestCompileCount:
    """Test COUNT compilation for totals and existence checks."""

    def test_total_count(self):
        store = PostgresStore(pool=MagicMock())
        query, params = store.compile_count({"gpt_id": "g"})

        assert query == "SELECT COUNT(*) FROM objects WHERE gpt_id = $1"
        assert params == ["g"]

    def test_count_without_anything(self):
        store = PostgresStore(pool=MagicMock())
        assert store.compile_count() == ("SELECT COUNT(*) FROM objects WHERE TRUE", [])

    def test_boundary_on_identity(self):
        store = PostgresStore(pool=MagicMock())

        query, params = store.compile_count(boundary=UUID(int=4))
        assert query == "SELECT COUNT(*) FROM objects WHERE ((id > $1))"
        assert params == [UUID(int=4)]

        query, _ = store.compile_count(boundary=UUID(int=4), direction=CountType.LOWER_THAN)
        assert query == "SELECT COUNT(*) FROM objects WHERE ((id < $1))"

    def test_boundary_on_descending_identity(self):
        store = PostgresStore(pool=MagicMock())
        order = (SortKey(field="id", direction=SortDirection.DESC),)

        query, _ = store.compile_count(boundary=UUID(int=4), order=order)
        assert query == "SELECT COUNT(*) FROM objects WHERE ((id < $1))"

    def test_boundary_on_sorted_column(self):
        store = PostgresStore(pool=MagicMock())
        order = (SortKey(field="created_at", direction=SortDirection.DESC),)

        query, params = store.compile_count(
            {"gpt_id": "g"}, UUID(int=5), CountType.LOWER_THAN, order
        )

        boundary_value = "(SELECT created_at FROM objects WHERE id = $2)"
        assert query == (
            "SELECT COUNT(*) FROM objects WHERE gpt_id = $1 AND "
            f"((created_at > {boundary_value}) OR "
            f"(created_at = {boundary_value} AND id > $2))"
        )
        assert params == ["g", UUID(int=5)]

    def test_boundary_on_document_field_compares_jsonb(self):
        store = PostgresStore(pool=MagicMock())
        order = (SortKey(field="rank"),)

        query, params = store.compile_count(boundary=UUID(int=5), order=order)

        rank = "(body -> $2::text)"
        boundary_value = f"(SELECT {rank} FROM objects WHERE id = $1)"
        assert query == (
            "SELECT COUNT(*) FROM objects WHERE "
            f"(({rank} > {boundary_value}) OR "
            f"({rank} = {boundary_value} AND id > $1))"
        )
        assert "->>" not in query
        assert params == [UUID(int=5), "rank"]


class TestPostgresStoreExecution:
    """Test execution against a mocked asyncpg pool."""

    @pytest.mark.asyncio
    async def test_fetch_parses_jsonb_body(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetch.return_value = [object_row(1), object_row(2)]
        store = PostgresStore(pool=mock_pool)

        records = await store.fetch(QueryPlan().with_limit(2))

        assert [r["id"] for r in records] == [UUID(int=1), UUID(int=2)]
        assert records[0]["body"] == {"index": 1}
        mock_conn.fetch.assert_awaited_once()
        assert mock_conn.fetch.await_args.args[1:] == (2,)

    @pytest.mark.asyncio
    async def test_fetch_wraps_database_errors(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetch.side_effect = asyncpg.PostgresError("boom")
        store = PostgresStore(pool=mock_pool)

        with pytest.raises(StoreError) as exc_info:
            await store.fetch(QueryPlan())

        assert exc_info.value.status == 503
        assert isinstance(exc_info.value.__cause__, asyncpg.PostgresError)

    @pytest.mark.asyncio
    async def test_invalid_query_input_is_a_bad_request(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetch.side_effect = asyncpg.DataError(
            "invalid input for query argument $1: 'x' (invalid UUID 'x')"
        )
        store = PostgresStore(pool=mock_pool)

        with pytest.raises(BadRequestError) as exc_info:
            await store.fetch(QueryPlan().with_filter({"id": "x"}))

        assert not isinstance(exc_info.value, StoreError)
        assert exc_info.value.status == 400
        assert "Invalid query input" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_count_with_invalid_input_is_a_bad_request(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetchval.side_effect = asyncpg.DataError("invalid input for query argument $1")
        store = PostgresStore(pool=mock_pool)

        with pytest.raises(BadRequestError):
            await store.count({"id": "x"})

    @pytest.mark.asyncio
    async def test_fetch_wraps_connection_errors(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetch.side_effect = ConnectionRefusedError("refused")
        store = PostgresStore(pool=mock_pool)

        with pytest.raises(StoreError):
            await store.fetch(QueryPlan())

    @pytest.mark.asyncio
    async def test_count(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetchval.return_value = 12
        store = PostgresStore(pool=mock_pool)

        assert await store.count({"gpt_id": "g"}) == 12
        mock_conn.fetchval.assert_awaited_once_with(
            "SELECT COUNT(*) FROM objects WHERE gpt_id = $1", "g"
        )

    @pytest.mark.asyncio
    async def test_count_none_is_zero(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetchval.return_value = None
        store = PostgresStore(pool=mock_pool)

        assert await store.count() == 0

    @pytest.mark.asyncio
    async def test_count_wraps_database_errors(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetchval.side_effect = asyncpg.PostgresError("boom")
        store = PostgresStore(pool=mock_pool)

        with pytest.raises(StoreError):
            await store.count()

    @pytest.mark.asyncio
    async def test_fetch_one(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetchrow.return_value = object_row(3)
        store = PostgresStore(pool=mock_pool)

        record = await store.fetch_one({"id": UUID(int=3)})

        assert record["body"] == {"index": 3}
        mock_conn.fetchrow.assert_awaited_once_with(
            f"SELECT {COLUMNS} FROM objects WHERE id = $1 LIMIT 1", UUID(int=3)
        )

    @pytest.mark.asyncio
    async def test_fetch_one_missing(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetchrow.return_value = None
        store = PostgresStore(pool=mock_pool)

        assert await store.fetch_one({"id": UUID(int=3)}) is None

    @pytest.mark.asyncio
    async def test_stream_uses_cursor_in_transaction(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.transaction = MagicMock()
        cursor = MagicMock()
        cursor.__aiter__.return_value = [object_row(1), object_row(2)]
        mock_conn.cursor = MagicMock(return_value=cursor)
        store = PostgresStore(pool=mock_pool)

        records = [record async for record in store.stream(QueryPlan())]

        assert [r["body"]["index"] for r in records] == [1, 2]
        mock_conn.transaction.assert_called_once()
        mock_conn.cursor.assert_called_once_with(
            f"SELECT {COLUMNS} FROM objects WHERE TRUE ORDER BY id ASC"
        )

    @pytest.mark.asyncio
    async def test_pool_defaults_to_shared_pool(self, mock_db_pool):
        mock_pool, mock_conn = mock_db_pool
        mock_conn.fetchval.return_value = 1

        async def fake_get_db_pool():
            return mock_pool

        with patch("relay_store.db.postgres.get_db_pool", fake_get_db_pool):
            store = PostgresStore()
            assert await store.count() == 1
            assert await store.get_pool() is mock_pool
