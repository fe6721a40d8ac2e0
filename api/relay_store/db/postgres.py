"""PostgreSQL Store over an asyncpg pool.

Query plans are compiled to a single parameterized statement. Filter params
naming a table column become equality predicates; every other key is matched
against the JSONB document column with ``@>`` containment. Sorts and keyset
comparisons on document fields compare ``jsonb`` values, so numbers order
numerically and strings textually.
"""

import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import UUID

import asyncpg
from asyncpg import Pool

from ..errors.problem_details import BadRequestError, StoreError
from ..query.plan import CountType, Order, QueryPlan, SortDirection, stable_order
from .base import Store
from .connection import get_db_pool


logger = logging.getLogger(__name__)

OBJECT_COLUMNS = ("id", "gpt_id", "collection", "body", "created_at", "updated_at")

STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class Statement:
    """WHERE conditions and their positional parameters."""

    def __init__(self):
        self.conditions: List[str] = []
        self.params: List[Any] = []

    def bind(self, value: Any) -> str:
        self.params.append(value)
        return f"${len(self.params)}"

    @property
    def where_clause(self) -> str:
        return " AND ".join(self.conditions) if self.conditions else "TRUE"


class PostgresStore(Store):
    """Store reading JSONB documents from one PostgreSQL table."""

    def __init__(
        self,
        pool: Optional[Pool] = None,
        table: str = "objects",
        columns: Sequence[str] = OBJECT_COLUMNS,
        id_field: str = "id",
        document_column: Optional[str] = "body",
        parse_id: Callable[[str], Any] = UUID,
    ):
        super().__init__(id_field, parse_id)
        self._pool = pool
        self.table = table
        self.columns = tuple(columns)
        self.document_column = document_column

    async def get_pool(self) -> Pool:
        if self._pool is None:
            self._pool = await get_db_pool()
        return self._pool

    # SQL compilation

    def _expression(self, statement: Statement, field: str) -> str:
        if field in self.columns:
            return field
        if self.document_column is None:
            raise BadRequestError(f"Unknown field '{field}' for table '{self.table}'")
        return f"({self.document_column} -> {statement.bind(field)}::text)"

    def _add_filters(self, statement: Statement, params: Optional[Mapping[str, Any]]) -> None:
        document: Dict[str, Any] = {}
        for key, value in (params or {}).items():
            if key in self.columns:
                statement.conditions.append(f"{key} = {statement.bind(value)}")
            elif self.document_column is not None:
                document[key] = value
            else:
                raise BadRequestError(f"Unknown filter field '{key}' for table '{self.table}'")

        if document:
            statement.conditions.append(
                f"{self.document_column} @> {statement.bind(json.dumps(document))}::jsonb"
            )

    def _order_clause(self, statement: Statement, order: Order) -> str:
        keys = [
            f"{self._expression(statement, key.field)} {key.direction.value}"
            for key in order
        ]
        return "ORDER BY " + ", ".join(keys)

    def _position_condition(
        self,
        statement: Statement,
        boundary: Any,
        direction: CountType,
        order: Order,
    ) -> str:
        """Rows strictly on one side of the boundary row in ``order``.

        Expands to ``(k1 > v1) OR (k1 = v1 AND k2 > v2) ...`` with each
        comparison flipped for descending keys or LOWER_THAN counts.
        """
        boundary_param = statement.bind(boundary)
        branches = []
        equalities: List[str] = []
        for key in order:
            expression = self._expression(statement, key.field)
            if key.field == self.id_field:
                value = boundary_param
            else:
                value = (
                    f"(SELECT {expression} FROM {self.table} "
                    f"WHERE {self.id_field} = {boundary_param})"
                )

            after = key.direction is SortDirection.ASC
            if direction is CountType.LOWER_THAN:
                after = not after
            operator = ">" if after else "<"

            branches.append(" AND ".join(equalities + [f"{expression} {operator} {value}"]))
            equalities.append(f"{expression} = {value}")

        return "(" + " OR ".join(f"({branch})" for branch in branches) + ")"

    def compile_select(self, plan: QueryPlan) -> Tuple[str, List[Any]]:
        """Compile ``plan`` to a SELECT statement and its parameters."""
        statement = Statement()
        self._add_filters(statement, plan.filters)
        if plan.before is not None:
            statement.conditions.append(f"{self.id_field} < {statement.bind(plan.before)}")
        if plan.after is not None:
            statement.conditions.append(f"{self.id_field} > {statement.bind(plan.after)}")

        order_clause = self._order_clause(statement, plan.execution_order)
        query = (
            f"SELECT {', '.join(self.columns)} FROM {self.table} "
            f"WHERE {statement.where_clause} {order_clause}"
        )

        window = plan.window
        if window is not None:
            query = f"{query} LIMIT {statement.bind(window.limit)}"
            if window.restore is not None:
                restore_clause = self._order_clause(statement, window.restore)
                query = f"SELECT * FROM ({query}) AS page {restore_clause}"

        return query, statement.params

    def compile_count(
        self,
        params: Optional[Mapping[str, Any]] = None,
        boundary: Optional[Any] = None,
        direction: CountType = CountType.GREATER_THAN,
        order: Optional[Order] = None,
    ) -> Tuple[str, List[Any]]:
        """Compile a COUNT over ``params``, optionally past a boundary row."""
        statement = Statement()
        self._add_filters(statement, params)
        if boundary is not None:
            order = stable_order(tuple(order or ()), self.id_field)
            statement.conditions.append(
                self._position_condition(statement, boundary, direction, order)
            )
        query = f"SELECT COUNT(*) FROM {self.table} WHERE {statement.where_clause}"
        return query, statement.params

    # Execution

    def _to_record(self, row: asyncpg.Record) -> Dict[str, Any]:
        record = dict(row)
        document = record.get(self.document_column) if self.document_column else None
        if document and isinstance(document, str):
            record[self.document_column] = json.loads(document)
        return record

    async def fetch(self, plan: QueryPlan) -> List[Dict[str, Any]]:
        query, params = self.compile_select(plan)
        logger.debug(f"Fetching from {self.table}: {query} {params}")
        pool = await self.get_pool()

        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(query, *params)
        except asyncpg.DataError as e:
            logger.info(f"Rejected query input for {self.table}: {e}")
            raise BadRequestError(f"Invalid query input: {e}") from e
        except STORE_ERRORS as e:
            logger.error(f"Database error fetching from {self.table}: {e}")
            raise StoreError(f"Database error: {e}") from e

        return [self._to_record(row) for row in rows]

    async def stream(self, plan: QueryPlan) -> AsyncIterator[Dict[str, Any]]:
        query, params = self.compile_select(plan)
        logger.debug(f"Streaming from {self.table}: {query} {params}")
        pool = await self.get_pool()

        try:
            async with pool.acquire() as conn:
                # Server-side cursors only live inside a transaction.
                async with conn.transaction():
                    async for row in conn.cursor(query, *params):
                        yield self._to_record(row)
        except asyncpg.DataError as e:
            logger.info(f"Rejected query input for {self.table}: {e}")
            raise BadRequestError(f"Invalid query input: {e}") from e
        except STORE_ERRORS as e:
            logger.error(f"Database error streaming from {self.table}: {e}")
            raise StoreError(f"Database error: {e}") from e

    async def count(
        self,
        params: Optional[Mapping[str, Any]] = None,
        boundary: Optional[Any] = None,
        direction: CountType = CountType.GREATER_THAN,
        order: Optional[Order] = None,
    ) -> int:
        query, args = self.compile_count(params, boundary, direction, order)
        pool = await self.get_pool()

        try:
            async with pool.acquire() as conn:
                count = await conn.fetchval(query, *args)
        except asyncpg.DataError as e:
            logger.info(f"Rejected query input for {self.table}: {e}")
            raise BadRequestError(f"Invalid query input: {e}") from e
        except STORE_ERRORS as e:
            logger.error(f"Database error counting {self.table}: {e}")
            raise StoreError(f"Database error: {e}") from e

        logger.debug(f"Counted {count} rows in {self.table} (boundary={boundary}, {direction.value})")
        return count or 0

    async def fetch_one(self, params: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        statement = Statement()
        self._add_filters(statement, params)
        query = (
            f"SELECT {', '.join(self.columns)} FROM {self.table} "
            f"WHERE {statement.where_clause} LIMIT 1"
        )
        pool = await self.get_pool()

        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(query, *statement.params)
        except asyncpg.DataError as e:
            logger.info(f"Rejected query input for {self.table}: {e}")
            raise BadRequestError(f"Invalid query input: {e}") from e
        except STORE_ERRORS as e:
            logger.error(f"Database error reading from {self.table}: {e}")
            raise StoreError(f"Database error: {e}") from e

        return self._to_record(row) if row else None
