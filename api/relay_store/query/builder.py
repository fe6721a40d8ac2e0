"""Query builder bound to one Store collection."""

import logging
from typing import Any, AsyncIterator, Callable, List, Mapping, Optional, Union

from ..db.base import Store
from ..errors.problem_details import UnsupportedOperation
from ..models.connection import OrderBy
from .fields import to_snake_case
from .plan import CountType, Order, QueryPlan, SortDirection, SortKey


logger = logging.getLogger(__name__)

OrderSpec = Union[OrderBy, Mapping[str, Union[str, SortDirection]]]


class QueryBuilder:
    """Accumulates one query against a Store and runs it once.

    Each constraint method swaps the held plan for a new immutable
    ``QueryPlan`` and returns the builder for chaining. ``exec`` and
    ``stream`` hand the plan to the Store and start the next query from an
    empty plan. Builders hold per-query state and must not be shared between
    concurrent requests.

    Usage:
        builder = QueryBuilder(store)
        records = await builder.filter({"collection": "notes"}).after_id(41).limit(10).exec()
    """

    def __init__(
        self,
        store: Store,
        field_normalizer: Callable[[str], str] = to_snake_case,
    ):
        self.store = store
        self.field_normalizer = field_normalizer
        self._plan = self._new_plan()

    def _new_plan(self) -> QueryPlan:
        return QueryPlan(id_field=self.store.id_field)

    def _take_plan(self) -> QueryPlan:
        plan, self._plan = self._plan, self._new_plan()
        return plan

    @property
    def plan(self) -> QueryPlan:
        """The plan accumulated so far."""
        return self._plan

    def parse_order(self, order_by: Optional[OrderSpec]) -> Order:
        """Normalise an order spec to sort keys."""
        if not order_by:
            return ()
        if isinstance(order_by, OrderBy):
            items = [(order_by.field, order_by.direction)]
        else:
            items = list(order_by.items())

        return tuple(
            SortKey(
                field=self.field_normalizer(field or ""),
                direction=(
                    SortDirection.DESC
                    if str(getattr(direction, "value", direction)).upper() == "DESC"
                    else SortDirection.ASC
                ),
            )
            for field, direction in items
        )

    def filter(self, params: Optional[Mapping[str, Any]]) -> "QueryBuilder":
        self._plan = self._plan.with_filter(params)
        return self

    def aggregate(self, params: Optional[Mapping[str, Any]]) -> "QueryBuilder":
        """Like ``filter`` but runs the query as an aggregation pipeline."""
        self._plan = self._plan.with_aggregation(params)
        return self

    def sort(self, order_by: Optional[OrderSpec]) -> "QueryBuilder":
        if not order_by:
            return self
        self._plan = self._plan.with_sort(self.parse_order(order_by))
        return self

    def before_id(self, identity: Any) -> "QueryBuilder":
        self._plan = self._plan.with_bound_before(identity)
        return self

    def after_id(self, identity: Any) -> "QueryBuilder":
        self._plan = self._plan.with_bound_after(identity)
        return self

    def limit(self, qty: int) -> "QueryBuilder":
        self._plan = self._plan.with_limit(qty)
        return self

    def limit_reverse(self, qty: int) -> "QueryBuilder":
        """Keep the last ``qty`` records of the current order.

        Without an explicit sort the identity order is used. Simple queries
        return the tail in inverted order; aggregations restore it.
        """
        self._plan = self._plan.with_limit_reverse(qty)
        return self

    async def exec(self) -> List[Any]:
        """Run the accumulated query and reset the builder."""
        plan = self._take_plan()
        logger.debug(f"Executing {plan!r}")
        return await self.store.fetch(plan)

    def stream(self) -> AsyncIterator[Any]:
        """Iterate over the accumulated query through a Store cursor.

        Raises:
            UnsupportedOperation: If the plan is an aggregation
        """
        plan = self._take_plan()
        if plan.aggregation:
            raise UnsupportedOperation("Streaming is not allowed with aggregation.")
        return self.store.stream(plan)

    async def count(
        self,
        boundary_id: Optional[Any] = None,
        direction: Optional[CountType] = None,
        params: Optional[Mapping[str, Any]] = None,
        order: Optional[Order] = None,
    ) -> int:
        """Count records independently of the accumulated plan.

        Args:
            boundary_id: Count only records strictly on one side of this record
            direction: Side of the boundary, GREATER_THAN when omitted
            params: Filter params the counted records must match
            order: Order that defines the sides, identity ascending when omitted

        Returns:
            Number of matching records
        """
        return await self.store.count(
            params=params,
            boundary=boundary_id,
            direction=direction or CountType.GREATER_THAN,
            order=order,
        )

    async def is_first_record(
        self,
        identity: Any,
        params: Optional[Mapping[str, Any]] = None,
        order: Optional[Order] = None,
    ) -> bool:
        lower = await self.count(identity, CountType.LOWER_THAN, params, order)
        return lower == 0

    async def is_last_record(
        self,
        identity: Any,
        params: Optional[Mapping[str, Any]] = None,
        order: Optional[Order] = None,
    ) -> bool:
        greater = await self.count(identity, CountType.GREATER_THAN, params, order)
        return greater == 0

    async def get_one(self, params: Mapping[str, Any]) -> Optional[Any]:
        return await self.store.fetch_one(params)

    async def get_one_by_id(self, identity: Any) -> Optional[Any]:
        return await self.store.fetch_one({self.store.id_field: identity})
