"""Immutable query plans and the windowing strategies applied to them."""

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class SortDirection(str, Enum):
    """Sort direction of a single key."""

    ASC = "ASC"
    DESC = "DESC"

    def inverted(self) -> "SortDirection":
        return SortDirection.DESC if self is SortDirection.ASC else SortDirection.ASC


class CountType(str, Enum):
    """Side of a boundary record counted by an existence check."""

    LOWER_THAN = "LOWER_THAN"
    GREATER_THAN = "GREATER_THAN"


class SortKey(BaseModel):
    """One field of an ORDER BY."""

    field: str
    direction: SortDirection = SortDirection.ASC

    model_config = ConfigDict(frozen=True)


Order = Tuple[SortKey, ...]


class Window(BaseModel):
    """A bounded slice of an ordered result.

    ``order`` is the order the Store executes with and ``limit`` is applied to
    the start of it. When ``restore`` is set the limited rows are sorted again
    by that order before they are returned.
    """

    order: Order
    limit: int = Field(ge=0)
    restore: Optional[Order] = None

    model_config = ConfigDict(frozen=True)


def invert_order(order: Order) -> Order:
    """Flip the direction of every key."""
    return tuple(
        SortKey(field=key.field, direction=key.direction.inverted())
        for key in order
    )


def stable_order(order: Order, id_field: str) -> Order:
    """Append the identity field as a tiebreaker so every order is total."""
    if any(key.field == id_field for key in order):
        return order
    direction = order[-1].direction if order else SortDirection.ASC
    return order + (SortKey(field=id_field, direction=direction),)


def head_window(order: Order, qty: int) -> Window:
    """First ``qty`` records of ``order``."""
    return Window(order=order, limit=qty)


def tail_window(order: Order, qty: int, restore: bool = False) -> Window:
    """Last ``qty`` records of ``order``, fetched in O(qty).

    Stores can only limit from the start of a sorted result, so the tail is
    read by inverting ``order`` and limiting that. Rows come back in the
    inverted order unless ``restore`` asks for a final sort by ``order``.
    """
    return Window(
        order=invert_order(order),
        limit=qty,
        restore=order if restore else None,
    )


class QueryPlan(BaseModel):
    """Filter, sort, bounds and window of a single query.

    Plans are immutable. Every ``with_*`` method returns a new plan.
    """

    id_field: str = "id"
    filters: Dict[str, Any] = Field(default_factory=dict)
    order: Order = ()
    explicitly_ordered: bool = False
    before: Optional[Any] = None
    after: Optional[Any] = None
    window: Optional[Window] = None
    aggregation: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def default_order(self) -> Order:
        # Aggregation pipelines read newest first.
        direction = SortDirection.DESC if self.aggregation else SortDirection.ASC
        return (SortKey(field=self.id_field, direction=direction),)

    @property
    def effective_order(self) -> Order:
        return self.order if self.explicitly_ordered else self.default_order

    @property
    def execution_order(self) -> Order:
        """Order the Store sorts by before any limit is applied."""
        if self.window is not None:
            return self.window.order
        return stable_order(self.effective_order, self.id_field)

    @property
    def limit(self) -> Optional[int]:
        return self.window.limit if self.window is not None else None

    def with_filter(self, params: Optional[Mapping[str, Any]]) -> "QueryPlan":
        return self.model_copy(update={"filters": {**self.filters, **(params or {})}})

    def with_aggregation(self, params: Optional[Mapping[str, Any]]) -> "QueryPlan":
        plan = self.with_filter(params)
        return plan.model_copy(update={"aggregation": True})

    def with_sort(self, order: Order) -> "QueryPlan":
        return self.model_copy(update={"order": tuple(order), "explicitly_ordered": True})

    def with_bound_before(self, identity: Any) -> "QueryPlan":
        return self.model_copy(update={"before": identity})

    def with_bound_after(self, identity: Any) -> "QueryPlan":
        return self.model_copy(update={"after": identity})

    def with_limit(self, qty: int) -> "QueryPlan":
        order = stable_order(self.effective_order, self.id_field)
        return self.model_copy(update={"window": head_window(order, qty)})

    def with_limit_reverse(self, qty: int) -> "QueryPlan":
        order = stable_order(self.effective_order, self.id_field)
        window = tail_window(order, qty, restore=self.aggregation)
        return self.model_copy(update={"window": window})
