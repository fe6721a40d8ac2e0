"""Query plans and field helpers.

The builder lives in ``relay_store.query.builder``.
"""

from .fields import to_snake_case, read_field
from .plan import (
    CountType,
    Order,
    QueryPlan,
    SortDirection,
    SortKey,
    Window,
    head_window,
    invert_order,
    stable_order,
    tail_window
)

__all__ = [
    "to_snake_case",
    "read_field",
    "CountType",
    "Order",
    "QueryPlan",
    "SortDirection",
    "SortKey",
    "Window",
    "head_window",
    "invert_order",
    "stable_order",
    "tail_window"
]
