"""In-memory Store, used for tests and local development."""

import logging
from typing import Any, AsyncIterator, Callable, Iterable, List, Mapping, Optional

from ..query.fields import read_field
from ..query.plan import CountType, Order, QueryPlan, SortDirection, stable_order
from .base import Store


logger = logging.getLogger(__name__)


def _sort_value(value: Any) -> tuple:
    # NULLS LAST for ascending keys, like PostgreSQL.
    return (value is None, value)


class MemoryStore(Store):
    """Store over a list of mappings or attribute-style records.

    Filter params match by equality on a record's top-level fields. When a
    ``document_field`` is configured, params naming a field the record does
    not have are matched against that nested document instead.
    """

    def __init__(
        self,
        records: Iterable[Any] = (),
        id_field: str = "id",
        parse_id: Callable[[str], Any] = str,
        document_field: Optional[str] = None,
    ):
        super().__init__(id_field, parse_id)
        self.records: List[Any] = list(records)
        self.document_field = document_field

    def _has_field(self, record: Any, name: str) -> bool:
        if isinstance(record, Mapping):
            return name in record
        return hasattr(record, name)

    def _matches(self, record: Any, params: Optional[Mapping[str, Any]]) -> bool:
        for key, value in (params or {}).items():
            if self._has_field(record, key) or not self.document_field:
                actual = read_field(record, key)
            else:
                actual = read_field(read_field(record, self.document_field) or {}, key)
            if actual != value:
                return False
        return True

    def _value(self, record: Any, field: str) -> Any:
        if self._has_field(record, field) or not self.document_field:
            return read_field(record, field)
        return read_field(read_field(record, self.document_field) or {}, field)

    def _sorted(self, records: List[Any], order: Order) -> List[Any]:
        # Stable sorts from the least significant key upwards.
        for key in reversed(order):
            records = sorted(
                records,
                key=lambda record: _sort_value(self._value(record, key.field)),
                reverse=key.direction is SortDirection.DESC,
            )
        return records

    def _compare(self, record: Any, boundary: Any, order: Order) -> int:
        for key in order:
            left = _sort_value(self._value(record, key.field))
            right = _sort_value(self._value(boundary, key.field))
            if left == right:
                continue
            result = -1 if left < right else 1
            return -result if key.direction is SortDirection.DESC else result
        return 0

    def _run(self, plan: QueryPlan) -> List[Any]:
        rows = [record for record in self.records if self._matches(record, plan.filters)]
        if plan.before is not None:
            rows = [r for r in rows if read_field(r, self.id_field) < plan.before]
        if plan.after is not None:
            rows = [r for r in rows if read_field(r, self.id_field) > plan.after]

        rows = self._sorted(rows, plan.execution_order)
        window = plan.window
        if window is not None:
            rows = rows[:window.limit]
            if window.restore is not None:
                rows = self._sorted(rows, window.restore)

        logger.debug(f"Memory store matched {len(rows)} records for {plan!r}")
        return rows

    async def fetch(self, plan: QueryPlan) -> List[Any]:
        return self._run(plan)

    async def stream(self, plan: QueryPlan) -> AsyncIterator[Any]:
        for record in self._run(plan):
            yield record

    async def count(
        self,
        params: Optional[Mapping[str, Any]] = None,
        boundary: Optional[Any] = None,
        direction: CountType = CountType.GREATER_THAN,
        order: Optional[Order] = None,
    ) -> int:
        rows = [record for record in self.records if self._matches(record, params)]
        if boundary is None:
            return len(rows)

        order = stable_order(tuple(order or ()), self.id_field)
        anchor = next(
            (r for r in self.records if read_field(r, self.id_field) == boundary),
            None,
        )
        if anchor is None:
            # Without the boundary record only the identity can be compared.
            anchor = {self.id_field: boundary}
            order = tuple(key for key in order if key.field == self.id_field)

        wanted = -1 if direction is CountType.LOWER_THAN else 1
        return sum(1 for r in rows if self._compare(r, anchor, order) == wanted)

    async def fetch_one(self, params: Mapping[str, Any]) -> Optional[Any]:
        return next((r for r in self.records if self._matches(r, params)), None)
