"""Contract between the query layer and a record Store."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Callable, List, Mapping, Optional

from ..query.plan import CountType, Order, QueryPlan


class Store(ABC):
    """A collection of records the query layer can read from.

    Every method is a coroutine and raises ``StoreError`` when the
    underlying engine fails.

    Args:
        id_field: Name of the unique, totally ordered identity field
        parse_id: Parses the text form of an identity back into its value
    """

    def __init__(self, id_field: str = "id", parse_id: Callable[[str], Any] = str):
        # Instance attributes, so plain functions are never bound as methods.
        self.id_field = id_field
        self.parse_id = parse_id

    @abstractmethod
    async def fetch(self, plan: QueryPlan) -> List[Any]:
        """Run ``plan`` and return its records in execution order."""

    @abstractmethod
    def stream(self, plan: QueryPlan) -> AsyncIterator[Any]:
        """Iterate over the records of ``plan`` without buffering them."""

    @abstractmethod
    async def count(
        self,
        params: Optional[Mapping[str, Any]] = None,
        boundary: Optional[Any] = None,
        direction: CountType = CountType.GREATER_THAN,
        order: Optional[Order] = None,
    ) -> int:
        """Count records matching ``params``.

        With a ``boundary`` identity only records strictly on the
        ``direction`` side of the boundary record in ``order`` are counted.
        """

    @abstractmethod
    async def fetch_one(self, params: Mapping[str, Any]) -> Optional[Any]:
        """Return the first record matching ``params`` or None."""
