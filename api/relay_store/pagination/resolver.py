"""Resolution of relay-style connections over a query builder."""

import asyncio
import logging
from typing import Any, Dict, List, Mapping, Optional

from ..errors.problem_details import InvalidPaginationArguments
from ..models.connection import Connection, OrderBy, PageInfo, PaginationArgs
from ..query.builder import OrderSpec, QueryBuilder
from ..query.fields import read_field
from .arguments import coerce_count
from .cursor import decode_cursor, decode_optional_cursor, encode_cursor


logger = logging.getLogger(__name__)


class ConnectionResolver:
    """Resolves one pagination request to a ``Connection``.

    The request runs in fixed phases: validate the arguments, build the
    query plan, fetch the window concurrently with the total count, restore
    display order, derive edges and cursors, then check whether records exist
    before the first edge and after the last one.

    ``hasPreviousPage`` is only computed for ``last`` requests and
    ``hasNextPage`` only for ``first`` requests; the other flag stays False.
    ``symmetric_page_info`` computes both whenever the cursor exists.

    Args:
        builder: Query builder of the collection, owned by this request
        pagination: ``first``/``last``/``before``/``after`` arguments
        order_by: Optional sort, as an ``OrderBy`` or ``{field: direction}``
        params: Filter params forwarded to the Store
        symmetric_page_info: Compute both page flags regardless of mode
        strict_pagination_args: Reject invalid counts instead of ignoring them
    """

    def __init__(
        self,
        builder: QueryBuilder,
        pagination: Optional[PaginationArgs] = None,
        order_by: Optional[OrderSpec] = None,
        params: Optional[Mapping[str, Any]] = None,
        symmetric_page_info: bool = False,
        strict_pagination_args: bool = False,
    ):
        self.builder = builder
        self.pagination = pagination or PaginationArgs()
        self.order_by = order_by
        self.params: Dict[str, Any] = dict(params or {})
        self.symmetric_page_info = symmetric_page_info
        self.strict_pagination_args = strict_pagination_args

        self.first: Optional[int] = None
        self.last: Optional[int] = None

    @property
    def store(self):
        return self.builder.store

    def _validate(self) -> None:
        if self.pagination.first is not None and self.pagination.last is not None:
            raise InvalidPaginationArguments(
                "Passing both `first` and `last` values to paginate is not supported"
            )

        self.first = coerce_count(self.pagination.first, "first", self.strict_pagination_args)
        self.last = coerce_count(self.pagination.last, "last", self.strict_pagination_args)

    def _build_plan(self) -> None:
        parse_id = self.store.parse_id
        before = decode_optional_cursor(self.pagination.before, parse_id)
        after = decode_optional_cursor(self.pagination.after, parse_id)

        self.builder.filter(self.params)
        self.builder.sort(self.order_by)
        if before is not None:
            self.builder.before_id(before)
        if after is not None:
            self.builder.after_id(after)

        if self.first is not None:
            self.builder.limit(self.first)
        elif self.last is not None:
            self.builder.limit_reverse(self.last)

        logger.debug(f"Resolving connection with {self.builder.plan!r}")

    async def _fetch_window_and_count(self) -> tuple[List[Any], int]:
        data_task = asyncio.ensure_future(self.builder.exec())
        count_task = asyncio.ensure_future(self.builder.count(params=self.params))
        try:
            records, total_count = await asyncio.gather(data_task, count_task)
        except BaseException:
            data_task.cancel()
            count_task.cancel()
            raise
        return records, total_count

    def _display_order(self, records: List[Any]) -> List[Any]:
        # An explicit sort already fixes display order, so only the implicit
        # identity order fetched for `last` is turned back around.
        if self.last is not None and not self.order_by:
            return list(reversed(records))
        return list(records)

    def _edges(self, records: List[Any]) -> List[Dict[str, Any]]:
        id_field = self.store.id_field
        return [
            {"cursor": encode_cursor(read_field(record, id_field)), "node": record}
            for record in records
        ]

    async def _page_info(self, edges: List[Dict[str, Any]]) -> PageInfo:
        start_cursor = edges[0]["cursor"] if edges else None
        end_cursor = edges[-1]["cursor"] if edges else None
        order = self.builder.parse_order(self.order_by)
        parse_id = self.store.parse_id

        # Sorted `last` pages are displayed in inverted sort order, so the
        # record leading the sort sits at the end of the edges.
        leading_cursor, trailing_cursor = start_cursor, end_cursor
        if self.last is not None and self.order_by:
            leading_cursor, trailing_cursor = end_cursor, start_cursor

        has_previous_page = False
        if leading_cursor and (self.last is not None or self.symmetric_page_info):
            leading_id = decode_cursor(leading_cursor, parse_id)
            has_previous_page = not await self.builder.is_first_record(leading_id, self.params, order)

        has_next_page = False
        if trailing_cursor and (self.first is not None or self.symmetric_page_info):
            trailing_id = decode_cursor(trailing_cursor, parse_id)
            has_next_page = not await self.builder.is_last_record(trailing_id, self.params, order)

        return PageInfo(
            start_cursor=start_cursor,
            end_cursor=end_cursor,
            has_next_page=has_next_page,
            has_previous_page=has_previous_page,
        )

    async def resolve(self) -> Connection:
        """Run the request and assemble its connection.

        Raises:
            InvalidPaginationArguments: If ``first`` and ``last`` are both given
            MalformedCursor: If ``before`` or ``after`` cannot be decoded
            StoreError: If the Store fails
        """
        self._validate()
        self._build_plan()

        records, total_count = await self._fetch_window_and_count()
        edges = self._edges(self._display_order(records))
        page_info = await self._page_info(edges)

        logger.debug(
            f"Resolved {len(edges)} of {total_count} records "
            f"(previous={page_info.has_previous_page}, next={page_info.has_next_page})"
        )
        return Connection(edges=edges, page_info=page_info, total_count=total_count)


async def resolve_connection(
    builder: QueryBuilder,
    pagination: Optional[PaginationArgs] = None,
    order_by: Optional[OrderBy] = None,
    params: Optional[Mapping[str, Any]] = None,
    **options: bool,
) -> Connection:
    """Resolve a connection in one call. See ``ConnectionResolver``."""
    resolver = ConnectionResolver(builder, pagination, order_by, params, **options)
    return await resolver.resolve()
