"""Objects connection API endpoints."""

import json
import logging
from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from ..config import get_settings
from ..db.base import Store
from ..db.postgres import PostgresStore
from ..errors.problem_details import BadRequestError
from ..models.connection import OrderBy, PaginationArgs
from ..models.objects import ObjectConnection
from ..pagination.resolver import resolve_connection
from ..query.builder import QueryBuilder
from ..query.plan import SortDirection


logger = logging.getLogger(__name__)

collection_objects_router = APIRouter(
    prefix="/gpts/{gpt_id}/collections/{collection_name}/objects",
    tags=["Objects"],
    responses={
        400: {"description": "Bad Request"},
        503: {"description": "Store unavailable"}
    }
)


def get_store() -> Store:
    """Store backing the objects endpoints."""
    return PostgresStore(table=get_settings().objects_table)


def parse_filter(raw: Optional[str]) -> Dict[str, Any]:
    """Parse the ``filter`` query parameter as a JSON object."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        raise BadRequestError(f"Invalid filter: {e}")
    if not isinstance(parsed, dict):
        raise BadRequestError("Invalid filter: expected a JSON object")
    return parsed


@collection_objects_router.get(
    "/connection",
    response_model=ObjectConnection,
    summary="Paginate objects",
    description="Relay-style connection over the objects of a collection.",
    responses={
        200: {"description": "Page of objects retrieved successfully"},
        400: {"description": "Bad Request - Invalid pagination arguments, cursor or filter"}
    }
)
async def get_objects_connection(
    gpt_id: str,
    collection_name: str,
    store: Annotated[Store, Depends(get_store)],
    first: Annotated[Optional[str], Query(description="Number of objects after `after`")] = None,
    last: Annotated[Optional[str], Query(description="Number of objects before `before`")] = None,
    before: Annotated[Optional[str], Query(description="Cursor to paginate backwards from")] = None,
    after: Annotated[Optional[str], Query(description="Cursor to paginate forwards from")] = None,
    order_by: Annotated[Optional[str], Query(alias="orderBy", description="Field to sort by")] = None,
    direction: Annotated[SortDirection, Query(description="Sort direction")] = SortDirection.ASC,
    filter_: Annotated[Optional[str], Query(alias="filter", description="JSON object matched against object bodies")] = None,
) -> ObjectConnection:
    """Return one page of a collection's objects.

    Pass ``first`` (optionally with ``after``) to page forwards and ``last``
    (optionally with ``before``) to page backwards. Cursors come from the
    ``startCursor``/``endCursor`` of a previous page. ``totalCount`` counts
    every object matching the filter.

    Args:
        gpt_id: GPT that owns the collection
        collection_name: Collection to paginate
        store: Store to read from
        first: Page size when paging forwards
        last: Page size when paging backwards
        before: Exclusive upper cursor bound
        after: Exclusive lower cursor bound
        order_by: Field to sort by, identity order when omitted
        direction: Direction of ``order_by``
        filter_: JSON object the object body must contain

    Returns:
        The page of objects with cursors, page info and total count
    """
    params = parse_filter(filter_)
    params.update(gpt_id=gpt_id, collection=collection_name)

    settings = get_settings()
    connection = await resolve_connection(
        QueryBuilder(store),
        PaginationArgs(first=first, last=last, before=before, after=after),
        OrderBy(field=order_by, direction=direction) if order_by else None,
        params,
        symmetric_page_info=settings.symmetric_page_info,
        strict_pagination_args=settings.strict_pagination_args,
    )

    logger.info(
        f"Resolved {len(connection.edges)} of {connection.total_count} objects "
        f"from collection '{collection_name}' for GPT {gpt_id}"
    )
    return ObjectConnection.model_validate(connection.model_dump())
