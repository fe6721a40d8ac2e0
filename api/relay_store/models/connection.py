"""Pydantic models for relay-style connections."""

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..query.plan import SortDirection

NodeT = TypeVar("NodeT")


class PaginationArgs(BaseModel):
    """Raw ``first``/``last``/``before``/``after`` arguments of a request.

    Values are kept as received. Coercion and validation happen when the
    connection is resolved.
    """

    first: Optional[Any] = None
    last: Optional[Any] = None
    before: Optional[str] = None
    after: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class OrderBy(BaseModel):
    """Requested sort of a connection."""

    field: str = Field(min_length=1, description="Field to sort by")
    direction: SortDirection = Field(default=SortDirection.ASC, description="ASC or DESC")

    model_config = ConfigDict(frozen=True)


class RelayModel(BaseModel):
    """Base for response models serialised with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class PageInfo(RelayModel):
    """Page boundaries and whether more records exist around them."""

    start_cursor: Optional[str] = Field(default=None, description="Cursor of the first edge")
    end_cursor: Optional[str] = Field(default=None, description="Cursor of the last edge")
    has_next_page: bool = Field(default=False, description="Whether records exist after the page")
    has_previous_page: bool = Field(default=False, description="Whether records exist before the page")


class Edge(RelayModel, Generic[NodeT]):
    """One record of a page with its cursor."""

    cursor: str = Field(description="Cursor of this record")
    node: NodeT = Field(description="The record")


class Connection(RelayModel, Generic[NodeT]):
    """A page of records with cursors, page info and the total count."""

    edges: List[Edge[NodeT]] = Field(default_factory=list)
    page_info: PageInfo = Field(default_factory=PageInfo)
    total_count: int = Field(default=0, ge=0, description="Records matching the filter, ignoring pagination")

    @property
    def nodes(self) -> List[NodeT]:
        return [edge.node for edge in self.edges]
