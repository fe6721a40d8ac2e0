"""Pydantic models for objects."""

from datetime import datetime
from typing import Dict, Any
from uuid import UUID

from pydantic import BaseModel, Field, ConfigDict

from .connection import Connection


class Object(BaseModel):
    """A stored JSON document."""

    id: UUID = Field(description="Object UUID")
    gpt_id: str = Field(description="GPT ID that owns this object")
    collection: str = Field(description="Collection name this object belongs to")
    body: Dict[str, Any] = Field(description="Object JSON data")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "550e8400-e29b-41d4-a716-446655440000",
                "gpt_id": "gpt-4-custom",
                "collection": "notes",
                "body": {
                    "title": "Meeting Notes",
                    "tags": ["work", "meetings"]
                },
                "created_at": "2024-01-01T12:00:00Z",
                "updated_at": "2024-01-01T12:30:00Z"
            }
        }
    )


class ObjectConnection(Connection[Object]):
    """Connection of objects returned by the API."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "edges": [
                    {
                        "cursor": "NTUwZTg0MDAtZTI5Yi00MWQ0LWE3MTYtNDQ2NjU1NDQwMDAw",
                        "node": {
                            "id": "550e8400-e29b-41d4-a716-446655440000",
                            "gpt_id": "gpt-4-custom",
                            "collection": "notes",
                            "body": {"title": "Note 1"},
                            "created_at": "2024-01-01T12:00:00Z",
                            "updated_at": "2024-01-01T12:00:00Z"
                        }
                    }
                ],
                "pageInfo": {
                    "startCursor": "NTUwZTg0MDAtZTI5Yi00MWQ0LWE3MTYtNDQ2NjU1NDQwMDAw",
                    "endCursor": "NTUwZTg0MDAtZTI5Yi00MWQ0LWE3MTYtNDQ2NjU1NDQwMDAw",
                    "hasNextPage": True,
                    "hasPreviousPage": False
                },
                "totalCount": 42
            }
        }
    )
