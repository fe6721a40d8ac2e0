"""Problem Details (RFC 9457) implementation for the Relay Object Store API."""

from typing import Optional, Any
from pydantic import BaseModel, Field
from fastapi import Request
from fastapi.responses import JSONResponse


class ProblemDetail(BaseModel):
    """Problem Details as defined in RFC 9457."""

    type: str = Field(default="about:blank", description="A URI reference that identifies the problem type")
    title: str = Field(description="A short, human-readable summary of the problem type")
    status: int = Field(description="The HTTP status code")
    detail: Optional[str] = Field(default=None, description="A human-readable explanation specific to this occurrence")
    instance: Optional[str] = Field(default=None, description="A URI reference that identifies the specific occurrence")

    # Allow additional properties for extensions
    model_config = {"extra": "allow"}


class ProblemDetailException(Exception):
    """Base exception for Problem Details responses."""

    def __init__(
        self,
        status: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: str = "about:blank",
        instance: Optional[str] = None,
        **extensions: Any
    ):
        self.status = status
        self.title = title
        self.detail = detail
        self.type_uri = type_uri
        self.instance = instance
        self.extensions = extensions
        super().__init__(detail or title)

    def to_problem_detail(self, request: Optional[Request] = None) -> ProblemDetail:
        """Convert to ProblemDetail model."""
        instance = self.instance
        if instance is None and request:
            instance = str(request.url.path)

        problem = ProblemDetail(
            type=self.type_uri,
            title=self.title,
            status=self.status,
            detail=self.detail,
            instance=instance
        )

        # Add any extensions
        for key, value in self.extensions.items():
            setattr(problem, key, value)

        return problem

    def to_response(self, request: Optional[Request] = None) -> JSONResponse:
        """Convert to JSONResponse with Problem Details format."""
        problem = self.to_problem_detail(request)
        return JSONResponse(
            status_code=self.status,
            content=problem.model_dump(exclude_none=True),
            headers={"Content-Type": "application/problem+json"}
        )


class BadRequestError(ProblemDetailException):
    """400 Bad Request error."""

    def __init__(self, detail: str, **extensions: Any):
        super().__init__(
            status=400,
            title="Bad Request",
            detail=detail,
            **extensions
        )


class InvalidPaginationArguments(BadRequestError):
    """Pagination arguments that cannot be combined or coerced."""

    def __init__(self, detail: str = "Invalid pagination arguments", **extensions: Any):
        super().__init__(detail, **extensions)
        self.type_uri = "urn:relay-store:invalid-pagination-arguments"


class MalformedCursor(BadRequestError):
    """A cursor that does not decode to a usable identity value."""

    def __init__(self, cursor: str, reason: str = "", **extensions: Any):
        detail = f"Malformed cursor '{cursor}'"
        if reason:
            detail = f"{detail}: {reason}"
        # Echo the rejected cursor back as an extension member
        super().__init__(detail, cursor=cursor, **extensions)
        self.type_uri = "urn:relay-store:malformed-cursor"
        self.cursor = cursor


class UnsupportedOperation(ProblemDetailException):
    """501 Not Implemented, raised for query plans a Store path cannot run."""

    def __init__(self, detail: str = "Operation not supported", **extensions: Any):
        super().__init__(
            status=501,
            title="Not Implemented",
            detail=detail,
            type_uri="urn:relay-store:unsupported-operation",
            **extensions
        )


class ServiceUnavailableError(ProblemDetailException):
    """503 Service Unavailable error."""

    def __init__(self, detail: str = "Service temporarily unavailable", **extensions: Any):
        super().__init__(
            status=503,
            title="Service Unavailable",
            detail=detail,
            **extensions
        )


class StoreError(ServiceUnavailableError):
    """Failure reported by the underlying Store."""

    def __init__(self, detail: str = "Store operation failed", **extensions: Any):
        super().__init__(detail, **extensions)
        self.type_uri = "urn:relay-store:store-error"


def create_problem_response(
    status: int,
    title: str,
    detail: Optional[str] = None,
    type_uri: str = "about:blank",
    instance: Optional[str] = None,
    request: Optional[Request] = None,
    **extensions: Any
) -> JSONResponse:
    """Create a Problem Details response."""
    if instance is None and request:
        instance = str(request.url.path)

    problem = ProblemDetail(
        type=type_uri,
        title=title,
        status=status,
        detail=detail,
        instance=instance
    )

    # Add any extensions
    for key, value in extensions.items():
        setattr(problem, key, value)

    return JSONResponse(
        status_code=status,
        content=problem.model_dump(exclude_none=True),
        headers={"Content-Type": "application/problem+json"}
    )
