"""Error handling module for the Relay Object Store API."""

from .problem_details import (
    ProblemDetail,
    ProblemDetailException,
    BadRequestError,
    InvalidPaginationArguments,
    MalformedCursor,
    UnsupportedOperation,
    ServiceUnavailableError,
    StoreError,
    create_problem_response
)
from .handlers import register_exception_handlers

__all__ = [
    "ProblemDetail",
    "ProblemDetailException",
    "BadRequestError",
    "InvalidPaginationArguments",
    "MalformedCursor",
    "UnsupportedOperation",
    "ServiceUnavailableError",
    "StoreError",
    "create_problem_response",
    "register_exception_handlers"
]
