"""Opaque cursor encoding for relay-style pagination.

A cursor is the base64 encoding of the UTF-8 text form of a record's
identity value.
"""

import base64
import binascii
from typing import Any, Callable, Optional

from ..errors.problem_details import MalformedCursor


def encode_cursor(identity: Any) -> str:
    """Encode a record identity as an opaque cursor.

    Args:
        identity: The record's identity value

    Returns:
        Base64 encoded cursor string
    """
    return base64.b64encode(str(identity).encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str, parse: Callable[[str], Any] = str) -> Any:
    """Decode a cursor back to the identity value it was built from.

    Args:
        cursor: Base64 encoded cursor string
        parse: Converts the decoded text to the identity's type

    Returns:
        The identity value

    Raises:
        MalformedCursor: If the cursor is not base64, not UTF-8 text, or its
            text is not a valid identity
    """
    try:
        text = base64.b64decode(cursor.encode("ascii"), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise MalformedCursor(cursor, str(e)) from e

    if not text:
        raise MalformedCursor(cursor, "empty identity")

    try:
        return parse(text)
    except (TypeError, ValueError) as e:
        raise MalformedCursor(cursor, str(e)) from e


def decode_optional_cursor(
    cursor: Optional[str],
    parse: Callable[[str], Any] = str,
) -> Optional[Any]:
    """Decode ``cursor``, treating None and the empty string as absent."""
    if cursor is None or cursor == "":
        return None
    return decode_cursor(cursor, parse)
