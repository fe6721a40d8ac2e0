"""Coercion of ``first``/``last`` pagination counts."""

import math
from typing import Any, Optional

from ..errors.problem_details import InvalidPaginationArguments


def coerce_count(value: Any, name: str, strict: bool = False) -> Optional[int]:
    """Coerce a ``first``/``last`` value to a non-negative integer.

    Integers, floats and numeric strings are accepted and truncated. Negative,
    boolean and non-numeric values count as not provided, or raise when
    ``strict`` is set.

    Raises:
        InvalidPaginationArguments: In strict mode, for values that cannot be
            coerced
    """
    if value is None:
        return None

    number: Optional[float] = None
    if isinstance(value, bool):
        number = None
    elif isinstance(value, (int, float)):
        number = value
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            number = None

    if number is None or not math.isfinite(number) or number < 0:
        if strict:
            raise InvalidPaginationArguments(
                f"`{name}` must be a non-negative integer, got {value!r}"
            )
        return None

    return int(number)
