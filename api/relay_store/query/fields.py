"""Field name normalisation and record field access."""

import re
from typing import Any, Mapping

_CASE_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")
_SEPARATORS = re.compile(r"[\s\-.]+")
_REPEATED_UNDERSCORES = re.compile(r"_+")


def to_snake_case(name: str) -> str:
    """Normalise a field name to the Store's snake_case column convention.

    ``createdAt``, ``CreatedAt``, ``CREATED_AT`` and ``created-at`` all map to
    ``created_at``.
    """
    name = _CASE_BOUNDARY.sub("_", (name or "").strip())
    name = _SEPARATORS.sub("_", name)
    return _REPEATED_UNDERSCORES.sub("_", name).strip("_").lower()


def read_field(record: Any, name: str) -> Any:
    """Read a named field from a mapping or attribute-style record."""
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)
