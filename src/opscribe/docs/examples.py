"""Synthesise example JSON payloads from field trees.

:func:`synthesize_example` is pure: the same field tree always produces the
same value, and :func:`example_json` the same text.

Per field, in order of precedence:

1. Fields with children recurse; an array field wraps the child object in a
   one-element list.
2. A literal ``example`` is coerced to the declared type. Integers and
   numbers fall back to the literal string when they do not parse; booleans
   are ``True`` only for the token ``true``.
3. Otherwise the fixed default of the declared type is used.
"""

from __future__ import annotations

import json
import math
from typing import Any

from opscribe.models import SchemaField

_STRING_DEFAULTS = {
    "date-time": "2024-01-15T10:30:00Z",
    "date": "2024-01-15",
    "uuid": "550e8400-e29b-41d4-a716-446655440000",
}
_STRING_PLACEHOLDER = "string_value"


def _default(field: SchemaField) -> Any:
    if field.type == "integer":
        return 100000 if field.format == "int64" else 12345
    if field.type == "number":
        return 99.99
    if field.type == "boolean":
        return True
    if field.type == "string":
        return _STRING_DEFAULTS.get(field.format, _STRING_PLACEHOLDER)
    if field.type == "array":
        return []
    if field.type == "object":
        return {}
    return None


def _coerce(field: SchemaField) -> Any:
    literal = field.example
    if field.type == "integer":
        try:
            return int(literal)
        except ValueError:
            return literal
    if field.type == "number":
        try:
            value = float(literal)
        except ValueError:
            return literal
        # NaN and infinities have no JSON form.
        return value if math.isfinite(value) else literal
    if field.type == "boolean":
        return literal == "true"
    return literal


def synthesize_example(fields: list[SchemaField]) -> dict[str, Any]:
    """Return an example object for *fields*, keys in declaration order."""
    example: dict[str, Any] = {}
    for field in fields:
        if field.children:
            child = synthesize_example(field.children)
            example[field.name] = [child] if field.is_array else child
        elif field.example != "":
            example[field.name] = _coerce(field)
        else:
            example[field.name] = _default(field)
    return example


def example_json(fields: list[SchemaField]) -> str:
    """Render :func:`synthesize_example` as 2-space indented JSON text."""
    return json.dumps(
        synthesize_example(fields), indent=2, ensure_ascii=False, allow_nan=False
    )
