"""Response body decoding.

Some endpoints answer with different payload shapes depending on the server
version. Rather than trusting a version flag, the decoders look at what was
actually sent: the leading byte for query results, the parsed value's type
for retention policies. Shape alternatives are listed explicitly and tried
in order; the first structural match wins.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, Sequence, TypeVar

from .errors import DecodingError
from .models import QueryResult, RetentionConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")

_JSON_WHITESPACE = b" \t\r\n"


@dataclass(frozen=True)
class Shape(Generic[T]):
    """One accepted payload shape: a structural test plus a builder."""
    name: str
    matches: Callable[[Any], bool]
    build: Callable[[Any], T]


def decode_json(body: bytes) -> Any:
    """Parse a JSON body, mapping parse failures to DecodingError."""
    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodingError(f"Invalid JSON: {e}") from e


def decode_shapes(value: Any, shapes: Sequence[Shape[T]], what: str) -> T:
    """
    Build a result from the first shape that matches ``value``.

    Raises:
        DecodingError: If no shape matches
    """
    for shape in shapes:
        if shape.matches(value):
            logger.debug(f"Decoding {what} as {shape.name}")
            return shape.build(value)
    raise DecodingError(f"Unexpected {what} response format")


def _is_object_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, dict) for v in value)


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


# =============================================================================
# Query results
# =============================================================================


def _is_wrapped_records(value: Any) -> bool:
    if not isinstance(value, dict) or not _is_object_list(value.get("records")):
        return False
    fields = value.get("fields")
    return fields is None or _is_str_list(fields)


_WRAPPED_RECORDS = Shape(
    name="wrapped records",
    matches=_is_wrapped_records,
    build=lambda v: QueryResult(records=v["records"], fields=v.get("fields")),
)

_BARE_RECORDS = Shape(
    name="bare records",
    matches=_is_object_list,
    build=lambda v: QueryResult(records=v),
)


def decode_query_result(body: bytes) -> QueryResult:
    """
    Decode a query response.

    ``{"records": [...], "fields": [...]}`` and ``[...]`` are both accepted.
    The first non-whitespace byte picks the branch; an empty body is an
    empty result. Anything else is a DecodingError, never an empty result,
    so server-side failures are not mistaken for "no rows".
    """
    if not body:
        return QueryResult()

    stripped = body.lstrip(_JSON_WHITESPACE)
    lead = stripped[:1]
    if lead == b"{":
        shape = _WRAPPED_RECORDS
    elif lead == b"[":
        shape = _BARE_RECORDS
    else:
        raise DecodingError("Unexpected query response format")

    try:
        value = json.loads(stripped)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodingError("Unexpected query response format") from e
    return decode_shapes(value, [shape], "query")


# =============================================================================
# Retention
# =============================================================================


_RETENTION_SHAPES: list[Shape[list[RetentionConfig]]] = [
    Shape(
        name="retention list",
        matches=_is_object_list,
        build=lambda v: [RetentionConfig.from_dict(item) for item in v],
    ),
    Shape(
        name="single retention object",
        matches=lambda v: isinstance(v, dict),
        build=lambda v: [RetentionConfig.from_dict(v)],
    ),
]


def decode_retention(body: bytes) -> list[RetentionConfig]:
    """
    Decode a retention policy response.

    Servers send a list, a single object, or nothing at all when no policy
    is configured; the last case is an empty list.
    """
    if not body:
        return []
    try:
        value = json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise DecodingError("Unexpected retention response format") from e
    return decode_shapes(value, _RETENTION_SHAPES, "retention")


# =============================================================================
# Plain typed responses
# =============================================================================


def decode_model(body: bytes, build: Callable[[Any], T]) -> T:
    """Decode a single object with ``build`` (usually a model's from_dict)."""
    return build(decode_json(body))


def decode_list(body: bytes, build: Callable[[Any], T], what: str) -> list[T]:
    """Decode a JSON array, building each element with ``build``."""
    value = decode_json(body)
    if not isinstance(value, list):
        raise DecodingError(f"Expected a list of {what}, got {type(value).__name__}")
    return [build(item) for item in value]
