"""Helpers shared by the models, mappers and service.

Timestamps: the backend sends ``timestamptz`` columns as ISO 8601 strings
with varying offsets; everything in campusdb is normalised to aware UTC.

Filters: PostgREST ``or`` filters and array containment take string
arguments (``a.eq.1,b.cs.{x}``); the builders here render them.
"""

from datetime import UTC, datetime
from typing import Any

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Normalise a backend timestamp to an aware UTC ``datetime``.

    Naive values are taken to be UTC already.

    Raises:
        ValueError: If ``value`` is not ISO 8601

    Example:
        >>> parse_datetime("2024-03-01T17:30:00+02:00")
        datetime.datetime(2024, 3, 1, 15, 30, tzinfo=datetime.timezone.utc)
    """
    if value is None:
        return None
    parsed = value if isinstance(value, datetime) else dateutil_parser.isoparse(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def format_iso(dt: datetime | None) -> str | None:
    """Render ``dt`` for a write body, using ``Z`` for UTC."""
    return dt.isoformat().replace("+00:00", "Z") if dt is not None else None


def redact_token(token: str | None) -> str:
    """Mask an API key for logs and the ``config`` command.

    Keys longer than 12 characters keep their first 8 and last 4
    characters; shorter keys are fully masked.

    Example:
        >>> redact_token("test-anon-key-1234567890")
        'test-ano...7890'
    """
    if not token:
        return "None"
    if len(token) <= 12:
        return "***"
    return f"{token[:8]}...{token[-4:]}"


def any_of(*clauses: str) -> str:
    """Join PostgREST filter clauses for an ``or`` filter.

    Example:
        >>> any_of("from_user_id.eq.u1", "to_user_id.eq.u1")
        'from_user_id.eq.u1,to_user_id.eq.u1'
    """
    return ",".join(clauses)


def array_literal(*values: str | int) -> str:
    """Render values as a PostgreSQL array literal for ``cs``/``cd`` filters.

    Example:
        >>> array_literal("u1")
        '{u1}'
    """
    return "{" + ",".join(str(v) for v in values) + "}"


def ensure_list(value: Any) -> list[Any]:
    """Return ``value`` as a list, substituting an empty list for None.

    Example:
        >>> ensure_list(None)
        []
        >>> ensure_list(["a"])
        ['a']
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return list(value)


def ensure_dict(value: Any) -> dict[str, Any]:
    """Return ``value`` as a dict, substituting an empty dict for None."""
    if value is None:
        return {}
    return dict(value)
