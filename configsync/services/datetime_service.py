"""Datetime handling for Kubernetes timestamps: lax input -> RFC 3339 output."""

from __future__ import annotations

from datetime import datetime, timezone

import pendulum
from pendulum.parsing.exceptions import ParserError

# Kubernetes metav1.Time serializes with second precision and a literal Z.
RFC3339_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def parse_datetime(value: str | datetime, default_tz: str = "UTC") -> datetime:
    """Parse a timestamp from an API object into a timezone-aware datetime.

    Accepts RFC 3339 (``2024-05-01T10:00:00Z``), offsets
    (``2024-05-01T10:00:00+02:00``), fractional seconds and the looser forms
    pendulum understands. Missing timezone defaults to default_tz.

    Raises ValueError for unparseable input.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            tz = pendulum.timezone(default_tz)
            value = value.replace(tzinfo=tz)  # type: ignore[arg-type]
        return value

    try:
        parsed = pendulum.parse(value.strip(), tz=default_tz, strict=False)
    except ParserError as exc:
        msg = f"Invalid timestamp: {value!r}"
        raise ValueError(msg) from exc
    if not isinstance(parsed, pendulum.DateTime):
        # pendulum.parse returns Date for date-only strings
        parsed = pendulum.datetime(
            parsed.year, parsed.month, parsed.day, tz=default_tz  # type: ignore[union-attr]
        )
    return parsed  # type: ignore[return-value]


def format_rfc3339(dt: datetime) -> str:
    """Format a datetime the way the API server stores metav1.Time."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime(RFC3339_FORMAT)


def now_utc() -> datetime:
    """Return the current UTC datetime truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)
