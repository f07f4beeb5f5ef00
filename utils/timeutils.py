"""Time helpers shared by models and services."""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Return the current time as a naive UTC datetime."""

    return datetime.now(UTC).replace(tzinfo=None)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 timestamp into a naive UTC datetime.

    A trailing ``Z`` is accepted; aware values are converted to UTC.
    Raises ``ValueError`` for anything else.
    """

    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(UTC).replace(tzinfo=None)
    return parsed
