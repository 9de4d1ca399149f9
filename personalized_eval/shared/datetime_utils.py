"""UTC datetime helpers.

Conversation states and evaluations carry timestamps that are compared for
ordering (see ``ConversationState.last_issued_at``), so every timestamp in the
package is timezone-aware UTC.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalize ``dt`` to UTC.

    Naive datetimes are assumed to already be UTC.

    Args:
        dt: Datetime to normalize

    Returns:
        Aware UTC datetime, or None if input is None
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime | None) -> str | None:
    """Serialize a datetime for JSON storage."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()


def from_iso(value: str | None) -> datetime | None:
    """Parse an ISO 8601 string (``Z`` suffix accepted) into aware UTC."""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
