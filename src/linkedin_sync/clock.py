# ABOUTME: Time helpers shared by persisted models and services.
# ABOUTME: Normalizes timestamps to timezone-aware UTC since SQLite drops tzinfo.

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps read back from the database.

    Args:
        value: A datetime that may be naive, or None.

    Returns:
        The same instant as an aware UTC datetime, or None.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
