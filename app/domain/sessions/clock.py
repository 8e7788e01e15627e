from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip).
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def elapsed_seconds(start: datetime, now: datetime) -> int:
    """
    Whole seconds between two instants, never negative.
    """
    delta = (ensure_utc(now) - ensure_utc(start)).total_seconds()
    return max(int(delta), 0)
