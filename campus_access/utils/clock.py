# =======================================================================================
# campus_access/utils/clock.py - Time Helpers
# =======================================================================================
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp; the ledgers store naive UTC throughout."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def whole_minutes(start: datetime, end: datetime) -> int:
    """Floor of the elapsed minutes between two timestamps, never negative."""
    seconds = (end - start).total_seconds()
    return max(int(seconds // 60), 0)
