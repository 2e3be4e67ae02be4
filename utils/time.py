from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Current UTC time without tzinfo, matching what SQLite DateTime columns return."""
    return datetime.now(UTC).replace(tzinfo=None)
