"""Clock abstraction so time-dependent logic can be driven in tests."""

from datetime import datetime, timezone


class Clock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


system_clock = Clock()
