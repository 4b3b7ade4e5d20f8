from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, the form stored in every DateTime column."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock:
    """Source of "now" for request handling."""

    def now(self) -> datetime:
        return utcnow()


class FrozenClock(Clock):
    """
    Clock that only moves when told to.
    """

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2025, 1, 1, 12, 0, 0)

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> datetime:
        self.current = self.current + delta
        return self.current

    def set(self, value: datetime) -> None:
        self.current = value


system_clock = Clock()
