"""Local wall-clock time source."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    """Source of the current local time."""

    def now(self) -> datetime:
        """Return the current time as a timezone-aware datetime."""


@dataclass
class SystemClock(Clock):
    """Clock backed by the system time in a configured timezone."""

    timezone_name: str | None = None

    def now(self) -> datetime:
        """Return now in the configured timezone, or the host's local zone."""
        if self.timezone_name:
            return datetime.now(tz=ZoneInfo(self.timezone_name))
        return datetime.now().astimezone()
