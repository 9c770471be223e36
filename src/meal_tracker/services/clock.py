"""Wall-clock abstraction."""

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    """Source of the current local time."""

    @property
    def tz(self) -> tzinfo:
        """Timezone used for calendar days."""

    def now(self) -> datetime:
        """Return the current timezone-aware time."""


@dataclass
class SystemClock(Clock):
    """Clock backed by the system time in a named timezone."""

    timezone_name: str = "UTC"

    @property
    def tz(self) -> tzinfo:
        return ZoneInfo(self.timezone_name)

    def now(self) -> datetime:
        return datetime.now(tz=self.tz)


def today(clock: Clock) -> date:
    """Return the current calendar day for the clock."""
    return clock.now().date()
