"""Resolve symbolic reporting periods into Unix-second windows"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Period(Enum):
    """Symbolic reporting periods"""
    LAST_HOUR = "1h"
    LAST_DAY = "24h"
    LAST_WEEK = "7d"
    LAST_MONTH = "30d"
    CUSTOM = "custom"


PERIOD_SECONDS = {
    Period.LAST_HOUR: 3600,
    Period.LAST_DAY: 86400,
    Period.LAST_WEEK: 604800,
    Period.LAST_MONTH: 2592000,
}


@dataclass(frozen=True)
class TimeWindow:
    """Half-open interval ``[start_time, end_time)`` in Unix seconds"""
    start_time: int
    end_time: int

    @property
    def is_empty(self) -> bool:
        return self.end_time <= self.start_time


def parse_period(token: Optional[str]) -> Period:
    """Map a period token to a Period, unknown tokens meaning the last 24h"""
    try:
        return Period(token)
    except ValueError:
        return Period.LAST_DAY


def resolve_time_window(period: Optional[str],
                        start_time: Optional[int] = None,
                        end_time: Optional[int] = None,
                        now: Optional[int] = None) -> TimeWindow:
    """
    Resolve a period token into an absolute window ending now.

    Args:
        period: One of 1h, 24h, 7d, 30d or custom. Anything else means 24h.
        start_time: Window start for ``custom``, used verbatim (0 if absent)
        end_time: Window end for ``custom``, used verbatim (0 if absent)
        now: Current Unix time, defaults to the wall clock
    """
    if now is None:
        now = int(time.time())

    resolved = parse_period(period)
    if resolved is Period.CUSTOM:
        # No ordering check; an inverted custom window just yields no events.
        return TimeWindow(start_time or 0, end_time or 0)

    return TimeWindow(now - PERIOD_SECONDS[resolved], now)


def last_days(days: int, now: Optional[int] = None) -> TimeWindow:
    """Window covering the ``days`` days up to now"""
    if now is None:
        now = int(time.time())
    return TimeWindow(now - days * 86400, now)
