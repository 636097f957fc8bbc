"""Shared utility functions."""

import time
from datetime import UTC, datetime, tzinfo
from typing import Protocol

# Display format for timestamps in notifications
_DISPLAY_FMT = "%d/%m/%Y %H:%M:%S"


class Clock(Protocol):
    """Source of the current wall-clock time in epoch milliseconds."""

    def now_ms(self) -> int: ...


class SystemClock:
    """Clock backed by the system wall clock."""

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


def ms_to_datetime(epoch_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(epoch_ms / 1000, tz=UTC)


def format_display_time(dt: datetime, tz: tzinfo) -> str:
    """Format a timestamp for humans in the configured timezone."""
    return dt.astimezone(tz).strftime(_DISPLAY_FMT)
