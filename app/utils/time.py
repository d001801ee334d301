"""
Epoch-millisecond clock and display formatting.

All stored times are integer epoch milliseconds so cooldown arithmetic
stays exact across the store, the API and the browser.
"""

import time
from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


def format_cooldown(seconds: int) -> str:
    """Remaining cooldown as shown on the submit button, e.g. '1m 5s'."""
    minutes, remaining_seconds = divmod(max(seconds, 0), 60)
    return f"{minutes}m {remaining_seconds}s"


def format_timestamp(timestamp_ms: Optional[int]) -> str:
    """Short UTC date for admin tables, e.g. 'Oct 19, 02:30 PM'. 'Never' when unset."""
    if not timestamp_ms:
        return "Never"
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return f"{dt:%b} {dt.day}, {dt:%I:%M %p}"


def format_datetime(timestamp_ms: int) -> str:
    dt = datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S UTC")
