"""
Time helpers: epoch-millisecond clock and wall-clock conversion.
"""
import time
from typing import Callable, Optional

import pandas as pd

Clock = Callable[[], int]


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def local_time(timestamp_ms: int, timezone: Optional[str] = None) -> pd.Timestamp:
    """
    Wall-clock time for an epoch-ms timestamp.

    Args:
        timestamp_ms: Epoch milliseconds
        timezone: IANA zone name; None uses the machine's local zone

    Returns:
        pd.Timestamp (tz-aware when a zone is given)
    """
    if timezone:
        return pd.Timestamp(timestamp_ms, unit='ms', tz='UTC').tz_convert(timezone)
    return pd.Timestamp.fromtimestamp(timestamp_ms / 1000)


def time_of_day(hour: int) -> str:
    if 6 <= hour < 12:
        return 'morning'
    if 12 <= hour < 18:
        return 'afternoon'
    if 18 <= hour < 22:
        return 'evening'
    return 'night'
