"""
System clock.
"""

from datetime import datetime

from cadence.interfaces.clock import IClock
from cadence.utils.datetime_utils import now_utc


class SystemClock(IClock):
    """Clock backed by the host's UTC time."""

    def now(self) -> datetime:
        return now_utc()
