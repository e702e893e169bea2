"""
Clock interface.

All engine components read time through a clock so schedules are testable.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime


class IClock(ABC):
    """Source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current UTC datetime (timezone-aware)."""
        pass

    def today(self) -> date:
        """Current UTC calendar date."""
        return self.now().date()
