"""
Holiday calendar interface.

Consulted by the skip policy for definitions with skip_holidays enabled.
"""

from abc import ABC, abstractmethod
from datetime import date


class IHolidayCalendar(ABC):
    """Answers whether a calendar date is a holiday."""

    @abstractmethod
    def is_holiday(self, day: date) -> bool:
        pass
