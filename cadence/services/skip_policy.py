"""
Skip policy.

Filters otherwise valid occurrence dates (explicit skip dates, weekends,
holidays) and resolves a candidate forward to the first usable date.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional, Union

from cadence.core.exceptions import SkipLimitExceeded
from cadence.infrastructure.local.holiday_calendar import NoHolidayCalendar
from cadence.interfaces.holiday_calendar import IHolidayCalendar
from cadence.models.recurrence import RecurrenceRule
from cadence.utils.datetime_utils import to_date

MAX_SKIP_ITERATIONS = 100

SATURDAY = 5
SUNDAY = 6


class SkipPolicy:
    """
    Decides whether a date must be skipped for a rule.

    Holidays come from the injected calendar; without one, no date is a
    holiday and skip_holidays has no effect.
    """

    def __init__(
        self,
        holiday_calendar: Optional[IHolidayCalendar] = None,
        max_iterations: int = MAX_SKIP_ITERATIONS,
    ):
        self.holiday_calendar = holiday_calendar or NoHolidayCalendar()
        self.max_iterations = max_iterations

    def should_skip(self, value: Union[date, datetime], rule: RecurrenceRule) -> bool:
        """Check if a date is excluded by the rule. Time of day is ignored."""
        day = to_date(value)

        if rule.skip_dates and day in set(rule.skip_dates):
            return True

        if rule.skip_weekends and day.weekday() in (SATURDAY, SUNDAY):
            return True

        if rule.skip_holidays and self.holiday_calendar.is_holiday(day):
            return True

        return False

    def resolve(self, candidate: Union[date, datetime], rule: RecurrenceRule) -> date:
        """
        Advance the candidate one day at a time until it is not skipped.

        Raises:
            SkipLimitExceeded: still skipped after max_iterations advances
        """
        start = to_date(candidate)
        resolved = start
        advances = 0
        while self.should_skip(resolved, rule):
            if advances >= self.max_iterations:
                raise SkipLimitExceeded(start, self.max_iterations)
            resolved += timedelta(days=1)
            advances += 1
        return resolved
