"""
Holiday calendar implementations.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from functools import lru_cache
from typing import Iterable, Optional

from cadence.interfaces.holiday_calendar import IHolidayCalendar

US_FEDERAL = "us_federal"

MONDAY, THURSDAY, SATURDAY, SUNDAY = 0, 3, 5, 6


class NoHolidayCalendar(IHolidayCalendar):
    """Calendar without holidays; skip_holidays is a no-op with it."""

    def is_holiday(self, day: date) -> bool:
        return False


class StaticHolidayCalendar(IHolidayCalendar):
    """Holidays from a fixed list of dates (e.g. the HOLIDAY_DATES setting)."""

    def __init__(self, holidays: Iterable[date]):
        self._holidays = frozenset(holidays)

    def is_holiday(self, day: date) -> bool:
        return day in self._holidays

    def __len__(self) -> int:
        return len(self._holidays)


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def _last_weekday(year: int, month: int, weekday: int) -> date:
    last = date(year, month, calendar.monthrange(year, month)[1])
    return last - timedelta(days=(last.weekday() - weekday) % 7)


def _observed(day: date) -> date:
    """Saturday holidays are observed on Friday, Sunday holidays on Monday."""
    if day.weekday() == SATURDAY:
        return day - timedelta(days=1)
    if day.weekday() == SUNDAY:
        return day + timedelta(days=1)
    return day


@lru_cache(maxsize=64)
def us_federal_holidays(year: int) -> dict[date, str]:
    """
    US federal holidays of a year, keyed by date.

    Fixed-date holidays appear on their actual date and, when that falls on
    a weekend, also on the observed weekday. Observed dates can fall in the
    neighbouring year (New Year's Day on a Saturday is observed Dec 31).

    Args:
        year: Calendar year

    Returns:
        Mapping of holiday and observed dates to holiday names
    """
    fixed = {
        "New Year's Day": date(year, 1, 1),
        "Juneteenth": date(year, 6, 19),
        "Independence Day": date(year, 7, 4),
        "Veterans Day": date(year, 11, 11),
        "Christmas Day": date(year, 12, 25),
    }
    floating = {
        "Martin Luther King, Jr. Day": _nth_weekday(year, 1, MONDAY, 3),
        "Presidents' Day": _nth_weekday(year, 2, MONDAY, 3),
        "Memorial Day": _last_weekday(year, 5, MONDAY),
        "Labor Day": _nth_weekday(year, 9, MONDAY, 1),
        "Columbus Day": _nth_weekday(year, 10, MONDAY, 2),
        "Thanksgiving Day": _nth_weekday(year, 11, THURSDAY, 4),
    }

    holidays: dict[date, str] = {}
    for name, day in fixed.items():
        holidays[day] = name
        observed = _observed(day)
        if observed != day:
            holidays[observed] = f"{name} (observed)"
    for name, day in floating.items():
        holidays[day] = name
    return holidays


class UsFederalHolidayCalendar(IHolidayCalendar):
    """Rule-based US federal holidays, optionally extended with fixed dates."""

    def __init__(self, extra_dates: Optional[Iterable[date]] = None):
        self._extra = frozenset(extra_dates or [])

    def is_holiday(self, day: date) -> bool:
        if day in self._extra:
            return True
        # Dec 31 may be the observed New Year's Day of the next year
        return day in us_federal_holidays(day.year) or day in us_federal_holidays(day.year + 1)

    def holiday_name(self, day: date) -> Optional[str]:
        return us_federal_holidays(day.year).get(day) or us_federal_holidays(day.year + 1).get(day)

    def next_business_day(self, day: date) -> date:
        """First weekday after day that is not a holiday."""
        candidate = day + timedelta(days=1)
        while candidate.weekday() >= SATURDAY or self.is_holiday(candidate):
            candidate += timedelta(days=1)
        return candidate


def build_holiday_calendar(
    holiday_dates: Optional[Iterable[date]] = None, source: Optional[str] = None
) -> IHolidayCalendar:
    """
    Holiday calendar for the configured source.

    us_federal gives the rule-based calendar, extended with any configured
    dates. Otherwise configured dates give a static calendar, and no dates
    give the no-op calendar.
    """
    dates = list(holiday_dates or [])
    if source == US_FEDERAL:
        return UsFederalHolidayCalendar(extra_dates=dates)
    if dates:
        return StaticHolidayCalendar(dates)
    return NoHolidayCalendar()
