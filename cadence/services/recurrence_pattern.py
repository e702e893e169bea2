"""
Recurrence pattern evaluation.

Pure date math: given a rule and a reference date, propose the next raw
occurrence candidate. Skip rules are applied separately by SkipPolicy.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from typing import Optional

from cadence.core.exceptions import ValidationError
from cadence.models.enums import RecurrenceFrequency
from cadence.models.recurrence import RecurrenceDefinition, RecurrenceRule

LAST_DAY_OF_MONTH = -1


def reference_date(definition: RecurrenceDefinition) -> date:
    """Date the next occurrence is computed from: last generation, else start."""
    return definition.last_generated_date or definition.start_date


def next_candidate(rule: RecurrenceRule, reference: Optional[date] = None) -> date:
    """
    Calculate the next raw occurrence strictly after the reference date.

    Args:
        rule: Recurrence rule (a definition or a rule being validated)
        reference: Date to compute from; defaults to reference_date(rule)
            for definitions and start_date for bare rules

    Returns:
        Candidate date, always later than reference
    """
    if reference is None:
        reference = getattr(rule, "last_generated_date", None) or rule.start_date

    interval = max(rule.interval, 1)
    freq = rule.frequency

    if freq == RecurrenceFrequency.DAILY:
        return reference + timedelta(days=interval)

    if freq == RecurrenceFrequency.WEEKLY:
        if not rule.days_of_week:
            return reference + timedelta(days=7 * interval)
        return _next_weekly(reference, set(rule.days_of_week), rule.start_date, interval)

    if freq == RecurrenceFrequency.MONTHLY:
        day = rule.day_of_month if rule.day_of_month is not None else rule.start_date.day
        return _date_in_month(_month_index(reference) + interval, day)

    if freq == RecurrenceFrequency.YEARLY:
        return _next_yearly(reference, rule.start_date, interval)

    raise ValidationError(f"Unsupported frequency: {freq}")


def _next_weekly(reference: date, weekdays: set[int], start: date, interval: int) -> date:
    """First listed weekday after reference, searching at most interval weeks."""
    bound = 7 * interval

    candidate = reference + timedelta(days=1)
    for _ in range(bound):
        if candidate.weekday() in weekdays:
            return candidate
        candidate += timedelta(days=1)

    # Only reachable with weekday indices outside 0-6
    candidate = reference + timedelta(days=1)
    offset = abs((candidate - start).days) % bound
    return candidate + timedelta(days=bound - offset)


def _next_yearly(reference: date, start: date, interval: int) -> date:
    """
    First anniversary of start after reference, in a year start.year + k * interval.

    Month and day always come from the start date, so a Feb 29 anchor is
    clamped to Feb 28 in non-leap years and comes back on leap years.
    """
    steps = max(-(-(reference.year - start.year) // interval), 0)
    year = start.year + steps * interval
    candidate = _date_in_month(year * 12 + start.month - 1, start.day)
    while candidate <= reference:
        year += interval
        candidate = _date_in_month(year * 12 + start.month - 1, start.day)
    return candidate


def _month_index(value: date) -> int:
    return value.year * 12 + value.month - 1


def _date_in_month(month_index: int, day: int) -> date:
    """Day in the given month, clamped to its length; -1 means the last day."""
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    if day == LAST_DAY_OF_MONTH:
        return date(year, month, last_day)
    return date(year, month, min(day, last_day))


def validate_rule(rule: RecurrenceRule) -> None:
    """
    Reject malformed recurrence rules before they are persisted.

    Raises:
        ValidationError: describing the first violated constraint
    """
    if rule.interval < 1:
        raise ValidationError("Interval must be a positive integer", details={"interval": rule.interval})

    if rule.frequency == RecurrenceFrequency.WEEKLY and rule.days_of_week is not None:
        if not rule.days_of_week:
            raise ValidationError("At least one day of week is required for weekly frequency")
    if rule.days_of_week:
        invalid = [d for d in rule.days_of_week if not 0 <= d <= 6]
        if invalid:
            raise ValidationError(
                "Days must be between 0 (Monday) and 6 (Sunday)", details={"days_of_week": invalid}
            )

    if rule.day_of_month is not None and (
        rule.day_of_month == 0 or not LAST_DAY_OF_MONTH <= rule.day_of_month <= 31
    ):
        raise ValidationError(
            "Day of month must be between 1 and 31, or -1 for the last day",
            details={"day_of_month": rule.day_of_month},
        )

    if rule.max_occurrences is not None and rule.max_occurrences < 1:
        raise ValidationError(
            "max_occurrences must be at least 1", details={"max_occurrences": rule.max_occurrences}
        )

    if rule.end_date is not None and rule.end_date <= rule.start_date:
        raise ValidationError(
            "End date must be after start date",
            details={"start_date": str(rule.start_date), "end_date": str(rule.end_date)},
        )
