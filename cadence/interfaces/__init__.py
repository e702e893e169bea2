"""Abstract interfaces for infrastructure abstraction."""

from cadence.interfaces.clock import IClock
from cadence.interfaces.holiday_calendar import IHolidayCalendar
from cadence.interfaces.recurrence_repository import IRecurrenceRepository
from cadence.interfaces.task_repository import ITaskRepository

__all__ = [
    "IClock",
    "IHolidayCalendar",
    "IRecurrenceRepository",
    "ITaskRepository",
]
