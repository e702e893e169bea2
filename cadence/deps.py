"""
Dependency wiring.

Provides the infrastructure implementations the engine runs with. Each
getter is cached, so the whole process shares one session factory and one
instance of every service.
"""

from functools import lru_cache

from cadence.core.config import get_settings
from cadence.interfaces.clock import IClock
from cadence.interfaces.holiday_calendar import IHolidayCalendar
from cadence.interfaces.recurrence_repository import IRecurrenceRepository
from cadence.interfaces.task_repository import ITaskRepository
from cadence.services.maintenance_scanner import MaintenanceScanner
from cadence.services.recurrence_service import RecurrenceService
from cadence.services.skip_policy import SkipPolicy


# ===========================================
# Infrastructure
# ===========================================


@lru_cache()
def get_session_factory():
    """Get the process-wide async session factory."""
    from cadence.infrastructure.local.database import get_session_factory as build_session_factory

    return build_session_factory()


@lru_cache()
def get_recurrence_repository() -> IRecurrenceRepository:
    """Get recurrence definition repository instance."""
    from cadence.infrastructure.local.recurrence_repository import SqliteRecurrenceRepository

    return SqliteRecurrenceRepository(get_session_factory())


@lru_cache()
def get_task_repository() -> ITaskRepository:
    """Get generated task repository instance."""
    from cadence.infrastructure.local.task_repository import SqliteTaskRepository

    return SqliteTaskRepository(get_session_factory())


@lru_cache()
def get_clock() -> IClock:
    from cadence.infrastructure.local.system_clock import SystemClock

    return SystemClock()


@lru_cache()
def get_holiday_calendar() -> IHolidayCalendar:
    """Holiday calendar from the HOLIDAY_CALENDAR and HOLIDAY_DATES settings."""
    from cadence.infrastructure.local.holiday_calendar import build_holiday_calendar

    settings = get_settings()
    return build_holiday_calendar(settings.HOLIDAY_DATES, settings.HOLIDAY_CALENDAR)


# ===========================================
# Services
# ===========================================


@lru_cache()
def get_skip_policy() -> SkipPolicy:
    return SkipPolicy(
        holiday_calendar=get_holiday_calendar(),
        max_iterations=get_settings().SKIP_RESOLUTION_LIMIT,
    )


@lru_cache()
def get_maintenance_scanner() -> MaintenanceScanner:
    """Get the scanner configured from settings."""
    settings = get_settings()
    return MaintenanceScanner(
        recurrence_repo=get_recurrence_repository(),
        task_repo=get_task_repository(),
        clock=get_clock(),
        skip_policy=get_skip_policy(),
        claim_ttl_seconds=settings.CLAIM_TTL_SECONDS,
        batch_size=settings.SCAN_BATCH_SIZE,
        worker_id=settings.WORKER_ID,
        generate_now_max_count=settings.GENERATE_NOW_MAX_COUNT,
    )


@lru_cache()
def get_recurrence_service() -> RecurrenceService:
    """Get the recurrence management service."""
    return RecurrenceService(
        recurrence_repo=get_recurrence_repository(),
        task_repo=get_task_repository(),
        clock=get_clock(),
        scanner=get_maintenance_scanner(),
        skip_policy=get_skip_policy(),
    )
