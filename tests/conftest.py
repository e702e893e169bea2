"""
Shared pytest fixtures.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

from datetime import date, datetime, time, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cadence.infrastructure.local.database import Base
from cadence.infrastructure.local.recurrence_repository import SqliteRecurrenceRepository
from cadence.infrastructure.local.task_repository import SqliteTaskRepository
from cadence.interfaces.clock import IClock
from cadence.services.maintenance_scanner import MaintenanceScanner
from cadence.services.recurrence_service import RecurrenceService
from cadence.services.skip_policy import SkipPolicy


class FixedClock(IClock):
    """Clock frozen at a settable instant."""

    def __init__(self, current: datetime):
        self.current = current

    def now(self) -> datetime:
        return self.current

    def set_date(self, day: date) -> None:
        self.current = datetime.combine(day, time(9, 0), tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite session factory with a fresh schema per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def test_user_id() -> str:
    return "test_user_123"


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def recurrence_repo(session_factory) -> SqliteRecurrenceRepository:
    return SqliteRecurrenceRepository(session_factory=session_factory)


@pytest.fixture
def task_repo(session_factory) -> SqliteTaskRepository:
    return SqliteTaskRepository(session_factory=session_factory)


@pytest.fixture
def skip_policy() -> SkipPolicy:
    return SkipPolicy()


@pytest.fixture
def scanner(recurrence_repo, task_repo, clock, skip_policy) -> MaintenanceScanner:
    return MaintenanceScanner(
        recurrence_repo=recurrence_repo,
        task_repo=task_repo,
        clock=clock,
        skip_policy=skip_policy,
        worker_id="test-worker",
    )


@pytest.fixture
def recurrence_service(recurrence_repo, task_repo, clock, scanner, skip_policy) -> RecurrenceService:
    return RecurrenceService(
        recurrence_repo=recurrence_repo,
        task_repo=task_repo,
        clock=clock,
        scanner=scanner,
        skip_policy=skip_policy,
    )
