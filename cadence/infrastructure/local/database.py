"""
SQLite database configuration and ORM models.

This module defines the SQLAlchemy ORM models and database initialization.
"""

from contextlib import asynccontextmanager
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    String,
    Text,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from cadence.core.config import get_settings
from cadence.core.exceptions import StorageError
from cadence.utils.datetime_utils import now_utc, to_storage_utc


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


def utcnow_naive() -> datetime:
    return to_storage_utc(now_utc())


# ===========================================
# ORM Models
# ===========================================


class RecurrenceDefinitionORM(Base):
    """Recurrence definition ORM model."""

    __tablename__ = "recurrence_definitions"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(255), nullable=False, index=True)
    team_id = Column(String(36), nullable=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)

    # Pattern
    frequency = Column(String(10), nullable=False)
    interval = Column("recur_interval", Integer, nullable=False, default=1)
    days_of_week = Column(JSON, nullable=True)  # list of 0-6, Monday first
    day_of_month = Column(Integer, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    max_occurrences = Column(Integer, nullable=True)

    # Skip rules
    skip_weekends = Column(Boolean, default=False)
    skip_holidays = Column(Boolean, default=False)
    skip_dates = Column(JSON, nullable=True, default=list)  # ISO date strings

    task_template = Column(JSON, nullable=False)

    # Bookkeeping
    occurrences_generated = Column(Integer, nullable=False, default=0)
    last_generated_date = Column(Date, nullable=True)
    next_generation_date = Column(Date, nullable=True, index=True)
    state = Column(String(20), nullable=False, default="ACTIVE", index=True)
    last_error = Column(Text, nullable=True)
    last_error_at = Column(DateTime, nullable=True)

    # Scanner lease
    claim_token = Column(String(64), nullable=True)
    claim_expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)


class GeneratedTaskORM(Base):
    """Generated task ORM model.

    recurrence_id is an audit reference only: no foreign key, so deleting a
    definition leaves its tasks in place.
    """

    __tablename__ = "generated_tasks"

    id = Column(String(36), primary_key=True)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(String(10), default="MEDIUM")
    assignee_id = Column(String(255), nullable=True, index=True)
    estimated_minutes = Column(Integer, nullable=True)
    tags = Column(JSON, nullable=True, default=list)
    time = Column(String(50), nullable=True)
    due_date = Column(Date, nullable=False, index=True)
    status = Column(String(20), default="PENDING", index=True)
    created_by = Column(String(255), nullable=False, index=True)
    team_id = Column(String(36), nullable=True)
    recurrence_id = Column(String(36), nullable=False, index=True)
    occurrence_number = Column(Integer, nullable=False)
    idempotency_key = Column(String(100), nullable=False, unique=True)
    created_at = Column(DateTime, default=utcnow_naive)
    updated_at = Column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)
    completed_at = Column(DateTime, nullable=True)


# ===========================================
# Database Session Management
# ===========================================


def get_engine():
    """Get async engine instance."""
    settings = get_settings()
    return create_async_engine(settings.DATABASE_URL, echo=settings.DEBUG)


def get_session_factory():
    """Get async session factory."""
    engine = get_engine()
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine=None):
    """Initialize database tables."""
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@asynccontextmanager
async def storage_session(session_factory):
    """Open a session, surfacing driver failures as StorageError."""
    try:
        async with session_factory() as session:
            yield session
    except SQLAlchemyError as e:
        raise StorageError(f"Storage operation failed: {e}") from e
