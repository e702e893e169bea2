"""
SQLite implementation of generated task repository.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from cadence.core.exceptions import DuplicateError, NotFoundError
from cadence.infrastructure.local.database import (
    GeneratedTaskORM,
    get_session_factory,
    storage_session,
    utcnow_naive,
)
from cadence.interfaces.task_repository import ITaskRepository
from cadence.models.enums import TaskPriority, TaskStatus
from cadence.models.task import GeneratedTask, GeneratedTaskCreate


class SqliteTaskRepository(ITaskRepository):
    """SQLite implementation of generated task repository."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: GeneratedTaskORM) -> GeneratedTask:
        """Convert ORM object to Pydantic model."""
        return GeneratedTask(
            id=UUID(orm.id),
            title=orm.title,
            description=orm.description,
            priority=TaskPriority(orm.priority),
            assignee_id=orm.assignee_id,
            estimated_minutes=orm.estimated_minutes,
            tags=orm.tags or [],
            time=orm.time,
            due_date=orm.due_date,
            status=TaskStatus(orm.status),
            created_by=orm.created_by,
            team_id=orm.team_id,
            recurrence_id=UUID(orm.recurrence_id),
            occurrence_number=orm.occurrence_number,
            idempotency_key=orm.idempotency_key,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
            completed_at=orm.completed_at,
        )

    async def create(self, task: GeneratedTaskCreate) -> GeneratedTask:
        """Create a new task, once per idempotency key."""
        async with storage_session(self._session_factory) as session:
            orm = GeneratedTaskORM(
                id=str(uuid4()),
                title=task.title,
                description=task.description,
                priority=task.priority.value,
                assignee_id=task.assignee_id,
                estimated_minutes=task.estimated_minutes,
                tags=list(task.tags),
                time=task.time,
                due_date=task.due_date,
                status=task.status.value,
                created_by=task.created_by,
                team_id=task.team_id,
                recurrence_id=str(task.recurrence_id),
                occurrence_number=task.occurrence_number,
                idempotency_key=task.idempotency_key,
            )
            session.add(orm)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise DuplicateError(
                    f"Task for occurrence {task.idempotency_key} already exists",
                    details={"idempotency_key": task.idempotency_key},
                ) from e
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, task_id: UUID) -> Optional[GeneratedTask]:
        """Get a task by ID."""
        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                select(GeneratedTaskORM).where(GeneratedTaskORM.id == str(task_id))
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def get_by_idempotency_key(self, key: str) -> Optional[GeneratedTask]:
        """Get the task created for an occurrence key."""
        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                select(GeneratedTaskORM).where(GeneratedTaskORM.idempotency_key == key)
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

    async def list_by_recurrence(
        self, recurrence_id: UUID, limit: int = 1000
    ) -> list[GeneratedTask]:
        """List tasks generated from a definition."""
        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                select(GeneratedTaskORM)
                .where(GeneratedTaskORM.recurrence_id == str(recurrence_id))
                .order_by(GeneratedTaskORM.due_date.asc())
                .limit(limit)
            )
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def update_status(self, task_id: UUID, status: TaskStatus) -> GeneratedTask:
        """Change a task's status, tracking completion time."""
        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                select(GeneratedTaskORM).where(GeneratedTaskORM.id == str(task_id))
            )
            orm = result.scalar_one_or_none()
            if not orm:
                raise NotFoundError(f"Task {task_id} not found")

            orm.status = status.value
            if status == TaskStatus.COMPLETED:
                orm.completed_at = orm.completed_at or utcnow_naive()
            else:
                orm.completed_at = None
            orm.updated_at = utcnow_naive()

            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)
