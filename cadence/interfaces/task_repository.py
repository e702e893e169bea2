"""
Task store interface.

Defines the contract the engine needs from the task store: materialized tasks
are created once per idempotency key.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from cadence.models.enums import TaskStatus
from cadence.models.task import GeneratedTask, GeneratedTaskCreate


class ITaskRepository(ABC):
    """Abstract interface for generated task persistence."""

    @abstractmethod
    async def create(self, task: GeneratedTaskCreate) -> GeneratedTask:
        """
        Create a new task.

        Args:
            task: Materialized task data

        Returns:
            Created task with generated ID and timestamps

        Raises:
            DuplicateError: a task with the same idempotency key exists
        """
        pass

    @abstractmethod
    async def get(self, task_id: UUID) -> Optional[GeneratedTask]:
        """Get a task by ID."""
        pass

    @abstractmethod
    async def get_by_idempotency_key(self, key: str) -> Optional[GeneratedTask]:
        """Get the task created for an occurrence key, if any."""
        pass

    @abstractmethod
    async def list_by_recurrence(
        self, recurrence_id: UUID, limit: int = 1000
    ) -> list[GeneratedTask]:
        """List tasks generated from a definition, oldest due date first."""
        pass

    @abstractmethod
    async def update_status(self, task_id: UUID, status: TaskStatus) -> GeneratedTask:
        """Change a task's status. Raises NotFoundError."""
        pass
