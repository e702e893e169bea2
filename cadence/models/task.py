"""
Generated task models.

Tasks materialized from a recurrence definition are independent entities;
they keep only a non-owning reference to the definition that produced them.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from cadence.models.enums import TaskPriority, TaskStatus


class TaskFields(BaseModel):
    """Fields rendered from a task template for one occurrence."""

    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=2000)
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[str] = None
    estimated_minutes: Optional[int] = Field(None, ge=0)
    tags: list[str] = Field(default_factory=list)
    time: Optional[str] = Field(None, description="Display-only time of day")
    due_date: date
    status: TaskStatus = TaskStatus.PENDING


class GeneratedTaskCreate(TaskFields):
    """Schema for persisting a materialized task."""

    created_by: str = Field(..., description="Owner of the originating definition")
    team_id: Optional[str] = None
    recurrence_id: UUID = Field(..., description="Originating recurrence definition (audit only)")
    occurrence_number: int = Field(..., ge=1)
    idempotency_key: str = Field(..., min_length=1, max_length=100)


class GeneratedTask(GeneratedTaskCreate):
    """Persisted generated task."""

    id: UUID
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GeneratedTaskCounts(BaseModel):
    """Status breakdown of the tasks produced by one definition."""

    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    overdue: int = 0
