"""
Recurrence definition models.

Defines the rules used to generate task instances on a schedule.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from cadence.models.enums import DefinitionState, RecurrenceFrequency, TaskPriority
from cadence.models.task import GeneratedTaskCounts


class TaskTemplate(BaseModel):
    """Template rendered into each generated task.

    title and description may contain {{date}} and {{count}} placeholders.
    """

    title: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=2000)
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[str] = None
    estimated_minutes: Optional[int] = Field(None, ge=0)
    tags: list[str] = Field(default_factory=list)
    time: Optional[str] = Field(
        None, max_length=50, description="Free-text time of day, display only"
    )


class RecurrenceRule(BaseModel):
    """Pattern, limits and skip rules shared by definitions and their inputs."""

    frequency: RecurrenceFrequency
    interval: int = Field(1, description="Every N units of frequency")
    days_of_week: Optional[list[int]] = Field(
        None, description="0=Monday ... 6=Sunday, for WEEKLY"
    )
    day_of_month: Optional[int] = Field(
        None, description="1-31, or -1 for the last day, for MONTHLY"
    )
    start_date: date
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None
    skip_weekends: bool = False
    skip_holidays: bool = False
    skip_dates: list[date] = Field(default_factory=list)


class RecurrenceDefinitionCreate(RecurrenceRule):
    """Create a new recurrence definition."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    team_id: Optional[str] = None
    start_date: Optional[date] = None
    task_template: TaskTemplate
    paused: bool = False


class RecurrenceDefinitionUpdate(BaseModel):
    """Owner-editable fields of a recurrence definition."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    team_id: Optional[str] = None
    frequency: Optional[RecurrenceFrequency] = None
    interval: Optional[int] = None
    days_of_week: Optional[list[int]] = None
    day_of_month: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    max_occurrences: Optional[int] = None
    skip_weekends: Optional[bool] = None
    skip_holidays: Optional[bool] = None
    skip_dates: Optional[list[date]] = None
    task_template: Optional[TaskTemplate] = None


# Fields whose change invalidates the cached next_generation_date
PATTERN_FIELDS = frozenset(
    {
        "frequency",
        "interval",
        "days_of_week",
        "day_of_month",
        "start_date",
        "end_date",
        "max_occurrences",
        "skip_weekends",
        "skip_holidays",
        "skip_dates",
    }
)

# Editable fields that an explicit None in an update leaves unchanged
NON_NULLABLE_FIELDS = frozenset(
    {
        "title",
        "frequency",
        "interval",
        "start_date",
        "skip_weekends",
        "skip_holidays",
        "skip_dates",
        "task_template",
    }
)


class BookkeepingUpdate(BaseModel):
    """State written by the scanner and lifecycle operations.

    Only explicitly set fields are written, so None clears a value.
    """

    occurrences_generated: Optional[int] = Field(None, ge=0)
    last_generated_date: Optional[date] = None
    next_generation_date: Optional[date] = None
    state: Optional[DefinitionState] = None
    last_error: Optional[str] = None


class RecurrenceDefinition(RecurrenceRule):
    """Recurrence definition with bookkeeping and metadata."""

    id: UUID
    owner_id: str
    team_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    task_template: TaskTemplate
    occurrences_generated: int = 0
    last_generated_date: Optional[date] = None
    next_generation_date: Optional[date] = None
    state: DefinitionState = DefinitionState.ACTIVE
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True

    @property
    def paused(self) -> bool:
        return self.state == DefinitionState.PAUSED

    @property
    def limit_reached(self) -> bool:
        return (
            self.max_occurrences is not None
            and self.occurrences_generated >= self.max_occurrences
        )


class RecurrenceStats(BaseModel):
    """Generation statistics for one definition."""

    occurrences_generated: int
    next_generation_date: Optional[date] = None
    last_generated_date: Optional[date] = None
    paused: bool
    state: DefinitionState
    max_occurrences: Optional[int] = None
    remaining_occurrences: Optional[int] = None
    last_error: Optional[str] = None
    task_counts: GeneratedTaskCounts = Field(default_factory=GeneratedTaskCounts)
    completion_rate: float = Field(0.0, description="Completed share in percent, 1 decimal")
    avg_completion_time_hours: float = Field(
        0.0, description="Mean hours from task creation to completion, 1 decimal"
    )
