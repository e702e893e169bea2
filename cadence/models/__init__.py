"""Pydantic models (schemas) for the application."""

from cadence.models.enums import (
    DefinitionState,
    GenerationResult,
    RecurrenceFrequency,
    TaskPriority,
    TaskStatus,
)
from cadence.models.recurrence import (
    NON_NULLABLE_FIELDS,
    PATTERN_FIELDS,
    BookkeepingUpdate,
    RecurrenceDefinition,
    RecurrenceDefinitionCreate,
    RecurrenceDefinitionUpdate,
    RecurrenceRule,
    RecurrenceStats,
    TaskTemplate,
)
from cadence.models.task import GeneratedTask, GeneratedTaskCounts, GeneratedTaskCreate, TaskFields

__all__ = [
    # Enums
    "DefinitionState",
    "GenerationResult",
    "RecurrenceFrequency",
    "TaskPriority",
    "TaskStatus",
    # Recurrence
    "NON_NULLABLE_FIELDS",
    "PATTERN_FIELDS",
    "BookkeepingUpdate",
    "RecurrenceDefinition",
    "RecurrenceDefinitionCreate",
    "RecurrenceDefinitionUpdate",
    "RecurrenceRule",
    "RecurrenceStats",
    "TaskTemplate",
    # Tasks
    "GeneratedTask",
    "GeneratedTaskCounts",
    "GeneratedTaskCreate",
    "TaskFields",
]
