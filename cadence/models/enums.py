"""
Enum definitions for the application.

These enums are used across models and provide type-safe status/priority values.
"""

from enum import Enum


class RecurrenceFrequency(str, Enum):
    """Supported recurrence frequencies."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class DefinitionState(str, Enum):
    """
    Lifecycle state of a recurrence definition.

    ACTIVE = scanned and generating
    PAUSED = stopped by its owner, resumable
    EXHAUSTED = occurrence limit reached, needs a counter reset
    EXPIRED = next occurrence fell after the end date, needs a rule edit
    DELETED = removed by its owner
    """

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    EXHAUSTED = "EXHAUSTED"
    EXPIRED = "EXPIRED"
    DELETED = "DELETED"


class TaskPriority(str, Enum):
    """Priority carried from a template onto generated tasks."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TaskStatus(str, Enum):
    """Generated task status."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class GenerationResult(str, Enum):
    """Outcome of processing one definition in a scan."""

    GENERATED = "GENERATED"
    HALTED = "HALTED"
    CLAIM_LOST = "CLAIM_LOST"
    FAILED = "FAILED"
    REPAIRED = "REPAIRED"
