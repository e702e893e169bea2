"""
Task template materialization.

Renders a concrete task from a definition's template for one occurrence.
Rendering is pure: the same template, date and count always give the same
fields.
"""

from __future__ import annotations

import re
from datetime import date
from typing import Optional

from cadence.models.recurrence import RecurrenceDefinition, TaskTemplate
from cadence.models.task import GeneratedTaskCreate, TaskFields
from cadence.models.enums import TaskStatus
from cadence.utils.datetime_utils import format_iso_date

_PLACEHOLDER = re.compile(r"\{\{\s*(date|count)\s*\}\}")


def _substitute(text: Optional[str], values: dict[str, str]) -> Optional[str]:
    if text is None:
        return None
    return _PLACEHOLDER.sub(lambda match: values[match.group(1)], text)


def render(template: TaskTemplate, occurrence_date: date, occurrence_count: int) -> TaskFields:
    """
    Render task fields for one occurrence.

    Args:
        template: Definition's task template
        occurrence_date: Resolved occurrence date, becomes the due date
        occurrence_count: 1-indexed occurrence number

    Returns:
        TaskFields with {{date}} and {{count}} substituted in title/description
    """
    values = {
        "date": format_iso_date(occurrence_date),
        "count": str(occurrence_count),
    }
    return TaskFields(
        title=_substitute(template.title, values),
        description=_substitute(template.description, values),
        priority=template.priority,
        assignee_id=template.assignee_id,
        estimated_minutes=template.estimated_minutes,
        tags=list(template.tags),
        time=template.time,
        due_date=occurrence_date,
        status=TaskStatus.PENDING,
    )


def idempotency_key(definition: RecurrenceDefinition, occurrence_date: date) -> str:
    """Key identifying one occurrence of one definition."""
    return f"{definition.id}:{format_iso_date(occurrence_date)}"


def build_task(definition: RecurrenceDefinition, occurrence_date: date) -> GeneratedTaskCreate:
    """Materialize the next occurrence of a definition as a task to persist."""
    count = definition.occurrences_generated + 1
    fields = render(definition.task_template, occurrence_date, count)
    return GeneratedTaskCreate(
        **fields.model_dump(),
        created_by=definition.owner_id,
        team_id=definition.team_id,
        recurrence_id=definition.id,
        occurrence_number=count,
        idempotency_key=idempotency_key(definition, occurrence_date),
    )
