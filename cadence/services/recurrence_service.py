"""
Recurrence service.

Owner and admin operations on recurrence definitions, all addressed by
definition id. Rules are validated and the cached next_generation_date is
recomputed here, before anything is persisted.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Union
from uuid import UUID

from cadence.core.exceptions import NotFoundError, ValidationError
from cadence.core.logger import setup_logger
from cadence.interfaces.clock import IClock
from cadence.interfaces.recurrence_repository import IRecurrenceRepository
from cadence.interfaces.task_repository import ITaskRepository
from cadence.models.enums import DefinitionState, RecurrenceFrequency, TaskStatus
from cadence.models.recurrence import (
    NON_NULLABLE_FIELDS,
    PATTERN_FIELDS,
    BookkeepingUpdate,
    RecurrenceDefinition,
    RecurrenceDefinitionCreate,
    RecurrenceDefinitionUpdate,
    RecurrenceStats,
)
from cadence.models.task import GeneratedTask, GeneratedTaskCounts
from cadence.services import definition_lifecycle
from cadence.services.maintenance_scanner import GenerationOutcome, MaintenanceScanner
from cadence.services.recurrence_pattern import next_candidate, reference_date, validate_rule
from cadence.services.skip_policy import SkipPolicy
from cadence.utils.datetime_utils import to_date

logger = setup_logger(__name__)

DateInput = Union[date, str]


def average_completion_hours(tasks: Iterable[GeneratedTask]) -> float:
    """Mean hours from creation to completion over completed tasks, 1 decimal."""
    durations = [
        (t.completed_at - t.created_at).total_seconds() / 3600
        for t in tasks
        if t.status == TaskStatus.COMPLETED and t.completed_at is not None
    ]
    return round(sum(durations) / len(durations), 1) if durations else 0.0


class RecurrenceService:
    """Service for managing recurrence definitions."""

    def __init__(
        self,
        recurrence_repo: IRecurrenceRepository,
        task_repo: ITaskRepository,
        clock: IClock,
        scanner: MaintenanceScanner,
        skip_policy: Optional[SkipPolicy] = None,
    ):
        self.recurrence_repo = recurrence_repo
        self.task_repo = task_repo
        self.clock = clock
        self.scanner = scanner
        self.skip_policy = skip_policy or SkipPolicy()

    async def create(self, owner_id: str, data: RecurrenceDefinitionCreate) -> RecurrenceDefinition:
        """
        Create a recurrence definition.

        start_date defaults to today. The first occurrence is the first
        usable date after start_date.

        Raises:
            ValidationError: malformed rule
            SkipLimitExceeded: skip rules leave no usable first occurrence
        """
        if data.start_date is None:
            data = data.model_copy(update={"start_date": self.clock.today()})
        validate_rule(data)

        first = self.skip_policy.resolve(next_candidate(data, data.start_date), data)
        definition = await self.recurrence_repo.create(owner_id, data, next_generation_date=first)
        logger.info(
            f"Created recurrence {definition.id} ({definition.frequency.value}, "
            f"every {definition.interval}) for {owner_id}, first occurrence {first}"
        )
        return definition

    async def get(self, definition_id: UUID) -> RecurrenceDefinition:
        """Get a definition. Raises NotFoundError."""
        definition = await self.recurrence_repo.get(definition_id)
        if definition is None:
            raise NotFoundError(f"Recurrence {definition_id} not found")
        return definition

    async def list(
        self,
        owner_id: Optional[str] = None,
        team_id: Optional[str] = None,
        states: Optional[Iterable[DefinitionState]] = None,
        frequency: Optional[RecurrenceFrequency] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[RecurrenceDefinition]:
        return await self.recurrence_repo.list(
            owner_id=owner_id,
            team_id=team_id,
            states=states,
            frequency=frequency,
            search=search,
            limit=limit,
            offset=offset,
        )

    async def update(
        self, definition_id: UUID, update: RecurrenceDefinitionUpdate
    ) -> RecurrenceDefinition:
        """
        Apply an owner edit.

        Counter, last generated date and owner are not part of the editable
        fields. Changing any pattern field recomputes next_generation_date,
        and returns an EXPIRED definition to ACTIVE.

        Raises:
            NotFoundError: definition does not exist
            ValidationError: merged rule is malformed
            SkipLimitExceeded: merged skip rules leave no usable occurrence
        """
        current = await self.get(definition_id)
        changes = {
            key: value
            for key, value in update.model_dump(exclude_unset=True).items()
            if value is not None or key not in NON_NULLABLE_FIELDS
        }
        if "task_template" in changes:
            changes["task_template"] = update.task_template
        if not changes:
            return current

        merged = current.model_copy(update=changes)
        validate_rule(merged)

        bookkeeping: dict = {}
        if PATTERN_FIELDS & changes.keys():
            if current.state == DefinitionState.EXPIRED:
                definition_lifecycle.ensure_transition(current.state, DefinitionState.ACTIVE)
                merged = merged.model_copy(update={"state": DefinitionState.ACTIVE})
                bookkeeping["state"] = DefinitionState.ACTIVE
            if merged.limit_reached:
                bookkeeping["next_generation_date"] = None
                if merged.state == DefinitionState.ACTIVE:
                    bookkeeping["state"] = DefinitionState.EXHAUSTED
            elif merged.state in (DefinitionState.ACTIVE, DefinitionState.PAUSED):
                bookkeeping["next_generation_date"] = self._recompute_next(merged)

        await self.recurrence_repo.update(definition_id, RecurrenceDefinitionUpdate(**changes))
        if PATTERN_FIELDS & changes.keys():
            # A scanner holding the claim computed its next date from the old rule
            await self.recurrence_repo.update_bookkeeping(
                definition_id, BookkeepingUpdate(**bookkeeping), clear_claim=True
            )
        logger.info(f"Updated recurrence {definition_id}: {sorted(changes)}")
        return await self.get(definition_id)

    async def delete(self, definition_id: UUID) -> bool:
        """Delete a definition. Tasks it generated are kept."""
        definition = await self.get(definition_id)
        definition_lifecycle.mark_deleted(definition)
        deleted = await self.recurrence_repo.delete(definition_id)
        logger.info(f"Deleted recurrence {definition_id}")
        return deleted

    async def pause(self, definition_id: UUID) -> RecurrenceDefinition:
        definition = await self.get(definition_id)
        return await self._apply(definition, definition_lifecycle.pause(definition), "paused")

    async def resume(self, definition_id: UUID) -> RecurrenceDefinition:
        definition = await self.get(definition_id)
        update = definition_lifecycle.resume(definition, self.clock.today(), self.skip_policy)
        return await self._apply(definition, update, "resumed")

    async def reset_occurrences(self, definition_id: UUID) -> RecurrenceDefinition:
        """Admin reset of the occurrence counter."""
        definition = await self.get(definition_id)
        update = definition_lifecycle.reset_occurrences(definition, self.skip_policy)
        return await self._apply(definition, update, "counter reset")

    async def add_skip_date(self, definition_id: UUID, skip_date: DateInput) -> RecurrenceDefinition:
        """
        Exclude a date. When it is the cached next occurrence, the next
        occurrence is recomputed.
        """
        day = self._parse_date(skip_date)
        definition = await self.get(definition_id)
        if day in definition.skip_dates:
            return definition

        skip_dates = sorted(set(definition.skip_dates) | {day})
        updated = definition.model_copy(update={"skip_dates": skip_dates})
        bookkeeping = BookkeepingUpdate()
        if definition.next_generation_date == day:
            bookkeeping = BookkeepingUpdate(next_generation_date=self._recompute_next(updated))

        await self.recurrence_repo.update(definition_id, RecurrenceDefinitionUpdate(skip_dates=skip_dates))
        await self.recurrence_repo.update_bookkeeping(definition_id, bookkeeping, clear_claim=True)
        logger.info(f"Added skip date {day} to recurrence {definition_id}")
        return await self.get(definition_id)

    async def remove_skip_date(self, definition_id: UUID, skip_date: DateInput) -> RecurrenceDefinition:
        """Re-include a date and recompute the next occurrence."""
        day = self._parse_date(skip_date)
        definition = await self.get(definition_id)
        if day not in definition.skip_dates:
            return definition

        skip_dates = [d for d in definition.skip_dates if d != day]
        updated = definition.model_copy(update={"skip_dates": skip_dates})
        bookkeeping = BookkeepingUpdate()
        if updated.state in (DefinitionState.ACTIVE, DefinitionState.PAUSED) and not updated.limit_reached:
            bookkeeping = BookkeepingUpdate(next_generation_date=self._recompute_next(updated))

        await self.recurrence_repo.update(definition_id, RecurrenceDefinitionUpdate(skip_dates=skip_dates))
        await self.recurrence_repo.update_bookkeeping(definition_id, bookkeeping, clear_claim=True)
        logger.info(f"Removed skip date {day} from recurrence {definition_id}")
        return await self.get(definition_id)

    async def generate_now(self, definition_id: UUID, count: int = 1) -> list[GenerationOutcome]:
        """Generate occurrences immediately (see MaintenanceScanner.generate_now)."""
        return await self.scanner.generate_now(definition_id, count)

    async def stats(self, definition_id: UUID) -> RecurrenceStats:
        """Generation statistics and the status breakdown of generated tasks."""
        definition = await self.get(definition_id)
        tasks = await self.task_repo.list_by_recurrence(definition_id, limit=100000)
        today = self.clock.today()

        counts = GeneratedTaskCounts(
            total=len(tasks),
            pending=sum(1 for t in tasks if t.status == TaskStatus.PENDING),
            in_progress=sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS),
            completed=sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
            overdue=sum(
                1 for t in tasks if t.status != TaskStatus.COMPLETED and t.due_date < today
            ),
        )
        completion_rate = round(counts.completed / counts.total * 100, 1) if counts.total else 0.0

        remaining = None
        if definition.max_occurrences is not None:
            remaining = max(definition.max_occurrences - definition.occurrences_generated, 0)

        return RecurrenceStats(
            occurrences_generated=definition.occurrences_generated,
            next_generation_date=definition.next_generation_date,
            last_generated_date=definition.last_generated_date,
            paused=definition.paused,
            state=definition.state,
            max_occurrences=definition.max_occurrences,
            remaining_occurrences=remaining,
            last_error=definition.last_error,
            task_counts=counts,
            completion_rate=completion_rate,
            avg_completion_time_hours=average_completion_hours(tasks),
        )

    def _recompute_next(self, definition: RecurrenceDefinition) -> date:
        return self.skip_policy.resolve(
            next_candidate(definition, reference_date(definition)), definition
        )

    async def _apply(
        self, definition: RecurrenceDefinition, update: BookkeepingUpdate, action: str
    ) -> RecurrenceDefinition:
        if not update.model_fields_set:
            return definition
        await self.recurrence_repo.update_bookkeeping(definition.id, update, clear_claim=True)
        logger.info(f"Recurrence {definition.id} {action}")
        return await self.get(definition.id)

    @staticmethod
    def _parse_date(value: DateInput) -> date:
        try:
            return to_date(value)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid date: {value}", details={"value": str(value)}) from e
