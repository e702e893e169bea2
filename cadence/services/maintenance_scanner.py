"""
Maintenance scanner.

Periodic driver of task generation. Each cycle selects the due definitions,
claims them one by one, and for each claimed definition resolves the next
occurrence, checks the lifecycle guards, materializes the task and advances
the bookkeeping under the claim.

Failures are isolated per definition: one broken rule never stops the cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional
from uuid import UUID, uuid4

from cadence.core.exceptions import (
    CadenceError,
    DefinitionPaused,
    DuplicateError,
    GenerationHalted,
    MaxOccurrencesReached,
    NotFoundError,
    PastEndDate,
    SkipLimitExceeded,
    ValidationError,
)
from cadence.core.logger import setup_logger
from cadence.interfaces.clock import IClock
from cadence.interfaces.recurrence_repository import IRecurrenceRepository
from cadence.interfaces.task_repository import ITaskRepository
from cadence.models.enums import DefinitionState, GenerationResult
from cadence.models.recurrence import BookkeepingUpdate, RecurrenceDefinition
from cadence.models.task import GeneratedTask
from cadence.services import definition_lifecycle
from cadence.services.recurrence_pattern import next_candidate, reference_date
from cadence.services.skip_policy import SkipPolicy
from cadence.services.task_materializer import build_task

logger = setup_logger(__name__)

DEFAULT_CLAIM_TTL_SECONDS = 300
DEFAULT_BATCH_SIZE = 100
GENERATE_NOW_MAX_COUNT = 10


@dataclass
class GenerationOutcome:
    """Result of processing one definition once."""

    definition_id: UUID
    result: GenerationResult
    occurrence_date: Optional[date] = None
    task_id: Optional[UUID] = None
    state: Optional[DefinitionState] = None
    message: Optional[str] = None


@dataclass
class ScanReport:
    """Per-definition outcomes of a scanner or maintenance pass."""

    outcomes: list[GenerationOutcome] = field(default_factory=list)

    def add(self, outcome: GenerationOutcome) -> None:
        self.outcomes.append(outcome)

    def count(self, result: GenerationResult) -> int:
        return sum(1 for o in self.outcomes if o.result == result)

    @property
    def generated(self) -> int:
        return self.count(GenerationResult.GENERATED)

    @property
    def failed(self) -> int:
        return self.count(GenerationResult.FAILED)

    def summary(self) -> str:
        parts = [f"{r.value.lower()}={self.count(r)}" for r in GenerationResult if self.count(r)]
        return ", ".join(parts) or "nothing to do"


class MaintenanceScanner:
    """Selects due definitions and generates their occurrences."""

    def __init__(
        self,
        recurrence_repo: IRecurrenceRepository,
        task_repo: ITaskRepository,
        clock: IClock,
        skip_policy: Optional[SkipPolicy] = None,
        claim_ttl_seconds: int = DEFAULT_CLAIM_TTL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        worker_id: str = "cadence-worker",
        max_per_definition: int = 1,
        generate_now_max_count: int = GENERATE_NOW_MAX_COUNT,
    ):
        self._recurrence_repo = recurrence_repo
        self._task_repo = task_repo
        self._clock = clock
        self._skip_policy = skip_policy or SkipPolicy()
        self._claim_ttl = timedelta(seconds=claim_ttl_seconds)
        self._batch_size = batch_size
        self._worker_id = worker_id
        self._max_per_definition = max(max_per_definition, 1)
        self._generate_now_max_count = generate_now_max_count

    async def run_cycle(self) -> ScanReport:
        """
        Run one scan over all due definitions.

        Storage errors while selecting propagate; anything raised while
        processing a single definition is recorded on that definition.
        """
        report = ScanReport()
        due = await self._recurrence_repo.find_due(self._clock.now(), limit=self._batch_size)
        logger.debug(f"[{self._worker_id}] {len(due)} recurrence(s) due")

        for definition in due:
            for _ in range(self._max_per_definition):
                outcome = await self.process_definition(definition)
                report.add(outcome)
                if outcome.result != GenerationResult.GENERATED:
                    break
                definition = await self._recurrence_repo.get(definition.id)
                if not self._is_due(definition):
                    break

        logger.info(f"[{self._worker_id}] Scan cycle finished: {report.summary()}")
        return report

    def _is_due(self, definition: Optional[RecurrenceDefinition]) -> bool:
        if definition is None or definition.state != DefinitionState.ACTIVE:
            return False
        return (
            definition.next_generation_date is None
            or definition.next_generation_date <= self._clock.today()
        )

    def occurrence_for(self, definition: RecurrenceDefinition) -> date:
        """
        Resolved date of the definition's next occurrence.

        The cached next_generation_date is used while it is still ahead of the
        last generated date; otherwise the pattern is evaluated again.

        Raises:
            SkipLimitExceeded: no usable date within the skip bound
        """
        cached = definition.next_generation_date
        last = definition.last_generated_date
        if cached is not None and (last is None or cached > last):
            candidate = cached
        else:
            candidate = next_candidate(definition, reference_date(definition))
        return self._skip_policy.resolve(candidate, definition)

    def _precompute_next(self, definition: RecurrenceDefinition, occurrence: date) -> Optional[date]:
        try:
            return self._skip_policy.resolve(next_candidate(definition, occurrence), definition)
        except SkipLimitExceeded as e:
            logger.warning(
                f"Could not pre-compute next occurrence of recurrence {definition.id}: {e.message}"
            )
            return None

    async def process_definition(self, definition: RecurrenceDefinition) -> GenerationOutcome:
        """Claim a definition and generate at most one occurrence for it."""
        token = f"{self._worker_id}:{uuid4().hex}"
        now = self._clock.now()
        claimed = await self._recurrence_repo.claim(
            definition.id,
            definition.next_generation_date,
            token,
            now,
            now + self._claim_ttl,
        )
        if not claimed:
            logger.debug(f"Recurrence {definition.id} claimed elsewhere, skipping")
            return GenerationOutcome(definition.id, GenerationResult.CLAIM_LOST)

        try:
            return await self._generate_claimed(definition.id, token)
        except Exception as e:
            logger.exception(f"Failed to generate task for recurrence {definition.id}: {e}")
            message = e.message if isinstance(e, CadenceError) else str(e)
            await self._recurrence_repo.record_failure(definition.id, message, claim_token=token)
            return GenerationOutcome(definition.id, GenerationResult.FAILED, message=message)

    async def _generate_claimed(self, definition_id: UUID, token: str) -> GenerationOutcome:
        # Always work from the persisted record, never from the scan snapshot
        definition = await self._recurrence_repo.get(definition_id)
        if definition is None:
            raise NotFoundError(f"Recurrence {definition_id} not found")

        occurrence = self.occurrence_for(definition)

        try:
            definition_lifecycle.check_generation_guards(definition, occurrence)
        except GenerationHalted as halt:
            update = definition_lifecycle.halt_update(definition, halt)
            if update is not None:
                await self._recurrence_repo.update_bookkeeping(definition.id, update, claim_token=token)
            else:
                await self._recurrence_repo.release_claim(definition.id, token)
            logger.info(f"Recurrence {definition.id} halted: {halt.message}")
            return GenerationOutcome(
                definition.id,
                GenerationResult.HALTED,
                occurrence_date=occurrence,
                state=halt.target_state or definition.state,
                message=halt.message,
            )

        task = await self._materialize(definition, occurrence)

        update = definition_lifecycle.after_generation(
            definition, occurrence, self._precompute_next(definition, occurrence)
        )
        written = await self._recurrence_repo.update_bookkeeping(
            definition.id, update, claim_token=token
        )
        if not written:
            # Lease expired and another worker took over; the task is keyed,
            # so its retry reuses it.
            logger.warning(f"Claim on recurrence {definition.id} lost before bookkeeping")
            return GenerationOutcome(
                definition.id,
                GenerationResult.CLAIM_LOST,
                occurrence_date=occurrence,
                task_id=task.id,
            )

        logger.info(
            f"Generated task {task.id} for recurrence {definition.id} "
            f"(occurrence #{task.occurrence_number} on {occurrence})"
        )
        return GenerationOutcome(
            definition.id,
            GenerationResult.GENERATED,
            occurrence_date=occurrence,
            task_id=task.id,
            state=update.state or definition.state,
        )

    async def _materialize(self, definition: RecurrenceDefinition, occurrence: date) -> GeneratedTask:
        """Create the occurrence's task unless an earlier attempt already did."""
        task_data = build_task(definition, occurrence)
        existing = await self._task_repo.get_by_idempotency_key(task_data.idempotency_key)
        if existing is not None:
            logger.info(f"Reusing task {existing.id} for occurrence {task_data.idempotency_key}")
            return existing
        try:
            return await self._task_repo.create(task_data)
        except DuplicateError:
            existing = await self._task_repo.get_by_idempotency_key(task_data.idempotency_key)
            if existing is None:
                raise
            return existing

    async def generate_now(self, definition_id: UUID, count: int = 1) -> list[GenerationOutcome]:
        """
        Generate up to count occurrences immediately, ignoring the schedule.

        Stops early when a guard halts generation or the claim is lost.

        Raises:
            ValidationError: count outside 1..GENERATE_NOW_MAX_COUNT
            NotFoundError: definition does not exist
            DefinitionPaused: definition is paused
            MaxOccurrencesReached: definition is exhausted
            PastEndDate: definition has expired
        """
        if not 1 <= count <= self._generate_now_max_count:
            raise ValidationError(
                f"Count must be between 1 and {self._generate_now_max_count}",
                details={"count": count},
            )

        definition = await self._recurrence_repo.get(definition_id)
        if definition is None:
            raise NotFoundError(f"Recurrence {definition_id} not found")
        if definition.state == DefinitionState.PAUSED:
            raise DefinitionPaused(f"Recurrence {definition_id} is paused")
        if definition.state == DefinitionState.EXHAUSTED:
            raise MaxOccurrencesReached(
                f"Recurrence {definition_id} reached its maximum of {definition.max_occurrences} occurrences"
            )
        if definition.state == DefinitionState.EXPIRED:
            raise PastEndDate(f"Recurrence {definition_id} ended on {definition.end_date}")

        outcomes: list[GenerationOutcome] = []
        for _ in range(count):
            outcome = await self.process_definition(definition)
            outcomes.append(outcome)
            if outcome.result != GenerationResult.GENERATED:
                break
            definition = await self._recurrence_repo.get(definition_id)
            if definition is None or definition.state != DefinitionState.ACTIVE:
                break

        logger.info(
            f"Generate-now for recurrence {definition_id}: "
            f"{sum(1 for o in outcomes if o.result == GenerationResult.GENERATED)}/{count} generated"
        )
        return outcomes

    async def run_maintenance(self) -> ScanReport:
        """
        Repair definitions the scanner would otherwise handle badly.

        - ACTIVE definitions without a next_generation_date get one
        - ACTIVE definitions at their occurrence limit become EXHAUSTED
        - ACTIVE definitions past their end date become EXPIRED
        """
        report = ScanReport()
        today = self._clock.today()
        offset = 0

        while True:
            batch = await self._recurrence_repo.list(
                states=[DefinitionState.ACTIVE], limit=self._batch_size, offset=offset
            )
            if not batch:
                break
            left_active = 0
            for definition in batch:
                try:
                    outcome = await self._repair(definition, today)
                except Exception as e:
                    logger.error(f"Maintenance failed for recurrence {definition.id}: {e}")
                    outcome = GenerationOutcome(
                        definition.id, GenerationResult.FAILED, message=str(e)
                    )
                if outcome is not None:
                    report.add(outcome)
                if outcome is None or outcome.state in (None, DefinitionState.ACTIVE):
                    left_active += 1
            # Definitions moved out of ACTIVE no longer match the listing
            offset += left_active
            if len(batch) < self._batch_size:
                break

        logger.info(f"Maintenance pass finished: {report.summary()}")
        return report

    async def _repair(
        self, definition: RecurrenceDefinition, today: date
    ) -> Optional[GenerationOutcome]:
        target: Optional[DefinitionState] = None
        fields: dict = {}

        if definition.limit_reached:
            target = DefinitionState.EXHAUSTED
        elif definition.end_date is not None and definition.end_date < today and (
            definition.next_generation_date is None
            or definition.next_generation_date > definition.end_date
        ):
            target = DefinitionState.EXPIRED
        elif definition.next_generation_date is None:
            try:
                fields["next_generation_date"] = self.occurrence_for(definition)
            except SkipLimitExceeded as e:
                await self._recurrence_repo.update_bookkeeping(
                    definition.id, BookkeepingUpdate(last_error=e.message)
                )
                return GenerationOutcome(definition.id, GenerationResult.FAILED, message=e.message)

        if target is not None:
            definition_lifecycle.ensure_transition(definition.state, target)
            fields.update(state=target, next_generation_date=None)
        if not fields:
            return None

        await self._recurrence_repo.update_bookkeeping(definition.id, BookkeepingUpdate(**fields))
        logger.info(f"Repaired recurrence {definition.id}: {fields}")
        return GenerationOutcome(
            definition.id,
            GenerationResult.REPAIRED,
            occurrence_date=fields.get("next_generation_date"),
            state=target or definition.state,
        )
