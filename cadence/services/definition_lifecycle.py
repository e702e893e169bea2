"""
Recurrence definition lifecycle.

State machine over DefinitionState plus the guards evaluated before each
generation attempt. Functions here never touch storage; they return the
bookkeeping to write.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from cadence.core.exceptions import (
    DefinitionPaused,
    GenerationHalted,
    InvalidStateTransition,
    MaxOccurrencesReached,
    PastEndDate,
)
from cadence.models.enums import DefinitionState
from cadence.models.recurrence import BookkeepingUpdate, RecurrenceDefinition
from cadence.services.recurrence_pattern import next_candidate
from cadence.services.skip_policy import SkipPolicy

ALLOWED_TRANSITIONS: dict[DefinitionState, frozenset[DefinitionState]] = {
    DefinitionState.ACTIVE: frozenset(
        {
            DefinitionState.PAUSED,
            DefinitionState.EXHAUSTED,
            DefinitionState.EXPIRED,
            DefinitionState.DELETED,
        }
    ),
    DefinitionState.PAUSED: frozenset({DefinitionState.ACTIVE, DefinitionState.DELETED}),
    # Left only by an admin counter reset
    DefinitionState.EXHAUSTED: frozenset({DefinitionState.ACTIVE, DefinitionState.DELETED}),
    # Left only by editing the rule
    DefinitionState.EXPIRED: frozenset({DefinitionState.ACTIVE, DefinitionState.DELETED}),
    DefinitionState.DELETED: frozenset(),
}


def can_transition(current: DefinitionState, target: DefinitionState) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: DefinitionState, target: DefinitionState) -> None:
    """Raise InvalidStateTransition unless current -> target is allowed."""
    if not can_transition(current, target):
        raise InvalidStateTransition(current, target)


def pause(definition: RecurrenceDefinition) -> BookkeepingUpdate:
    """
    ACTIVE -> PAUSED. The cached next_generation_date is kept as is.

    Pausing a paused definition is a no-op (an empty update).
    """
    if definition.state == DefinitionState.PAUSED:
        return BookkeepingUpdate()
    ensure_transition(definition.state, DefinitionState.PAUSED)
    return BookkeepingUpdate(state=DefinitionState.PAUSED)


def resume(
    definition: RecurrenceDefinition, today: date, skip_policy: SkipPolicy
) -> BookkeepingUpdate:
    """
    PAUSED -> ACTIVE, recomputing a missing or past next_generation_date from today.

    Raises:
        InvalidStateTransition: definition is not paused
        SkipLimitExceeded: the recomputed date cannot be resolved
    """
    if definition.state == DefinitionState.ACTIVE:
        return BookkeepingUpdate()
    if definition.state != DefinitionState.PAUSED:
        raise InvalidStateTransition(definition.state, DefinitionState.ACTIVE)

    fields: dict = {"state": DefinitionState.ACTIVE}
    if definition.next_generation_date is None or definition.next_generation_date < today:
        reference = max(today, definition.last_generated_date or today)
        fields["next_generation_date"] = skip_policy.resolve(
            next_candidate(definition, reference), definition
        )
    return BookkeepingUpdate(**fields)


def reset_occurrences(
    definition: RecurrenceDefinition, skip_policy: SkipPolicy
) -> BookkeepingUpdate:
    """
    Admin reset of the occurrence counter; EXHAUSTED definitions become ACTIVE.

    Generation continues after the last generated date.
    """
    fields: dict = {
        "occurrences_generated": 0,
        "last_error": None,
        "next_generation_date": skip_policy.resolve(next_candidate(definition), definition),
    }
    if definition.state == DefinitionState.EXHAUSTED:
        fields["state"] = DefinitionState.ACTIVE
    return BookkeepingUpdate(**fields)


def check_generation_guards(definition: RecurrenceDefinition, candidate: date) -> None:
    """
    Evaluate lifecycle guards for a resolved candidate, in order.

    Raises:
        DefinitionPaused: definition is paused
        MaxOccurrencesReached: occurrence limit already reached
        PastEndDate: candidate falls after end_date
    """
    if definition.state == DefinitionState.PAUSED:
        raise DefinitionPaused(f"Recurrence {definition.id} is paused")

    if definition.limit_reached:
        raise MaxOccurrencesReached(
            f"Recurrence {definition.id} reached its maximum of {definition.max_occurrences} occurrences",
            details={"max_occurrences": definition.max_occurrences},
        )

    if definition.end_date is not None and candidate > definition.end_date:
        raise PastEndDate(
            f"Occurrence {candidate} of recurrence {definition.id} is after end date {definition.end_date}",
            details={"candidate": str(candidate), "end_date": str(definition.end_date)},
        )


def after_generation(
    definition: RecurrenceDefinition,
    occurrence: date,
    next_generation_date: date | None,
) -> BookkeepingUpdate:
    """Bookkeeping for a successfully materialized occurrence."""
    generated = definition.occurrences_generated + 1
    fields: dict = {
        "occurrences_generated": generated,
        "last_generated_date": occurrence,
        "next_generation_date": next_generation_date,
        "last_error": None,
    }
    if definition.max_occurrences is not None and generated >= definition.max_occurrences:
        fields["state"] = DefinitionState.EXHAUSTED
        fields["next_generation_date"] = None
    return BookkeepingUpdate(**fields)


def halt_update(definition: RecurrenceDefinition, halt: GenerationHalted) -> Optional[BookkeepingUpdate]:
    """Transition applied for a guard halt, or None when the state is kept."""
    target = halt.target_state
    if target is None or target == definition.state:
        return None
    ensure_transition(definition.state, target)
    return BookkeepingUpdate(state=target, next_generation_date=None)


def mark_deleted(definition: RecurrenceDefinition) -> DefinitionState:
    """Any live state -> DELETED."""
    ensure_transition(definition.state, DefinitionState.DELETED)
    return DefinitionState.DELETED
