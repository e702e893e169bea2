"""
Tests for the recurrence definition lifecycle.
"""

from datetime import date, datetime
from uuid import uuid4

import pytest

from cadence.core.exceptions import (
    DefinitionPaused,
    InvalidStateTransition,
    MaxOccurrencesReached,
    PastEndDate,
)
from cadence.models.enums import DefinitionState, RecurrenceFrequency
from cadence.models.recurrence import RecurrenceDefinition, TaskTemplate
from cadence.services import definition_lifecycle
from cadence.services.skip_policy import SkipPolicy


def _make_definition(**overrides) -> RecurrenceDefinition:
    fields = {
        "id": uuid4(),
        "owner_id": "test_user",
        "title": "Daily check",
        "frequency": RecurrenceFrequency.DAILY,
        "start_date": date(2024, 1, 1),
        "task_template": TaskTemplate(title="Check {{date}}"),
        "created_at": datetime(2024, 1, 1),
        "updated_at": datetime(2024, 1, 1),
    }
    fields.update(overrides)
    return RecurrenceDefinition(**fields)


class TestTransitions:
    def test_allowed_transitions(self):
        assert definition_lifecycle.can_transition(DefinitionState.ACTIVE, DefinitionState.PAUSED)
        assert definition_lifecycle.can_transition(DefinitionState.EXHAUSTED, DefinitionState.ACTIVE)
        assert not definition_lifecycle.can_transition(DefinitionState.PAUSED, DefinitionState.EXPIRED)

    def test_deleted_is_terminal(self):
        for target in DefinitionState:
            assert not definition_lifecycle.can_transition(DefinitionState.DELETED, target)

    def test_ensure_transition_raises(self):
        with pytest.raises(InvalidStateTransition) as exc_info:
            definition_lifecycle.ensure_transition(DefinitionState.EXPIRED, DefinitionState.PAUSED)
        assert exc_info.value.current == DefinitionState.EXPIRED
        assert exc_info.value.target == DefinitionState.PAUSED

    def test_mark_deleted(self):
        defn = _make_definition(state=DefinitionState.EXHAUSTED)
        assert definition_lifecycle.mark_deleted(defn) == DefinitionState.DELETED


class TestPauseResume:
    def test_pause_keeps_next_generation_date(self):
        defn = _make_definition(next_generation_date=date(2024, 1, 5))
        update = definition_lifecycle.pause(defn)
        assert update.state == DefinitionState.PAUSED
        assert update.model_fields_set == {"state"}

    def test_pause_twice_is_noop(self):
        defn = _make_definition(state=DefinitionState.PAUSED)
        assert definition_lifecycle.pause(defn).model_fields_set == set()

    def test_pause_exhausted_rejected(self):
        defn = _make_definition(state=DefinitionState.EXHAUSTED)
        with pytest.raises(InvalidStateTransition):
            definition_lifecycle.pause(defn)

    def test_resume_recomputes_past_next_date_from_today(self):
        defn = _make_definition(
            state=DefinitionState.PAUSED,
            last_generated_date=date(2024, 1, 2),
            next_generation_date=date(2024, 1, 3),
        )
        update = definition_lifecycle.resume(defn, date(2024, 1, 10), SkipPolicy())
        assert update.state == DefinitionState.ACTIVE
        assert update.next_generation_date == date(2024, 1, 11)

    def test_resume_recomputes_missing_next_date(self):
        defn = _make_definition(
            state=DefinitionState.PAUSED,
            skip_weekends=True,
            next_generation_date=None,
        )
        # Friday; tomorrow is Saturday so Monday is next
        update = definition_lifecycle.resume(defn, date(2024, 1, 5), SkipPolicy())
        assert update.next_generation_date == date(2024, 1, 8)

    def test_resume_yearly_before_anniversary_keeps_this_year(self):
        defn = _make_definition(
            frequency=RecurrenceFrequency.YEARLY,
            start_date=date(2024, 6, 15),
            state=DefinitionState.PAUSED,
            last_generated_date=date(2024, 6, 15),
            next_generation_date=date(2025, 6, 15),
        )
        update = definition_lifecycle.resume(defn, date(2026, 3, 1), SkipPolicy())
        assert update.next_generation_date == date(2026, 6, 15)

    def test_resume_keeps_future_next_date(self):
        defn = _make_definition(
            state=DefinitionState.PAUSED,
            next_generation_date=date(2024, 1, 20),
        )
        update = definition_lifecycle.resume(defn, date(2024, 1, 10), SkipPolicy())
        assert update.model_fields_set == {"state"}

    def test_resume_active_is_noop(self):
        defn = _make_definition()
        update = definition_lifecycle.resume(defn, date(2024, 1, 10), SkipPolicy())
        assert update.model_fields_set == set()

    def test_resume_exhausted_rejected(self):
        defn = _make_definition(state=DefinitionState.EXHAUSTED)
        with pytest.raises(InvalidStateTransition):
            definition_lifecycle.resume(defn, date(2024, 1, 10), SkipPolicy())


class TestGenerationGuards:
    def test_active_definition_passes(self):
        defn = _make_definition(max_occurrences=3, occurrences_generated=2)
        definition_lifecycle.check_generation_guards(defn, date(2024, 1, 5))

    def test_paused_checked_first(self):
        defn = _make_definition(
            state=DefinitionState.PAUSED, max_occurrences=1, occurrences_generated=1
        )
        with pytest.raises(DefinitionPaused):
            definition_lifecycle.check_generation_guards(defn, date(2024, 1, 5))

    def test_limit_reached(self):
        defn = _make_definition(max_occurrences=2, occurrences_generated=2)
        with pytest.raises(MaxOccurrencesReached) as exc_info:
            definition_lifecycle.check_generation_guards(defn, date(2024, 1, 5))
        assert exc_info.value.target_state == DefinitionState.EXHAUSTED

    def test_past_end_date(self):
        defn = _make_definition(end_date=date(2024, 1, 4))
        with pytest.raises(PastEndDate) as exc_info:
            definition_lifecycle.check_generation_guards(defn, date(2024, 1, 5))
        assert exc_info.value.target_state == DefinitionState.EXPIRED

    def test_end_date_is_inclusive(self):
        defn = _make_definition(end_date=date(2024, 1, 5))
        definition_lifecycle.check_generation_guards(defn, date(2024, 1, 5))


class TestBookkeeping:
    def test_after_generation_advances(self):
        defn = _make_definition(occurrences_generated=1)
        update = definition_lifecycle.after_generation(defn, date(2024, 1, 3), date(2024, 1, 4))
        assert update.occurrences_generated == 2
        assert update.last_generated_date == date(2024, 1, 3)
        assert update.next_generation_date == date(2024, 1, 4)
        assert "state" not in update.model_fields_set
        assert "last_error" in update.model_fields_set

    def test_after_generation_exhausts_at_limit(self):
        defn = _make_definition(max_occurrences=3, occurrences_generated=2)
        update = definition_lifecycle.after_generation(defn, date(2024, 1, 7), date(2024, 1, 9))
        assert update.occurrences_generated == 3
        assert update.state == DefinitionState.EXHAUSTED
        assert update.next_generation_date is None

    def test_halt_update_for_limit(self):
        defn = _make_definition(max_occurrences=1, occurrences_generated=1)
        update = definition_lifecycle.halt_update(defn, MaxOccurrencesReached("limit"))
        assert update.state == DefinitionState.EXHAUSTED
        assert update.next_generation_date is None

    def test_halt_update_for_pause_keeps_state(self):
        defn = _make_definition(state=DefinitionState.PAUSED)
        assert definition_lifecycle.halt_update(defn, DefinitionPaused("paused")) is None

    def test_reset_occurrences_reactivates_exhausted(self):
        defn = _make_definition(
            state=DefinitionState.EXHAUSTED,
            max_occurrences=3,
            occurrences_generated=3,
            last_generated_date=date(2024, 1, 7),
        )
        update = definition_lifecycle.reset_occurrences(defn, SkipPolicy())
        assert update.occurrences_generated == 0
        assert update.state == DefinitionState.ACTIVE
        assert update.next_generation_date == date(2024, 1, 8)
