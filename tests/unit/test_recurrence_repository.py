"""
Unit tests for the SQLite recurrence and generated task repositories.
"""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest

from cadence.core.exceptions import DuplicateError, NotFoundError
from cadence.infrastructure.local.recurrence_repository import SqliteRecurrenceRepository
from cadence.infrastructure.local.task_repository import SqliteTaskRepository
from cadence.models.enums import DefinitionState, RecurrenceFrequency, TaskPriority, TaskStatus
from cadence.models.recurrence import (
    BookkeepingUpdate,
    RecurrenceDefinitionCreate,
    RecurrenceDefinitionUpdate,
    TaskTemplate,
)
from cadence.models.task import GeneratedTaskCreate

NOW = datetime(2024, 1, 10, 9, 0, tzinfo=timezone.utc)


def _make_create(**overrides) -> RecurrenceDefinitionCreate:
    fields = {
        "title": "Daily Standup Note",
        "frequency": RecurrenceFrequency.DAILY,
        "start_date": date(2024, 1, 1),
        "task_template": TaskTemplate(title="Standup {{date}}", tags=["daily"]),
    }
    fields.update(overrides)
    return RecurrenceDefinitionCreate(**fields)


def _make_task(recurrence_id, due: date = date(2024, 1, 3)) -> GeneratedTaskCreate:
    return GeneratedTaskCreate(
        title=f"Standup {due}",
        priority=TaskPriority.HIGH,
        due_date=due,
        created_by="test_user_123",
        recurrence_id=recurrence_id,
        occurrence_number=1,
        idempotency_key=f"{recurrence_id}:{due.isoformat()}",
    )


@pytest.mark.asyncio
async def test_create_and_get_definition(session_factory, test_user_id):
    """Test creating a recurrence definition."""
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(
        test_user_id,
        _make_create(
            frequency=RecurrenceFrequency.WEEKLY,
            days_of_week=[4, 0, 2],
            skip_dates=[date(2024, 1, 5)],
        ),
        next_generation_date=date(2024, 1, 3),
    )

    assert created.owner_id == test_user_id
    assert created.state == DefinitionState.ACTIVE
    assert created.occurrences_generated == 0
    assert created.next_generation_date == date(2024, 1, 3)

    fetched = await repo.get(created.id)
    assert fetched is not None
    assert fetched.days_of_week == [0, 2, 4]
    assert fetched.skip_dates == [date(2024, 1, 5)]
    assert fetched.task_template.tags == ["daily"]


@pytest.mark.asyncio
async def test_create_paused_definition(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(test_user_id, _make_create(paused=True))
    assert created.state == DefinitionState.PAUSED
    assert created.paused is True


@pytest.mark.asyncio
async def test_get_missing_definition(session_factory):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    assert await repo.get(uuid4()) is None


@pytest.mark.asyncio
async def test_list_filters_by_owner_and_state(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    await repo.create(test_user_id, _make_create(title="Active"))
    await repo.create(test_user_id, _make_create(title="Paused", paused=True))
    await repo.create("other_user", _make_create(title="Other"))

    mine = await repo.list(owner_id=test_user_id)
    assert {d.title for d in mine} == {"Active", "Paused"}

    active = await repo.list(owner_id=test_user_id, states=[DefinitionState.ACTIVE])
    assert [d.title for d in active] == ["Active"]


@pytest.mark.asyncio
async def test_update_clears_nullable_fields_only(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(
        test_user_id, _make_create(end_date=date(2024, 6, 1), max_occurrences=10)
    )

    updated = await repo.update(
        created.id,
        RecurrenceDefinitionUpdate(title=None, end_date=None, interval=3),
    )

    assert updated.title == "Daily Standup Note"
    assert updated.end_date is None
    assert updated.max_occurrences == 10
    assert updated.interval == 3


@pytest.mark.asyncio
async def test_update_missing_definition(session_factory):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    with pytest.raises(NotFoundError):
        await repo.update(uuid4(), RecurrenceDefinitionUpdate(title="x"))


@pytest.mark.asyncio
async def test_delete_definition(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(test_user_id, _make_create())

    assert await repo.delete(created.id) is True
    assert await repo.get(created.id) is None
    assert await repo.delete(created.id) is False


@pytest.mark.asyncio
async def test_find_due_selects_active_due_definitions(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    due = await repo.create(test_user_id, _make_create(title="Due"), date(2024, 1, 10))
    missing = await repo.create(test_user_id, _make_create(title="No next date"), None)
    await repo.create(test_user_id, _make_create(title="Future"), date(2024, 1, 11))
    await repo.create(test_user_id, _make_create(title="Paused", paused=True), date(2024, 1, 2))

    found = await repo.find_due(NOW)

    assert {d.id for d in found} == {due.id, missing.id}


@pytest.mark.asyncio
async def test_claim_is_exclusive(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(test_user_id, _make_create(), date(2024, 1, 10))
    expires = NOW + timedelta(minutes=5)

    assert await repo.claim(created.id, date(2024, 1, 10), "worker-a", NOW, expires) is True
    assert await repo.claim(created.id, date(2024, 1, 10), "worker-b", NOW, expires) is False

    # Claimed definitions are not offered again while the lease is live
    assert await repo.find_due(NOW) == []


@pytest.mark.asyncio
async def test_claim_requires_expected_next_date(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(test_user_id, _make_create(), date(2024, 1, 10))
    expires = NOW + timedelta(minutes=5)

    assert await repo.claim(created.id, date(2024, 1, 9), "worker-a", NOW, expires) is False
    assert await repo.claim(created.id, None, "worker-a", NOW, expires) is False


@pytest.mark.asyncio
async def test_expired_claim_can_be_taken_over(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(test_user_id, _make_create(), date(2024, 1, 10))

    assert await repo.claim(created.id, date(2024, 1, 10), "worker-a", NOW, NOW + timedelta(minutes=5))

    later = NOW + timedelta(minutes=10)
    assert await repo.claim(created.id, date(2024, 1, 10), "worker-b", later, later + timedelta(minutes=5))

    # The first holder can no longer write
    written = await repo.update_bookkeeping(
        created.id, BookkeepingUpdate(occurrences_generated=1), claim_token="worker-a"
    )
    assert written is False


@pytest.mark.asyncio
async def test_update_bookkeeping_releases_claim(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(test_user_id, _make_create(), date(2024, 1, 10))
    await repo.claim(created.id, date(2024, 1, 10), "worker-a", NOW, NOW + timedelta(minutes=5))

    written = await repo.update_bookkeeping(
        created.id,
        BookkeepingUpdate(
            occurrences_generated=1,
            last_generated_date=date(2024, 1, 10),
            next_generation_date=date(2024, 1, 11),
        ),
        claim_token="worker-a",
    )
    assert written is True

    fetched = await repo.get(created.id)
    assert fetched.occurrences_generated == 1
    assert fetched.last_generated_date == date(2024, 1, 10)
    assert fetched.next_generation_date == date(2024, 1, 11)
    assert fetched.state == DefinitionState.ACTIVE

    # Released: the next occurrence can be claimed right away
    assert await repo.claim(created.id, date(2024, 1, 11), "worker-b", NOW, NOW + timedelta(minutes=5))


@pytest.mark.asyncio
async def test_record_failure_and_clear(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(test_user_id, _make_create(), date(2024, 1, 10))
    await repo.claim(created.id, date(2024, 1, 10), "worker-a", NOW, NOW + timedelta(minutes=5))

    assert await repo.record_failure(created.id, "x" * 5000, claim_token="worker-a") is True

    failed = await repo.get(created.id)
    assert len(failed.last_error) == 2000
    assert failed.last_error_at is not None
    assert [d.id for d in await repo.find_due(NOW)] == [created.id]

    await repo.update_bookkeeping(created.id, BookkeepingUpdate(last_error=None))
    cleared = await repo.get(created.id)
    assert cleared.last_error is None
    assert cleared.last_error_at is None


@pytest.mark.asyncio
async def test_release_claim(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(test_user_id, _make_create(), date(2024, 1, 10))
    await repo.claim(created.id, date(2024, 1, 10), "worker-a", NOW, NOW + timedelta(minutes=5))

    assert await repo.release_claim(created.id, "worker-b") is False
    assert await repo.release_claim(created.id, "worker-a") is True
    assert len(await repo.find_due(NOW)) == 1


@pytest.mark.asyncio
async def test_task_create_is_idempotent(session_factory):
    repo = SqliteTaskRepository(session_factory=session_factory)
    recurrence_id = uuid4()

    created = await repo.create(_make_task(recurrence_id))
    assert created.status == TaskStatus.PENDING
    assert created.priority == TaskPriority.HIGH

    with pytest.raises(DuplicateError):
        await repo.create(_make_task(recurrence_id))

    fetched = await repo.get_by_idempotency_key(created.idempotency_key)
    assert fetched.id == created.id


@pytest.mark.asyncio
async def test_task_list_and_status(session_factory):
    repo = SqliteTaskRepository(session_factory=session_factory)
    recurrence_id = uuid4()
    second = await repo.create(_make_task(recurrence_id, date(2024, 1, 5)))
    first = await repo.create(_make_task(recurrence_id, date(2024, 1, 3)))
    await repo.create(_make_task(uuid4(), date(2024, 1, 4)))

    tasks = await repo.list_by_recurrence(recurrence_id)
    assert [t.id for t in tasks] == [first.id, second.id]

    completed = await repo.update_status(first.id, TaskStatus.COMPLETED)
    assert completed.status == TaskStatus.COMPLETED
    assert completed.completed_at is not None

    reopened = await repo.update_status(first.id, TaskStatus.IN_PROGRESS)
    assert reopened.completed_at is None

    with pytest.raises(NotFoundError):
        await repo.update_status(uuid4(), TaskStatus.COMPLETED)


@pytest.mark.asyncio
async def test_update_bookkeeping_can_clear_claim(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    created = await repo.create(test_user_id, _make_create(), date(2024, 1, 10))
    await repo.claim(created.id, date(2024, 1, 10), "worker-a", NOW, NOW + timedelta(minutes=5))

    written = await repo.update_bookkeeping(
        created.id, BookkeepingUpdate(next_generation_date=date(2024, 1, 12)), clear_claim=True
    )
    assert written is True

    # The holder lost its claim; anyone can claim the new date
    assert await repo.release_claim(created.id, "worker-a") is False
    assert await repo.claim(created.id, date(2024, 1, 12), "worker-b", NOW, NOW + timedelta(minutes=5))


@pytest.mark.asyncio
async def test_list_filters_by_frequency_and_search(session_factory, test_user_id):
    repo = SqliteRecurrenceRepository(session_factory=session_factory)
    await repo.create(test_user_id, _make_create(title="Daily Standup Note"))
    monthly = await repo.create(
        test_user_id,
        _make_create(title="Monthly invoice run", frequency=RecurrenceFrequency.MONTHLY),
    )

    assert [d.id for d in await repo.list(frequency=RecurrenceFrequency.MONTHLY)] == [monthly.id]
    assert [d.id for d in await repo.list(search="INVOICE")] == [monthly.id]
    assert await repo.list(search="weekly") == []
