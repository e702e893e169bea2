"""
SQLite implementation of recurrence definition repository.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional
from uuid import UUID, uuid4

from sqlalchemy import and_, delete, func, or_, select, update

from cadence.core.exceptions import NotFoundError
from cadence.infrastructure.local.database import (
    RecurrenceDefinitionORM,
    get_session_factory,
    storage_session,
    utcnow_naive,
)
from cadence.interfaces.recurrence_repository import IRecurrenceRepository
from cadence.models.enums import DefinitionState, RecurrenceFrequency
from cadence.models.recurrence import (
    NON_NULLABLE_FIELDS,
    BookkeepingUpdate,
    RecurrenceDefinition,
    RecurrenceDefinitionCreate,
    RecurrenceDefinitionUpdate,
    TaskTemplate,
)
from cadence.utils.datetime_utils import to_storage_utc


class SqliteRecurrenceRepository(IRecurrenceRepository):
    """SQLite implementation of recurrence definition repository."""

    def __init__(self, session_factory=None):
        """
        Initialize repository.

        Args:
            session_factory: Optional session factory (for testing)
        """
        self._session_factory = session_factory or get_session_factory()

    def _orm_to_model(self, orm: RecurrenceDefinitionORM) -> RecurrenceDefinition:
        """Convert ORM object to Pydantic model."""
        return RecurrenceDefinition(
            id=UUID(orm.id),
            owner_id=orm.owner_id,
            team_id=orm.team_id,
            title=orm.title,
            description=orm.description,
            frequency=RecurrenceFrequency(orm.frequency),
            interval=orm.interval,
            days_of_week=orm.days_of_week,
            day_of_month=orm.day_of_month,
            start_date=orm.start_date,
            end_date=orm.end_date,
            max_occurrences=orm.max_occurrences,
            skip_weekends=bool(orm.skip_weekends),
            skip_holidays=bool(orm.skip_holidays),
            skip_dates=[date.fromisoformat(d) for d in (orm.skip_dates or [])],
            task_template=TaskTemplate.model_validate(orm.task_template),
            occurrences_generated=orm.occurrences_generated or 0,
            last_generated_date=orm.last_generated_date,
            next_generation_date=orm.next_generation_date,
            state=DefinitionState(orm.state),
            last_error=orm.last_error,
            last_error_at=orm.last_error_at,
            created_at=orm.created_at,
            updated_at=orm.updated_at,
        )

    @staticmethod
    def _serialize(field: str, value):
        """Convert a model value to its column representation."""
        if value is None:
            return None
        if field == "frequency":
            return value.value
        if field == "skip_dates":
            return sorted({d.isoformat() for d in value})
        if field == "days_of_week":
            return sorted(set(value))
        if field == "task_template":
            return value.model_dump(mode="json") if isinstance(value, TaskTemplate) else value
        return value

    async def create(
        self,
        owner_id: str,
        data: RecurrenceDefinitionCreate,
        next_generation_date: Optional[date] = None,
    ) -> RecurrenceDefinition:
        """Create a new recurrence definition."""
        async with storage_session(self._session_factory) as session:
            orm = RecurrenceDefinitionORM(
                id=str(uuid4()),
                owner_id=owner_id,
                team_id=data.team_id,
                title=data.title,
                description=data.description,
                frequency=data.frequency.value,
                interval=data.interval,
                days_of_week=self._serialize("days_of_week", data.days_of_week),
                day_of_month=data.day_of_month,
                start_date=data.start_date,
                end_date=data.end_date,
                max_occurrences=data.max_occurrences,
                skip_weekends=data.skip_weekends,
                skip_holidays=data.skip_holidays,
                skip_dates=self._serialize("skip_dates", data.skip_dates),
                task_template=self._serialize("task_template", data.task_template),
                occurrences_generated=0,
                last_generated_date=None,
                next_generation_date=next_generation_date,
                state=(DefinitionState.PAUSED if data.paused else DefinitionState.ACTIVE).value,
            )
            session.add(orm)
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def get(self, definition_id: UUID) -> Optional[RecurrenceDefinition]:
        """Get a recurrence definition by ID."""
        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                select(RecurrenceDefinitionORM).where(
                    RecurrenceDefinitionORM.id == str(definition_id)
                )
            )
            orm = result.scalar_one_or_none()
            return self._orm_to_model(orm) if orm else None

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
        """List recurrence definitions."""
        async with storage_session(self._session_factory) as session:
            conditions = []
            if owner_id is not None:
                conditions.append(RecurrenceDefinitionORM.owner_id == owner_id)
            if team_id is not None:
                conditions.append(RecurrenceDefinitionORM.team_id == team_id)
            if states is not None:
                conditions.append(
                    RecurrenceDefinitionORM.state.in_([s.value for s in states])
                )
            if frequency is not None:
                conditions.append(RecurrenceDefinitionORM.frequency == frequency.value)
            if search:
                conditions.append(
                    func.lower(RecurrenceDefinitionORM.title).contains(search.lower(), autoescape=True)
                )

            query = select(RecurrenceDefinitionORM)
            if conditions:
                query = query.where(and_(*conditions))
            query = (
                query.order_by(RecurrenceDefinitionORM.created_at.desc())
                .limit(limit)
                .offset(offset)
            )
            result = await session.execute(query)
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def update(
        self, definition_id: UUID, update_data: RecurrenceDefinitionUpdate
    ) -> RecurrenceDefinition:
        """Apply an owner edit to a recurrence definition."""
        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                select(RecurrenceDefinitionORM).where(
                    RecurrenceDefinitionORM.id == str(definition_id)
                )
            )
            orm = result.scalar_one_or_none()
            if not orm:
                raise NotFoundError(f"Recurrence {definition_id} not found")

            for field, value in update_data.model_dump(exclude_unset=True).items():
                if value is None and field in NON_NULLABLE_FIELDS:
                    continue
                if field == "task_template":
                    value = update_data.task_template
                setattr(orm, field, self._serialize(field, value))

            orm.updated_at = utcnow_naive()
            await session.commit()
            await session.refresh(orm)
            return self._orm_to_model(orm)

    async def delete(self, definition_id: UUID) -> bool:
        """Delete a recurrence definition."""
        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                delete(RecurrenceDefinitionORM).where(
                    RecurrenceDefinitionORM.id == str(definition_id)
                )
            )
            await session.commit()
            return result.rowcount > 0

    async def find_due(self, now: datetime, limit: int = 100) -> list[RecurrenceDefinition]:
        """Find ACTIVE, unclaimed definitions due on or before now's date."""
        stored_now = to_storage_utc(now)
        async with storage_session(self._session_factory) as session:
            query = (
                select(RecurrenceDefinitionORM)
                .where(
                    and_(
                        RecurrenceDefinitionORM.state == DefinitionState.ACTIVE.value,
                        or_(
                            RecurrenceDefinitionORM.next_generation_date.is_(None),
                            RecurrenceDefinitionORM.next_generation_date <= stored_now.date(),
                        ),
                        or_(
                            RecurrenceDefinitionORM.claim_token.is_(None),
                            RecurrenceDefinitionORM.claim_expires_at < stored_now,
                        ),
                    )
                )
                .order_by(
                    RecurrenceDefinitionORM.next_generation_date.asc(),
                    RecurrenceDefinitionORM.created_at.asc(),
                )
                .limit(limit)
            )
            result = await session.execute(query)
            return [self._orm_to_model(orm) for orm in result.scalars().all()]

    async def claim(
        self,
        definition_id: UUID,
        expected_next_generation_date: Optional[date],
        claim_token: str,
        now: datetime,
        expires_at: datetime,
    ) -> bool:
        """Claim a definition with a conditional update."""
        if expected_next_generation_date is None:
            next_matches = RecurrenceDefinitionORM.next_generation_date.is_(None)
        else:
            next_matches = (
                RecurrenceDefinitionORM.next_generation_date == expected_next_generation_date
            )

        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                update(RecurrenceDefinitionORM)
                .where(
                    and_(
                        RecurrenceDefinitionORM.id == str(definition_id),
                        RecurrenceDefinitionORM.state == DefinitionState.ACTIVE.value,
                        next_matches,
                        or_(
                            RecurrenceDefinitionORM.claim_token.is_(None),
                            RecurrenceDefinitionORM.claim_expires_at < to_storage_utc(now),
                        ),
                    )
                )
                .values(claim_token=claim_token, claim_expires_at=to_storage_utc(expires_at))
            )
            await session.commit()
            return result.rowcount == 1

    async def release_claim(self, definition_id: UUID, claim_token: str) -> bool:
        """Release a claim held with claim_token."""
        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                update(RecurrenceDefinitionORM)
                .where(
                    and_(
                        RecurrenceDefinitionORM.id == str(definition_id),
                        RecurrenceDefinitionORM.claim_token == claim_token,
                    )
                )
                .values(claim_token=None, claim_expires_at=None)
            )
            await session.commit()
            return result.rowcount == 1

    async def update_bookkeeping(
        self,
        definition_id: UUID,
        fields: BookkeepingUpdate,
        claim_token: Optional[str] = None,
        clear_claim: bool = False,
    ) -> bool:
        """Write bookkeeping fields, conditioned on the claim when given."""
        values = fields.model_dump(exclude_unset=True)
        if "state" in values and values["state"] is not None:
            values["state"] = values["state"].value
        if "last_error" in values:
            values["last_error_at"] = utcnow_naive() if values["last_error"] else None
        values["updated_at"] = utcnow_naive()

        conditions = [RecurrenceDefinitionORM.id == str(definition_id)]
        if claim_token is not None:
            conditions.append(RecurrenceDefinitionORM.claim_token == claim_token)
        if claim_token is not None or clear_claim:
            values["claim_token"] = None
            values["claim_expires_at"] = None

        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                update(RecurrenceDefinitionORM).where(and_(*conditions)).values(**values)
            )
            await session.commit()
            return result.rowcount == 1

    async def record_failure(
        self, definition_id: UUID, message: str, claim_token: Optional[str] = None
    ) -> bool:
        """Store the last scanner failure and release the claim."""
        now = utcnow_naive()
        conditions = [RecurrenceDefinitionORM.id == str(definition_id)]
        values = {"last_error": message[:2000], "last_error_at": now, "updated_at": now}
        if claim_token is not None:
            conditions.append(RecurrenceDefinitionORM.claim_token == claim_token)
            values["claim_token"] = None
            values["claim_expires_at"] = None

        async with storage_session(self._session_factory) as session:
            result = await session.execute(
                update(RecurrenceDefinitionORM).where(and_(*conditions)).values(**values)
            )
            await session.commit()
            return result.rowcount == 1
