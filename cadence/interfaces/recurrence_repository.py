"""
Recurrence definition repository interface.

Defines contract for recurrence definition persistence, including the
claim/bookkeeping operations used by concurrent scanner workers.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Iterable, Optional
from uuid import UUID

from cadence.models.enums import DefinitionState, RecurrenceFrequency
from cadence.models.recurrence import (
    BookkeepingUpdate,
    RecurrenceDefinition,
    RecurrenceDefinitionCreate,
    RecurrenceDefinitionUpdate,
)


class IRecurrenceRepository(ABC):
    """Abstract interface for recurrence definition persistence."""

    @abstractmethod
    async def create(
        self,
        owner_id: str,
        data: RecurrenceDefinitionCreate,
        next_generation_date: Optional[date] = None,
    ) -> RecurrenceDefinition:
        """Create a new definition. data.start_date must already be set."""
        pass

    @abstractmethod
    async def get(self, definition_id: UUID) -> Optional[RecurrenceDefinition]:
        """Get a definition by ID."""
        pass

    @abstractmethod
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
        """
        List definitions, newest first.

        Filters are optional and combined: owner, team, states, frequency and
        a case-insensitive title search.
        """
        pass

    @abstractmethod
    async def update(
        self, definition_id: UUID, update: RecurrenceDefinitionUpdate
    ) -> RecurrenceDefinition:
        """Apply an owner edit. Raises NotFoundError."""
        pass

    @abstractmethod
    async def delete(self, definition_id: UUID) -> bool:
        """Delete a definition. Generated tasks are left untouched."""
        pass

    @abstractmethod
    async def find_due(self, now: datetime, limit: int = 100) -> list[RecurrenceDefinition]:
        """
        Find ACTIVE definitions due for generation.

        Due means next_generation_date is on or before now's date, or unset,
        and no other worker holds an unexpired claim.
        """
        pass

    @abstractmethod
    async def claim(
        self,
        definition_id: UUID,
        expected_next_generation_date: Optional[date],
        claim_token: str,
        now: datetime,
        expires_at: datetime,
    ) -> bool:
        """
        Atomically claim a definition for one generation cycle.

        Succeeds only if the definition is ACTIVE, its next_generation_date
        still equals the expected value and no unexpired claim exists.

        Returns:
            True if this caller now owns the claim
        """
        pass

    @abstractmethod
    async def release_claim(self, definition_id: UUID, claim_token: str) -> bool:
        """Release a claim held with claim_token."""
        pass

    @abstractmethod
    async def update_bookkeeping(
        self,
        definition_id: UUID,
        fields: BookkeepingUpdate,
        claim_token: Optional[str] = None,
        clear_claim: bool = False,
    ) -> bool:
        """
        Atomically write bookkeeping fields.

        With claim_token the write only happens while that claim is held, and
        releases it. clear_claim drops any claim unconditionally, so a worker
        still holding one loses its conditioned write. Returns False when
        nothing was written.
        """
        pass

    @abstractmethod
    async def record_failure(
        self, definition_id: UUID, message: str, claim_token: Optional[str] = None
    ) -> bool:
        """Store the last scanner failure and release the claim."""
        pass
