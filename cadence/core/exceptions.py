"""
Custom exceptions for the application.
"""

from typing import Any, Optional

from cadence.models.enums import DefinitionState


class CadenceError(Exception):
    """Base exception for cadence."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(CadenceError):
    """Resource not found."""

    pass


class DuplicateError(CadenceError):
    """Duplicate resource detected."""

    pass


class ValidationError(CadenceError):
    """Recurrence rule or edit rejected before persisting."""

    pass


class BusinessLogicError(CadenceError):
    """Business logic constraint violation."""

    pass


class InvalidStateTransition(BusinessLogicError):
    """Lifecycle transition not allowed from the current state."""

    def __init__(self, current: Any, target: Any):
        super().__init__(
            f"Cannot transition recurrence from {current} to {target}",
            details={"current": str(current), "target": str(target)},
        )
        self.current = current
        self.target = target


class SkipLimitExceeded(CadenceError):
    """Skip resolution did not find a usable date within its bound."""

    def __init__(self, candidate: Any, limit: int):
        super().__init__(
            f"No non-skipped date found within {limit} days after {candidate}",
            details={"candidate": str(candidate), "limit": limit},
        )
        self.candidate = candidate
        self.limit = limit


class GenerationHalted(CadenceError):
    """
    A lifecycle guard stopped a generation attempt.

    Not a failure: target_state is the lifecycle state the definition moves to,
    or None when the definition keeps its state.
    """

    target_state: Optional[DefinitionState] = None


class DefinitionPaused(GenerationHalted):
    """Definition is paused."""

    pass


class MaxOccurrencesReached(GenerationHalted):
    """Occurrence limit reached."""

    target_state = DefinitionState.EXHAUSTED


class PastEndDate(GenerationHalted):
    """Resolved occurrence falls after the end date."""

    target_state = DefinitionState.EXPIRED


class InfrastructureError(CadenceError):
    """Infrastructure-related error (DB, external services, etc.)."""

    pass


class StorageError(InfrastructureError):
    """Persistence collaborator failed."""

    pass
