"""Domain errors raised by the circulation components.

All of them derive from :class:`CirculationError` so callers can tell a
business-rule rejection apart from an infrastructure failure
(:class:`circulation.infrastructure.retry.RepositoryError`).
"""

from __future__ import annotations

from typing import Optional

from .value_objects.enums import CopyStatus


class CirculationError(Exception):
    """Base class for user-facing circulation failures."""


class NotFoundError(CirculationError):
    """Raised when an entity id does not resolve through its repository."""

    def __init__(self, entity: str, entity_id: int) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(CirculationError):
    """A compare-and-set on a copy lost against a concurrent caller.

    Callers may retry or pick another copy.
    """

    def __init__(self, copy_id: int, message: Optional[str] = None) -> None:
        super().__init__(message or f"Copy {copy_id} changed state concurrently")
        self.copy_id = copy_id


class MemberIneligibleError(CirculationError):
    """Member is suspended, expired or over the fine threshold."""


class CopyUnavailableError(CirculationError):
    """The requested copy cannot be loaned right now."""


class DuplicatePendingError(CirculationError):
    """Member already holds a pending reservation for the book."""


class RenewalBlockedError(CirculationError):
    """Renewal refused: reservation waiting, loan past due or limit reached."""


class InvalidStateError(CirculationError):
    """Illegal state transition, e.g. paying a waived fine."""


class LoanCreationError(CirculationError):
    """Loan persistence failed after the copy had already been claimed.

    ``restore_status`` tells the coordinator which copy status the
    compensating action must put back.
    """

    def __init__(self, copy_id: int, restore_status: CopyStatus) -> None:
        super().__init__(f"Could not create loan for copy {copy_id}")
        self.copy_id = copy_id
        self.restore_status = restore_status
