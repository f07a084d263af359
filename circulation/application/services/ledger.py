from __future__ import annotations

import logging
from typing import Collection, Optional

from circulation.domain.entities import BookCopy
from circulation.domain.errors import ConflictError, NotFoundError
from circulation.domain.value_objects.enums import CopyCondition, CopyStatus, ReturnCondition
from circulation.repositories.books import CopiesRepo

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Owner of copy availability state.

    Every status change is a compare-and-set against the repository, so two
    callers racing for the same copy see exactly one winner; the others get
    :class:`ConflictError` straight away instead of waiting.

    State machine::

        Available -> Loaned -> Available | Reserved | Damaged | Lost
        Available -> Reserved -> Loaned | Available
        Available | Damaged | Lost -> Under Repair -> Available
    """

    def __init__(self, copies: CopiesRepo) -> None:
        self._copies = copies

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get_copy(self, copy_id: int) -> BookCopy:
        copy = self._copies.get_by_id(copy_id)
        if copy is None:
            raise NotFoundError("Copy", copy_id)
        return copy

    def copies_of(self, book_id: int) -> list[BookCopy]:
        return self._copies.list_by_book(book_id)

    def available_copies(self, book_id: int) -> list[BookCopy]:
        return [c for c in self._copies.list_by_book(book_id) if c.is_available]

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------
    def add_copy(self, copy: BookCopy) -> BookCopy:
        """Register a new physical copy; it always starts Available."""
        new_id = self._copies.insert(copy.model_copy(update={"status": CopyStatus.AVAILABLE}))
        logger.info("Copy added", extra={"copy_id": new_id, "book_id": copy.book_id})
        return self.get_copy(new_id)

    def update_condition(self, copy_id: int, condition: CopyCondition) -> BookCopy:
        copy = self.get_copy(copy_id)
        self._copies.update_details(copy.model_copy(update={"condition": condition}))
        return self.get_copy(copy_id)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def _transition(
        self,
        copy_id: int,
        expected: Collection[CopyStatus],
        new: CopyStatus,
        *,
        action: str,
        condition: Optional[CopyCondition] = None,
    ) -> BookCopy:
        if not self._copies.compare_and_set_status(copy_id, expected, new, condition=condition):
            current = self.get_copy(copy_id)
            logger.info(
                "Copy transition rejected",
                extra={"copy_id": copy_id, "action": action, "status": current.status.value},
            )
            raise ConflictError(
                copy_id, f"Copy {copy_id} is {current.status.value}; cannot {action}"
            )
        logger.debug(
            "Copy transition", extra={"copy_id": copy_id, "action": action, "status": new.value}
        )
        return self.get_copy(copy_id)

    def try_reserve_for_loan(self, copy_id: int) -> BookCopy:
        """Checkout gate: Available -> Loaned, or :class:`ConflictError`."""
        return self._transition(
            copy_id, {CopyStatus.AVAILABLE}, CopyStatus.LOANED, action="loan"
        )

    def mark_loaned(self, copy_id: int) -> BookCopy:
        """Pickup of a held copy: Reserved -> Loaned."""
        return self._transition(
            copy_id, {CopyStatus.RESERVED}, CopyStatus.LOANED, action="hand out held copy"
        )

    def mark_returned(
        self, copy_id: int, condition: ReturnCondition, *, hold: bool = False
    ) -> BookCopy:
        """Loaned -> status implied by the declared return condition.

        ``hold=True`` keeps a shelf-ready copy as Reserved for the reservation
        queue instead of putting it back to Available.
        """
        if condition == ReturnCondition.LOST:
            return self._transition(
                copy_id, {CopyStatus.LOANED}, CopyStatus.LOST, action="return as lost"
            )
        if condition == ReturnCondition.DAMAGED:
            return self._transition(
                copy_id,
                {CopyStatus.LOANED},
                CopyStatus.DAMAGED,
                action="return as damaged",
                condition=CopyCondition.POOR,
            )
        target = CopyStatus.RESERVED if hold else CopyStatus.AVAILABLE
        return self._transition(
            copy_id,
            {CopyStatus.LOANED},
            target,
            action="return",
            condition=CopyCondition(condition.value),
        )

    def mark_lost(self, copy_id: int) -> BookCopy:
        return self._transition(
            copy_id, {CopyStatus.LOANED, CopyStatus.AVAILABLE}, CopyStatus.LOST, action="mark lost"
        )

    def mark_reserved(self, copy_id: int) -> BookCopy:
        """Hold a shelf copy for a reservation: Available -> Reserved."""
        return self._transition(
            copy_id, {CopyStatus.AVAILABLE}, CopyStatus.RESERVED, action="hold"
        )

    def release(self, copy_id: int) -> BookCopy:
        """Give up a hold: Reserved -> Available."""
        return self._transition(
            copy_id, {CopyStatus.RESERVED}, CopyStatus.AVAILABLE, action="release"
        )

    def revert_checkout(self, copy_id: int, restore: CopyStatus) -> BookCopy:
        """Compensating action for a checkout whose loan could not be created."""
        return self._transition(copy_id, {CopyStatus.LOANED}, restore, action="revert checkout")

    def send_to_repair(self, copy_id: int) -> BookCopy:
        return self._transition(
            copy_id,
            {CopyStatus.AVAILABLE, CopyStatus.DAMAGED, CopyStatus.LOST},
            CopyStatus.UNDER_REPAIR,
            action="send to repair",
        )

    def complete_repair(
        self, copy_id: int, condition: CopyCondition = CopyCondition.GOOD
    ) -> BookCopy:
        return self._transition(
            copy_id,
            {CopyStatus.UNDER_REPAIR},
            CopyStatus.AVAILABLE,
            action="complete repair",
            condition=condition,
        )
