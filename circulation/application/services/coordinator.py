"""Orchestration of multi-component circulation workflows.

Each workflow is a sequence of steps owned by the individual components.
Nothing here is transactional: when a step fails the error is logged and
re-raised, and only checkout runs a compensating action.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from circulation.domain.entities import BookCopy, Fine, Loan, Reservation
from circulation.domain.errors import InvalidStateError, LoanCreationError
from circulation.domain.value_objects.enums import CopyCondition, CopyStatus, ReturnCondition
from circulation.infrastructure.clock import Clock, utc_now

from .fine_calculator import FineCalculator
from .ledger import InventoryLedger
from .loan_manager import LoanManager
from .reservation_queue import ReservationQueue

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    expired: list[Reservation] = field(default_factory=list)
    overdue: list[Loan] = field(default_factory=list)


class CirculationCoordinator:
    def __init__(
        self,
        ledger: InventoryLedger,
        loans: LoanManager,
        queue: ReservationQueue,
        fines: FineCalculator,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self.ledger = ledger
        self.loans = loans
        self.queue = queue
        self.fines = fines
        self._clock = clock

    # ------------------------------------------------------------------
    # Loans
    # ------------------------------------------------------------------
    def checkout(self, copy_id: int, member_id: int, staff_id: int) -> Loan:
        try:
            loan, pickup = self.loans.checkout_with_pickup(copy_id, member_id, staff_id)
        except LoanCreationError as exc:
            logger.warning(
                "Reverting checkout",
                extra={"copy_id": copy_id, "restore": exc.restore_status.value},
            )
            self.ledger.revert_checkout(copy_id, exc.restore_status)
            cause = exc.__cause__
            if cause is None:
                raise
            raise cause from None

        if pickup is not None:
            try:
                self.queue.complete_pickup(
                    int(pickup.reservation_id or 0), int(loan.loan_id or 0)
                )
            except InvalidStateError:
                # The hold was cancelled after the copy left the shelf.
                logger.warning(
                    "Pickup recorded as plain checkout",
                    extra={"reservation_id": pickup.reservation_id, "loan_id": loan.loan_id},
                )
        return loan

    def return_loan(self, loan_id: int, condition: ReturnCondition) -> Loan:
        loan = self.loans.get(loan_id)
        copy = self.ledger.get_copy(loan.copy_id)
        book_id = copy.book_id
        # Decided from the copy so a retried return still holds it for the queue.
        hold = (
            condition.returns_to_shelf
            and copy.status == CopyStatus.LOANED
            and self.queue.has_pending(book_id)
        )

        try:
            returned = self.loans.return_loan(loan_id, condition, hold=hold)
        except Exception:
            logger.exception(
                "Return failed", extra={"loan_id": loan_id, "condition": condition.value}
            )
            raise

        copy = self.ledger.get_copy(loan.copy_id)
        unclaimed_hold = (
            copy.status == CopyStatus.RESERVED
            and self.queue.held_reservation_for_copy(loan.copy_id) is None
        )
        shelved_with_waiters = copy.status == CopyStatus.AVAILABLE and self.queue.has_pending(
            book_id
        )
        if unclaimed_hold or shelved_with_waiters:
            try:
                self.queue.on_copy_available(book_id, loan.copy_id)
            except Exception:
                logger.exception(
                    "Reservation hand-off failed after return",
                    extra={"loan_id": loan_id, "copy_id": loan.copy_id},
                )
                raise
        return returned

    def renew(self, loan_id: int) -> Loan:
        return self.loans.renew(loan_id)

    def report_lost(self, loan_id: int) -> Loan:
        return self.loans.mark_lost(loan_id)

    # ------------------------------------------------------------------
    # Reservations
    # ------------------------------------------------------------------
    def reserve(self, book_id: int, member_id: int) -> Reservation:
        self.loans.ensure_eligible(member_id)
        reservation = self.queue.enqueue(book_id, member_id)
        # A copy may already be on the shelf.
        self.queue.on_copy_available(book_id)
        return self.queue.get(int(reservation.reservation_id or 0))

    def cancel_reservation(self, reservation_id: int) -> Reservation:
        before = self.queue.get(reservation_id)
        cancelled = self.queue.cancel(reservation_id)
        if before.awaiting_pickup and cancelled.held_copy_id is not None:
            self.queue.on_copy_available(cancelled.book_id, cancelled.held_copy_id)
        return cancelled

    # ------------------------------------------------------------------
    # Fines
    # ------------------------------------------------------------------
    def pay_fine(self, fine_id: int) -> Fine:
        return self.fines.pay(fine_id)

    def waive_fine(self, fine_id: int, staff_id: int) -> Fine:
        return self.fines.waive(fine_id, staff_id)

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------
    def add_copy(self, copy: BookCopy) -> BookCopy:
        added = self.ledger.add_copy(copy)
        self.queue.on_copy_available(added.book_id, int(added.copy_id or 0))
        return self.ledger.get_copy(int(added.copy_id or 0))

    def send_to_repair(self, copy_id: int) -> BookCopy:
        return self.ledger.send_to_repair(copy_id)

    def complete_repair(
        self, copy_id: int, condition: CopyCondition = CopyCondition.GOOD
    ) -> BookCopy:
        repaired = self.ledger.complete_repair(copy_id, condition)
        self.queue.on_copy_available(repaired.book_id, copy_id)
        return self.ledger.get_copy(copy_id)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------
    def run_sweep(self, now: Optional[datetime] = None) -> SweepResult:
        now = now or self._clock()
        result = SweepResult(
            expired=self.queue.expire_stale(now),
            overdue=self.loans.sweep_overdue(now.date()),
        )
        logger.info(
            "Sweep finished",
            extra={"expired": len(result.expired), "overdue": len(result.overdue)},
        )
        return result
