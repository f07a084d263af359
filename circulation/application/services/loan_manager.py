from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Optional

from circulation.config.policy import Policy
from circulation.domain.entities import Loan, Reservation
from circulation.domain.errors import (
    ConflictError,
    CopyUnavailableError,
    InvalidStateError,
    LoanCreationError,
    MemberIneligibleError,
    NotFoundError,
    RenewalBlockedError,
)
from circulation.domain.value_objects.enums import CopyStatus, LoanStatus, ReturnCondition
from circulation.domain.value_objects.ids import CopyId, LoanId, MemberId, StaffId
from circulation.infrastructure.clock import Clock, utc_now
from circulation.infrastructure.keyed_lock import KeyedLock
from circulation.repositories.loans import LoansRepo
from circulation.repositories.members import MembersRepo
from circulation.repositories.reservations import ReservationsRepo

from .fine_calculator import FineCalculator
from .ledger import InventoryLedger

logger = logging.getLogger(__name__)


class LoanManager:
    """Loan lifecycle: checkout, return, renewal and loss.

    The manager never restores a copy itself. When persisting a loan fails
    after the ledger already handed the copy out, :class:`LoanCreationError`
    tells the caller which status to put back.
    """

    def __init__(
        self,
        loans: LoansRepo,
        members: MembersRepo,
        ledger: InventoryLedger,
        fines: FineCalculator,
        reservations: ReservationsRepo,
        policy: Optional[Policy] = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._loans = loans
        self._members = members
        self._ledger = ledger
        self._fines = fines
        self._reservations = reservations
        self._policy = policy or Policy()
        self._clock = clock
        self._loan_locks: KeyedLock[int] = KeyedLock()

    def _today(self) -> date:
        return self._clock().date()

    def get(self, loan_id: int) -> Loan:
        loan = self._loans.get_by_id(loan_id)
        if loan is None:
            raise NotFoundError("Loan", loan_id)
        return loan

    @staticmethod
    def days_late(loan: Loan, today: date) -> int:
        """Days past due; returned loans count up to their return date."""
        return loan.days_late(loan.return_date or today)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------
    def ensure_eligible(self, member_id: int) -> None:
        member = self._members.get_by_id(member_id)
        if member is None:
            raise NotFoundError("Member", member_id)
        today = self._today()
        if not member.membership_valid_on(today):
            raise MemberIneligibleError(
                f"Member {member_id} is {member.status.value} or past membership expiry"
            )
        if self._fines.is_blocked(member_id):
            raise MemberIneligibleError(
                f"Member {member_id} owes {self._fines.pending_total(member_id)} in fines"
            )

    def checkout(self, copy_id: int, member_id: int, staff_id: int) -> Loan:
        loan, _pickup = self.checkout_with_pickup(copy_id, member_id, staff_id)
        return loan

    def checkout_with_pickup(
        self, copy_id: int, member_id: int, staff_id: int
    ) -> tuple[Loan, Optional[Reservation]]:
        """Check a copy out and report the held reservation it was picked up for.

        The reservation is only returned when the ledger moved the copy out of
        Reserved for this member. A hold that lapsed before the ledger gate
        makes this a plain checkout and ``None`` is returned.
        """
        self.ensure_eligible(member_id)

        copy = self._ledger.get_copy(copy_id)
        pickup: Optional[Reservation] = None
        try:
            if copy.status == CopyStatus.RESERVED:
                pickup = self._reservations.find_holding_copy(copy_id)
                if pickup is None or pickup.member_id != member_id:
                    raise CopyUnavailableError(f"Copy {copy_id} is held for another member")
                self._ledger.mark_loaned(copy_id)
                restore = CopyStatus.RESERVED
            else:
                self._ledger.try_reserve_for_loan(copy_id)
                restore = CopyStatus.AVAILABLE
        except ConflictError as exc:
            raise CopyUnavailableError(str(exc)) from exc

        try:
            return self._open_loan(copy_id, member_id, staff_id), pickup
        except Exception as exc:
            logger.error(
                "Loan creation failed after copy was claimed",
                extra={"copy_id": copy_id, "member_id": member_id, "error": str(exc)},
            )
            raise LoanCreationError(copy_id, restore) from exc

    def _open_loan(self, copy_id: int, member_id: int, staff_id: int) -> Loan:
        today = self._today()
        loan = Loan(
            copy_id=CopyId(copy_id),
            member_id=MemberId(member_id),
            staff_id=StaffId(staff_id),
            loan_date=today,
            due_date=today + timedelta(days=self._policy.loan_period_days),
        )
        loan = loan.model_copy(update={"loan_id": LoanId(self._loans.insert(loan))})
        try:
            self._members.increment_borrowed(member_id)
        except Exception:
            # Close the orphan so the copy never shows two open loans.
            self._loans.update(
                loan.model_copy(
                    update={
                        "status": LoanStatus.RETURNED,
                        "return_date": today,
                        "notes": "aborted: member counter update failed",
                    }
                )
            )
            raise
        logger.info(
            "Loan opened",
            extra={
                "loan_id": loan.loan_id,
                "copy_id": copy_id,
                "member_id": member_id,
                "due_date": loan.due_date.isoformat(),
            },
        )
        return loan

    # ------------------------------------------------------------------
    # Return
    # ------------------------------------------------------------------
    def return_loan(
        self, loan_id: int, condition: ReturnCondition, *, hold: bool = False
    ) -> Loan:
        """Close a loan; a repeated call returns the closed loan unchanged.

        Each step checks whether it already happened, so a retry after a
        partial failure finishes the remaining work without repeating any.
        """
        with self._loan_locks.hold(loan_id):
            loan = self.get(loan_id)
            if loan.status == LoanStatus.LOST:
                raise InvalidStateError(f"Loan {loan_id} was reported lost")
            if loan.status != LoanStatus.RETURNED:
                loan = loan.model_copy(
                    update={"status": LoanStatus.RETURNED, "return_date": self._today()}
                )
                self._loans.update(loan)
                logger.info(
                    "Loan closed",
                    extra={"loan_id": loan_id, "condition": condition.value},
                )

            copy = self._ledger.get_copy(loan.copy_id)
            if copy.status == CopyStatus.LOANED and self._loans.find_open_by_copy(loan.copy_id) is None:
                self._ledger.mark_returned(loan.copy_id, condition, hold=hold)

            late = self.days_late(loan, self._today())
            if late > 0:
                self._fines.issue_overdue_fine(loan_id, late)
            return loan

    # ------------------------------------------------------------------
    # Renewal
    # ------------------------------------------------------------------
    def renew(self, loan_id: int) -> Loan:
        with self._loan_locks.hold(loan_id):
            loan = self.get(loan_id)
            today = self._today()
            if not loan.is_open:
                raise InvalidStateError(f"Loan {loan_id} is {loan.status.value}; cannot renew")
            if loan.is_overdue(today):
                raise RenewalBlockedError(f"Loan {loan_id} is past due")
            if loan.renewal_count >= self._policy.max_renewals:
                raise RenewalBlockedError(
                    f"Loan {loan_id} reached the renewal limit of {self._policy.max_renewals}"
                )
            book_id = self._ledger.get_copy(loan.copy_id).book_id
            waiting = [
                r for r in self._reservations.list_pending_for_book(book_id) if not r.is_stale(today)
            ]
            if waiting:
                raise RenewalBlockedError(f"Book {book_id} has members waiting")

            renewed = loan.model_copy(
                update={
                    "due_date": loan.due_date + timedelta(days=self._policy.loan_period_days),
                    "renewal_count": loan.renewal_count + 1,
                    "status": LoanStatus.ACTIVE,
                }
            )
            self._loans.update(renewed)
        logger.info(
            "Loan renewed",
            extra={"loan_id": loan_id, "due_date": renewed.due_date.isoformat()},
        )
        return renewed

    # ------------------------------------------------------------------
    # Loss
    # ------------------------------------------------------------------
    def mark_lost(self, loan_id: int) -> Loan:
        with self._loan_locks.hold(loan_id):
            loan = self.get(loan_id)
            if loan.status == LoanStatus.RETURNED:
                raise InvalidStateError(f"Loan {loan_id} was already returned")
            if loan.status != LoanStatus.LOST:
                loan = loan.model_copy(update={"status": LoanStatus.LOST})
                self._loans.update(loan)
                logger.info("Loan reported lost", extra={"loan_id": loan_id})

            copy = self._ledger.get_copy(loan.copy_id)
            if copy.status == CopyStatus.LOANED and self._loans.find_open_by_copy(loan.copy_id) is None:
                copy = self._ledger.mark_lost(loan.copy_id)
            self._fines.issue_loss_fine(loan_id, copy.price)
            return loan

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------
    def sweep_overdue(self, today: Optional[date] = None) -> list[Loan]:
        """Write the Overdue label onto open loans past due.

        The label is informational; :meth:`Loan.effective_status` stays the
        source of truth.
        """
        today = today or self._today()
        flagged: list[Loan] = []
        for loan in self._loans.list_open():
            if loan.status != LoanStatus.ACTIVE or not loan.is_overdue(today):
                continue
            with self._loan_locks.hold(int(loan.loan_id or 0)):
                current = self.get(int(loan.loan_id or 0))
                if current.status != LoanStatus.ACTIVE or not current.is_overdue(today):
                    continue
                labelled = current.model_copy(update={"status": LoanStatus.OVERDUE})
                self._loans.update(labelled)
                flagged.append(labelled)
        if flagged:
            logger.info("Overdue sweep", extra={"flagged": len(flagged), "day": today.isoformat()})
        return flagged
