from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from circulation.config.policy import Policy
from circulation.domain.entities import Fine
from circulation.domain.errors import InvalidStateError, NotFoundError
from circulation.domain.value_objects.enums import FineKind, FineStatus
from circulation.domain.value_objects.ids import FineId, LoanId, StaffId
from circulation.domain.value_objects.money import Money
from circulation.infrastructure.clock import Clock, utc_now
from circulation.infrastructure.keyed_lock import KeyedLock
from circulation.repositories.fines import FinesRepo
from circulation.repositories.loans import LoansRepo

logger = logging.getLogger(__name__)


class FineCalculator:
    """Derive fines from overdue returns and losses and track their settlement.

    - Overdue fine: ``days_late * daily_rate`` capped at ``max_fine``.
    - Loss fine: replacement price plus ``processing_fee``.
    - At most one Pending fine per loan; issuing is idempotent per
      (loan, kind) so a retried return never charges twice.
    - ``pay``/``waive`` only leave Pending; repeating the same settlement is a
      no-op, crossing over (paying a waived fine) is :class:`InvalidStateError`.
    """

    def __init__(
        self,
        fines: FinesRepo,
        loans: LoansRepo,
        policy: Optional[Policy] = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._fines = fines
        self._loans = loans
        self._policy = policy or Policy()
        self._clock = clock
        self._loan_locks: KeyedLock[int] = KeyedLock()
        self._fine_locks: KeyedLock[int] = KeyedLock()

    # ------------------------------------------------------------------
    # Amounts
    # ------------------------------------------------------------------
    def overdue_amount(self, days_late: int) -> Money:
        return (self._policy.daily_rate * days_late).capped_at(self._policy.max_fine)

    def loss_amount(self, copy_price: Decimal) -> Money:
        price = Money(amount=copy_price, currency=self._policy.daily_rate.currency)
        return price + self._policy.processing_fee

    # ------------------------------------------------------------------
    # Issuing
    # ------------------------------------------------------------------
    def issue_overdue_fine(self, loan_id: int, days_late: int) -> Fine:
        if days_late <= 0:
            raise ValueError("days_late must be positive to issue an overdue fine")
        reason = f"Book returned {days_late} day{'s' if days_late != 1 else ''} late"
        return self._issue(loan_id, FineKind.OVERDUE, self.overdue_amount(days_late), reason)

    def issue_loss_fine(self, loan_id: int, copy_price: Decimal) -> Fine:
        reason = "Copy lost: replacement price plus processing fee"
        return self._issue(loan_id, FineKind.LOSS, self.loss_amount(copy_price), reason)

    def _issue(self, loan_id: int, kind: FineKind, amount: Money, reason: str) -> Fine:
        with self._loan_locks.hold(loan_id):
            if self._loans.get_by_id(loan_id) is None:
                raise NotFoundError("Loan", loan_id)
            history = self._fines.list_by_loan(loan_id)
            for existing in history:
                if existing.kind == kind:
                    return existing
            if any(f.is_open for f in history):
                raise InvalidStateError(f"Loan {loan_id} already has a pending fine")

            fine = Fine(
                loan_id=LoanId(loan_id),
                amount=amount.amount,
                currency=amount.currency,
                kind=kind,
                reason=reason,
                issue_date=self._clock().date(),
            )
            fine_id = self._fines.insert(fine)
            logger.info(
                "Fine issued",
                extra={
                    "fine_id": fine_id,
                    "loan_id": loan_id,
                    "kind": kind.value,
                    "amount": str(amount.amount),
                },
            )
            return fine.model_copy(update={"fine_id": FineId(fine_id)})

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------
    def get(self, fine_id: int) -> Fine:
        fine = self._fines.get_by_id(fine_id)
        if fine is None:
            raise NotFoundError("Fine", fine_id)
        return fine

    def pay(self, fine_id: int) -> Fine:
        with self._fine_locks.hold(fine_id):
            fine = self.get(fine_id)
            if fine.status == FineStatus.PAID:
                return fine
            if fine.status != FineStatus.PENDING:
                raise InvalidStateError(f"Fine {fine_id} is {fine.status.value}; cannot pay")
            paid = fine.model_copy(
                update={"status": FineStatus.PAID, "payment_date": self._clock().date()}
            )
            self._fines.update(paid)
            logger.info("Fine paid", extra={"fine_id": fine_id, "amount": str(fine.amount)})
            return paid

    def waive(self, fine_id: int, staff_id: int) -> Fine:
        with self._fine_locks.hold(fine_id):
            fine = self.get(fine_id)
            if fine.status == FineStatus.WAIVED:
                return fine
            if fine.status != FineStatus.PENDING:
                raise InvalidStateError(f"Fine {fine_id} is {fine.status.value}; cannot waive")
            waived = fine.model_copy(
                update={"status": FineStatus.WAIVED, "waived_by": StaffId(staff_id)}
            )
            self._fines.update(waived)
            logger.info("Fine waived", extra={"fine_id": fine_id, "staff_id": staff_id})
            return waived

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_for_loan(self, loan_id: int) -> list[Fine]:
        return self._fines.list_by_loan(loan_id)

    def pending_total(self, member_id: int) -> Money:
        total = Money.zero(self._policy.daily_rate.currency)
        for loan in self._loans.list_by_member(member_id):
            for fine in self._fines.list_by_loan(int(loan.loan_id or 0)):
                if fine.is_open:
                    total = total + fine.as_money()
        return total

    def is_blocked(self, member_id: int) -> bool:
        """Whether pending fines push the member over the borrowing threshold."""
        return self.pending_total(member_id) > self._policy.block_threshold
