from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..value_objects.enums import OPEN_LOAN_STATUSES, LoanStatus
from ..value_objects.ids import CopyId, LoanId, MemberId, StaffId


class Loan(BaseModel):
    loan_id: LoanId | None = Field(default=None, description="Loan identifier")
    copy_id: CopyId
    member_id: MemberId
    staff_id: StaffId = Field(..., description="Staff member who issued the loan")
    loan_date: date
    due_date: date
    return_date: date | None = None
    status: LoanStatus = LoanStatus.ACTIVE
    renewal_count: int = Field(default=0, ge=0)
    notes: str | None = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_dates(self) -> "Loan":
        if self.due_date < self.loan_date:
            raise ValueError("due_date must not precede loan_date")
        if self.status == LoanStatus.RETURNED and self.return_date is None:
            raise ValueError("Returned loan must have return_date set")
        return self

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_LOAN_STATUSES

    def is_overdue(self, today: date) -> bool:
        """Overdue is derived: the loan is still out and the due date has passed."""
        return self.is_open and self.due_date < today

    def effective_status(self, today: date) -> LoanStatus:
        if self.is_overdue(today):
            return LoanStatus.OVERDUE
        if self.status == LoanStatus.OVERDUE:
            # Label written by a sweep, then the loan was renewed.
            return LoanStatus.ACTIVE
        return self.status

    def days_late(self, on: date) -> int:
        return max(0, (on - self.due_date).days)
