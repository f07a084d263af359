from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..value_objects.enums import FineKind, FineStatus
from ..value_objects.ids import FineId, LoanId, StaffId
from ..value_objects.money import Currency, Money


class Fine(BaseModel):
    fine_id: FineId | None = Field(default=None, description="Fine identifier")
    loan_id: LoanId
    amount: Decimal = Field(..., ge=0)
    currency: Currency = "USD"
    kind: FineKind
    reason: str
    issue_date: date
    payment_date: date | None = None
    status: FineStatus = FineStatus.PENDING
    waived_by: StaffId | None = None

    model_config = ConfigDict(frozen=True)

    @field_validator("amount", mode="before")
    @classmethod
    def _ensure_decimal(cls, v: Decimal | int | float | str) -> Decimal:
        if not isinstance(v, Decimal):
            v = Decimal(str(v))
        return v.quantize(Decimal("0.01"))

    @model_validator(mode="after")
    def _check_settlement(self) -> "Fine":
        if self.status == FineStatus.PAID and self.payment_date is None:
            raise ValueError("Paid fine must have payment_date set")
        if self.status == FineStatus.WAIVED and self.waived_by is None:
            raise ValueError("Waived fine must record the waiving staff member")
        return self

    @property
    def is_open(self) -> bool:
        return self.status == FineStatus.PENDING

    def as_money(self) -> Money:
        return Money(amount=self.amount, currency=self.currency)
