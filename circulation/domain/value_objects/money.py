from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Currency = Literal["USD", "EUR", "GBP", "HUF"]


class Money(BaseModel):
    amount: Decimal = Field(..., description="Monetary amount")
    currency: Currency = Field("USD", description="Currency code")

    model_config = ConfigDict(frozen=True)

    @field_validator("amount", mode="before")
    @classmethod
    def _ensure_decimal(cls, v: Decimal | int | float | str) -> Decimal:
        if not isinstance(v, Decimal):
            v = Decimal(str(v))
        return v.quantize(Decimal("0.01"), rounding=ROUND_HALF_EVEN)

    @classmethod
    def zero(cls, currency: Currency = "USD") -> "Money":
        return cls(amount=Decimal("0"), currency=currency)

    def _ensure_same_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise ValueError("Currency mismatch")

    def __add__(self, other: "Money") -> "Money":
        self._ensure_same_currency(other)
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: "Money") -> "Money":
        self._ensure_same_currency(other)
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __mul__(self, factor: Decimal | int | float) -> "Money":
        amount = self.amount * (factor if isinstance(factor, Decimal) else Decimal(str(factor)))
        return Money(amount=amount, currency=self.currency)

    def __lt__(self, other: "Money") -> bool:
        self._ensure_same_currency(other)
        return self.amount < other.amount

    def __gt__(self, other: "Money") -> bool:
        self._ensure_same_currency(other)
        return self.amount > other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def capped_at(self, ceiling: "Money") -> "Money":
        """Return ``self`` or ``ceiling``, whichever is smaller."""
        return ceiling if self > ceiling else self
