"""Circulation rules shared by every component."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from circulation.domain.value_objects.money import Money

DEFAULT_LOAN_PERIOD_DAYS = 14
DEFAULT_PICKUP_WINDOW_DAYS = 3
DEFAULT_RESERVATION_EXPIRY_DAYS = 7
DEFAULT_MAX_RENEWALS = 2


class Policy(BaseModel):
    """Loan period, hold windows, renewal limit and fine amounts."""

    loan_period_days: int = Field(DEFAULT_LOAN_PERIOD_DAYS, gt=0)
    pickup_window_days: int = Field(DEFAULT_PICKUP_WINDOW_DAYS, gt=0)
    reservation_expiry_days: int = Field(DEFAULT_RESERVATION_EXPIRY_DAYS, gt=0)
    max_renewals: int = Field(DEFAULT_MAX_RENEWALS, ge=0)
    daily_rate: Money = Money(amount=Decimal("1.00"))
    max_fine: Money = Money(amount=Decimal("25.00"))
    processing_fee: Money = Money(amount=Decimal("5.00"))
    block_threshold: Money = Money(amount=Decimal("10.00"))

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _single_currency(self) -> "Policy":
        currencies = {
            self.daily_rate.currency,
            self.max_fine.currency,
            self.processing_fee.currency,
            self.block_threshold.currency,
        }
        if len(currencies) != 1:
            raise ValueError("All policy amounts must share one currency")
        return self

    @property
    def currency(self) -> str:
        return self.daily_rate.currency
