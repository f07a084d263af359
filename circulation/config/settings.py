"""Circulation policy and storage settings.

This module centralises the circulation policy constants (loan period,
pickup window, fine rates, ...) and the SQLite location. Environment
variables are loaded from a ``.env`` file using ``python-dotenv`` and exposed
through a Pydantic settings object.
"""

from __future__ import annotations

import os
from decimal import Decimal, InvalidOperation
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError

from circulation.config.policy import (
    DEFAULT_LOAN_PERIOD_DAYS,
    DEFAULT_MAX_RENEWALS,
    DEFAULT_PICKUP_WINDOW_DAYS,
    DEFAULT_RESERVATION_EXPIRY_DAYS,
    Policy,
)
from circulation.domain.value_objects.money import Money

# Load environment variables from a .env file if present
load_dotenv()

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
DEFAULT_CURRENCY = "USD"
DEFAULT_DB_PATH = Path("data") / "circulation.sqlite3"


class Settings(BaseModel):
    """Immutable settings object used across the application."""

    policy: Policy
    db_path: Path = DEFAULT_DB_PATH

    model_config = ConfigDict(frozen=True)

    @property
    def currency(self) -> str:
        return self.policy.currency


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _env_money(name: str, default: str, currency: str) -> Money:
    raw = os.getenv(name) or default
    try:
        return Money(amount=Decimal(raw.strip()), currency=currency)  # type: ignore[arg-type]
    except (InvalidOperation, ValidationError) as exc:
        raise RuntimeError(f"{name} must be a decimal amount, got {raw!r}") from exc


def _build_settings() -> Settings:
    """Construct the ``Settings`` instance based on environment variables."""

    currency = os.getenv("CIRC_CURRENCY", DEFAULT_CURRENCY).strip().upper()
    try:
        policy = Policy(
            loan_period_days=_env_int("CIRC_LOAN_PERIOD_DAYS", DEFAULT_LOAN_PERIOD_DAYS),
            pickup_window_days=_env_int("CIRC_PICKUP_WINDOW_DAYS", DEFAULT_PICKUP_WINDOW_DAYS),
            reservation_expiry_days=_env_int(
                "CIRC_RESERVATION_EXPIRY_DAYS", DEFAULT_RESERVATION_EXPIRY_DAYS
            ),
            max_renewals=_env_int("CIRC_MAX_RENEWALS", DEFAULT_MAX_RENEWALS),
            daily_rate=_env_money("CIRC_DAILY_RATE", "1.00", currency),
            max_fine=_env_money("CIRC_MAX_FINE", "25.00", currency),
            processing_fee=_env_money("CIRC_PROCESSING_FEE", "5.00", currency),
            block_threshold=_env_money("CIRC_BLOCK_THRESHOLD", "10.00", currency),
        )
    except ValidationError as exc:
        raise RuntimeError(f"Invalid circulation policy: {exc}") from exc

    db_path = Path(os.getenv("CIRC_DB_PATH", str(DEFAULT_DB_PATH)))
    return Settings(policy=policy, db_path=db_path)


# Public settings instance
settings = _build_settings()
