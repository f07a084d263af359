from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def fixed_clock(moment: datetime) -> Clock:
    """Clock frozen at ``moment`` (must be timezone-aware)."""
    if moment.tzinfo is None:
        raise ValueError("fixed_clock requires a timezone-aware datetime")
    return lambda: moment
