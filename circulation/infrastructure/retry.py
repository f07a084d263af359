from __future__ import annotations

import logging
import random
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RepositoryError(RuntimeError):
    """Raised when the storage backend keeps failing after bounded retries."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


def backoff_seconds(attempt: int, backoff_factor: float) -> float:
    """Exponential backoff: ``backoff_factor * 2**attempt`` plus a small jitter."""
    base = float(backoff_factor) * float(2**attempt)
    jitter = float(random.uniform(0.0, 0.1)) if backoff_factor > 0 else 0.0
    return base + jitter


def call_with_retries(
    fn: Callable[[], T],
    *,
    retry_on: Tuple[Type[BaseException], ...],
    max_retries: int = 3,
    backoff_factor: float = 0.05,
    description: str = "storage call",
    is_transient: Optional[Callable[[BaseException], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``fn`` retrying transient failures, then raise :class:`RepositoryError`.

    Only exceptions listed in ``retry_on`` are retried; anything else
    propagates untouched on the first occurrence. When ``is_transient`` is
    given, a matching exception it rejects is converted to
    :class:`RepositoryError` straight away.
    """
    attempt = 0
    last_error: BaseException | None = None
    while attempt <= max_retries:
        try:
            return fn()
        except retry_on as exc:
            if is_transient is not None and not is_transient(exc):
                raise RepositoryError(f"{description} failed: {exc}", attempts=attempt + 1) from exc
            last_error = exc
            delay = backoff_seconds(attempt, backoff_factor)
            logger.warning(
                "%s failed with %s. Retrying in %.2fs (attempt %d/%d)",
                description,
                type(exc).__name__,
                delay,
                attempt + 1,
                max_retries,
            )
            attempt += 1
            if attempt > max_retries:
                break
            sleep(delay)
    raise RepositoryError(f"{description} failed after retries: {last_error}", attempts=attempt)
