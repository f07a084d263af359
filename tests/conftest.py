from __future__ import annotations

import logging
from collections.abc import Generator
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest

from circulation.application.container import Container, build_in_memory
from circulation.domain.entities import Book, BookCopy, Member
from circulation.domain.value_objects.enums import MemberStatus
from circulation.logging_config import LOG_NAME

START = datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock; ``advance`` moves it forward."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, **kwargs: float) -> None:
        self.now = self.now + timedelta(days=days, **kwargs)

    def today(self) -> date:
        return self.now.date()


class Library:
    """Seeds catalogue rows and members into a container."""

    def __init__(self, container: Container) -> None:
        self.c = container
        self._isbn = 9780000000000

    def book(self, title: str = "Dune") -> int:
        self._isbn += 1
        return self.c.books.insert(Book(isbn=str(self._isbn), title=title))

    def copy(self, book_id: int, price: str = "20.00", barcode: Optional[str] = None) -> int:
        added = self.c.ledger.add_copy(
            BookCopy(book_id=book_id, barcode=barcode, location="A1", price=Decimal(price))
        )
        return int(added.copy_id or 0)

    def member(
        self,
        first_name: str = "Ada",
        *,
        status: MemberStatus = MemberStatus.ACTIVE,
        expiry: Optional[date] = None,
    ) -> int:
        return self.c.members.insert(
            Member(
                first_name=first_name,
                last_name="Reader",
                membership_date=date(2023, 1, 1),
                membership_expiry=expiry,
                status=status,
            )
        )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def container(clock: FakeClock) -> Container:
    return build_in_memory(clock=clock)


@pytest.fixture
def library(container: Container) -> Library:
    return Library(container)


@pytest.fixture(autouse=True)
def reset_circulation_logger() -> Generator[None, None, None]:
    """Ensure tests run with a clean ``circulation`` logger state."""
    logger = logging.getLogger(LOG_NAME)

    def _reset() -> None:
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
            handler.close()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    _reset()
    yield
    _reset()
