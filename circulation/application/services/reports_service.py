from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from circulation.domain.entities import BookCopy, Loan
from circulation.domain.errors import NotFoundError
from circulation.domain.value_objects.money import Money
from circulation.infrastructure.clock import Clock, utc_now
from circulation.repositories.books import BooksRepo
from circulation.repositories.events import EventsRepo
from circulation.repositories.loans import LoansRepo
from circulation.repositories.members import MembersRepo
from circulation.repositories.reservations import ReservationsRepo

from .fine_calculator import FineCalculator
from .ledger import InventoryLedger


@dataclass(frozen=True)
class OverdueLoan:
    loan: Loan
    member_name: str
    book_title: str
    days_overdue: int


@dataclass(frozen=True)
class MemberActivity:
    member_id: int
    member_name: str
    total_loans: int
    open_loans: int
    reservations: int
    events: int
    pending_fines: Money


class ReportsService:
    """Read-only projections computed from the repositories on demand.

    - ``available_copies``: copies of a book currently on the shelf
    - ``overdue_loans``: open loans past due, most overdue first
    - ``member_activity``: loan, reservation and event counts with the
      member's pending fine total
    """

    def __init__(
        self,
        books: BooksRepo,
        members: MembersRepo,
        loans: LoansRepo,
        reservations: ReservationsRepo,
        events: EventsRepo,
        ledger: InventoryLedger,
        fines: FineCalculator,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._books = books
        self._members = members
        self._loans = loans
        self._reservations = reservations
        self._events = events
        self._ledger = ledger
        self._fines = fines
        self._clock = clock

    def available_copies(self, book_id: int) -> list[BookCopy]:
        return self._ledger.available_copies(book_id)

    def overdue_loans(self, today: Optional[date] = None) -> list[OverdueLoan]:
        today = today or self._clock().date()
        rows: list[OverdueLoan] = []
        for loan in self._loans.list_open():
            if not loan.is_overdue(today):
                continue
            member = self._members.get_by_id(loan.member_id)
            copy = self._ledger.get_copy(loan.copy_id)
            book = self._books.get_by_id(copy.book_id)
            rows.append(
                OverdueLoan(
                    loan=loan,
                    member_name=member.full_name if member else f"#{loan.member_id}",
                    book_title=book.title if book else f"#{copy.book_id}",
                    days_overdue=loan.days_late(today),
                )
            )
        rows.sort(key=lambda r: (-r.days_overdue, int(r.loan.loan_id or 0)))
        return rows

    def member_activity(self, member_id: Optional[int] = None) -> list[MemberActivity]:
        if member_id is not None:
            member = self._members.get_by_id(member_id)
            if member is None:
                raise NotFoundError("Member", member_id)
            members = [member]
        else:
            members = self._members.list_all(limit=10_000)

        rows: list[MemberActivity] = []
        for member in members:
            mid = int(member.member_id or 0)
            loans = self._loans.list_by_member(mid)
            rows.append(
                MemberActivity(
                    member_id=mid,
                    member_name=member.full_name,
                    total_loans=len(loans),
                    open_loans=sum(1 for loan in loans if loan.is_open),
                    reservations=len(self._reservations.list_by_member(mid)),
                    events=self._events.count_for_member(mid),
                    pending_fines=self._fines.pending_total(mid),
                )
            )
        rows.sort(key=lambda r: (-r.total_loans, r.member_id))
        return rows
