# mypy: ignore-errors

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterator

import pytest

from circulation.domain.entities import (
    Book,
    BookCopy,
    Event,
    EventAttendance,
    Fine,
    Loan,
    Member,
    Reservation,
)
from circulation.domain.value_objects.enums import (
    CopyCondition,
    CopyStatus,
    FineKind,
    FineStatus,
    LoanStatus,
    ReservationStatus,
)
from circulation.repositories import memory
from circulation.repositories import sqlite as sqlite_repos

T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


@dataclass
class Repos:
    books: Any
    copies: Any
    members: Any
    loans: Any
    reservations: Any
    fines: Any
    events: Any


@pytest.fixture(params=["memory", "sqlite"])
def repos(request: pytest.FixtureRequest) -> Iterator[Repos]:
    if request.param == "memory":
        yield Repos(
            memory.BooksRepoMemory(),
            memory.CopiesRepoMemory(),
            memory.MembersRepoMemory(),
            memory.LoansRepoMemory(),
            memory.ReservationsRepoMemory(),
            memory.FinesRepoMemory(),
            memory.EventsRepoMemory(),
        )
        return
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    yield Repos(
        sqlite_repos.BooksRepoSqlite(conn),
        sqlite_repos.CopiesRepoSqlite(conn),
        sqlite_repos.MembersRepoSqlite(conn),
        sqlite_repos.LoansRepoSqlite(conn),
        sqlite_repos.ReservationsRepoSqlite(conn),
        sqlite_repos.FinesRepoSqlite(conn),
        sqlite_repos.EventsRepoSqlite(conn),
    )
    conn.close()


def _seed(r: Repos) -> tuple[int, int, int]:
    book_id = r.books.insert(Book(isbn="9780441013593", title="Dune"))
    copy_id = r.copies.insert(BookCopy(book_id=book_id, barcode="B-1", price=Decimal("19.99")))
    member_id = r.members.insert(
        Member(first_name="Ada", last_name="Lovelace", membership_date=date(2023, 1, 1))
    )
    return book_id, copy_id, member_id


def _loan(copy_id: int, member_id: int, **kw: Any) -> Loan:
    data = dict(
        copy_id=copy_id,
        member_id=member_id,
        staff_id=1,
        loan_date=date(2024, 3, 1),
        due_date=date(2024, 3, 15),
    )
    data.update(kw)
    return Loan(**data)


def test_books_and_copies_crud(repos: Repos) -> None:
    book_id, copy_id, _ = _seed(repos)
    second = repos.books.insert(Book(book_id=77, isbn="9780000000001", title="Emma"))
    assert second == 77
    assert repos.books.get_by_id(book_id).title == "Dune"
    assert [b.book_id for b in repos.books.list_all(limit=10)] == [book_id, 77]
    assert repos.books.get_by_id(999) is None

    copy = repos.copies.get_by_id(copy_id)
    assert copy.price == Decimal("19.99")
    assert copy.status == CopyStatus.AVAILABLE

    # Status changes only through compare-and-set
    repos.copies.update_details(
        copy.model_copy(update={"location": "B2", "status": CopyStatus.LOST})
    )
    updated = repos.copies.get_by_id(copy_id)
    assert updated.location == "B2"
    assert updated.status == CopyStatus.AVAILABLE

    other = repos.copies.insert(BookCopy(book_id=book_id, barcode="B-2"))
    assert [c.copy_id for c in repos.copies.list_by_book(book_id)] == [copy_id, other]


def test_copy_compare_and_set(repos: Repos) -> None:
    _, copy_id, _ = _seed(repos)
    assert repos.copies.compare_and_set_status(copy_id, {CopyStatus.AVAILABLE}, CopyStatus.LOANED)
    assert not repos.copies.compare_and_set_status(
        copy_id, {CopyStatus.AVAILABLE}, CopyStatus.LOANED
    )
    assert repos.copies.compare_and_set_status(
        copy_id,
        {CopyStatus.LOANED},
        CopyStatus.DAMAGED,
        condition=CopyCondition.POOR,
    )
    copy = repos.copies.get_by_id(copy_id)
    assert copy.status == CopyStatus.DAMAGED
    assert copy.condition == CopyCondition.POOR
    assert not repos.copies.compare_and_set_status(copy_id, set(), CopyStatus.AVAILABLE)
    assert not repos.copies.compare_and_set_status(
        999, {CopyStatus.AVAILABLE}, CopyStatus.LOANED
    )


def test_members_counter(repos: Repos) -> None:
    _, _, member_id = _seed(repos)
    repos.members.increment_borrowed(member_id)
    repos.members.increment_borrowed(member_id)
    member = repos.members.get_by_id(member_id)
    assert member.total_borrowed == 2

    # update leaves the counter alone
    repos.members.update(member.model_copy(update={"last_name": "King", "total_borrowed": 0}))
    member = repos.members.get_by_id(member_id)
    assert member.last_name == "King"
    assert member.total_borrowed == 2

    with pytest.raises(KeyError):
        repos.members.increment_borrowed(999)
    assert len(repos.members.list_all(limit=5)) == 1


def test_loans_lookups(repos: Repos) -> None:
    _, copy_id, member_id = _seed(repos)
    first = repos.loans.insert(
        _loan(copy_id, member_id, status=LoanStatus.RETURNED, return_date=date(2024, 3, 5))
    )
    second = repos.loans.insert(_loan(copy_id, member_id, loan_date=date(2024, 3, 6), due_date=date(2024, 3, 20)))

    assert repos.loans.find_open_by_copy(copy_id).loan_id == second
    assert [loan.loan_id for loan in repos.loans.list_by_member(member_id)] == [first, second]
    assert [loan.loan_id for loan in repos.loans.list_open()] == [second]

    loan = repos.loans.get_by_id(second)
    repos.loans.update(loan.model_copy(update={"status": LoanStatus.OVERDUE, "notes": "late"}))
    assert repos.loans.get_by_id(second).notes == "late"
    assert repos.loans.find_open_by_copy(copy_id).status == LoanStatus.OVERDUE


def test_reservations_queue_order_and_lookups(repos: Repos) -> None:
    book_id, copy_id, member_id = _seed(repos)
    other = repos.members.insert(
        Member(first_name="Bob", last_name="B", membership_date=date(2023, 1, 1))
    )
    later = repos.reservations.insert(
        Reservation(
            book_id=book_id,
            member_id=member_id,
            reservation_date=T0 + timedelta(minutes=5),
            expiry_date=date(2024, 3, 8),
        )
    )
    earlier = repos.reservations.insert(
        Reservation(
            book_id=book_id,
            member_id=other,
            reservation_date=T0,
            expiry_date=date(2024, 3, 8),
        )
    )
    pending = repos.reservations.list_pending_for_book(book_id)
    assert [r.reservation_id for r in pending] == [earlier, later]
    assert repos.reservations.find_pending(book_id, member_id).reservation_id == later
    assert repos.reservations.get_by_id(earlier).reservation_date == T0

    held = repos.reservations.get_by_id(earlier).model_copy(
        update={
            "status": ReservationStatus.FULFILLED,
            "held_copy_id": copy_id,
            "expiry_date": date(2024, 3, 4),
        }
    )
    repos.reservations.update(held)
    assert repos.reservations.find_holding_copy(copy_id).reservation_id == earlier
    assert [r.reservation_id for r in repos.reservations.list_stale(date(2024, 3, 5))] == [earlier]
    assert {r.reservation_id for r in repos.reservations.list_stale(date(2024, 3, 9))} == {
        earlier,
        later,
    }

    repos.reservations.update(held.model_copy(update={"loan_id": 5}))
    assert repos.reservations.find_holding_copy(copy_id) is None
    assert [r.reservation_id for r in repos.reservations.list_by_member(other)] == [earlier]


def test_fines_roundtrip(repos: Repos) -> None:
    _, copy_id, member_id = _seed(repos)
    loan_id = repos.loans.insert(_loan(copy_id, member_id))
    fine_id = repos.fines.insert(
        Fine(
            loan_id=loan_id,
            amount=Decimal("5"),
            kind=FineKind.OVERDUE,
            reason="Book returned 5 days late",
            issue_date=date(2024, 3, 20),
        )
    )
    fine = repos.fines.get_by_id(fine_id)
    assert fine.amount == Decimal("5.00")
    repos.fines.update(
        fine.model_copy(update={"status": FineStatus.PAID, "payment_date": date(2024, 3, 21)})
    )
    [stored] = repos.fines.list_by_loan(loan_id)
    assert stored.status == FineStatus.PAID
    assert stored.payment_date == date(2024, 3, 21)


def test_events_and_attendance(repos: Repos) -> None:
    _, _, member_id = _seed(repos)
    event_id = repos.events.insert(
        Event(title="Poetry night", event_date=date(2024, 4, 1), max_attendees=2)
    )
    assert repos.events.get_by_id(event_id).max_attendees == 2
    repos.events.add_attendee(
        EventAttendance(event_id=event_id, member_id=member_id, registration_date=T0)
    )
    assert repos.events.count_for_member(member_id) == 1
    attendance = repos.events.get_attendance(event_id, member_id)
    repos.events.update_attendance(attendance.model_copy(update={"attended": True}))
    [row] = repos.events.list_attendees(event_id)
    assert row.attended is True
    assert repos.events.get_attendance(event_id, 999) is None
