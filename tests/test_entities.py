from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from circulation.domain.entities import Book, BookCopy, Event, EventAttendance, Fine, Loan, Member
from circulation.domain.entities import Reservation
from circulation.domain.value_objects.enums import (
    CopyStatus,
    FineKind,
    FineStatus,
    LoanStatus,
    MemberStatus,
    ReservationStatus,
)
from circulation.domain.value_objects.ids import BookId, CopyId, LoanId, MemberId, StaffId


def _loan(**overrides: object) -> Loan:
    data: dict = dict(
        loan_id=LoanId(1),
        copy_id=CopyId(1),
        member_id=MemberId(1),
        staff_id=StaffId(9),
        loan_date=date(2024, 3, 1),
        due_date=date(2024, 3, 15),
    )
    data.update(overrides)
    return Loan(**data)


def test_book_and_copy_defaults() -> None:
    book = Book(isbn="9780441013593", title="Dune")
    assert book.book_id is None
    copy = BookCopy(book_id=BookId(1), price="12.5")
    assert copy.price == Decimal("12.50")
    assert copy.status == CopyStatus.AVAILABLE
    assert copy.is_available
    with pytest.raises(ValueError):
        BookCopy(book_id=BookId(1), price="-1")


def test_loan_date_validation() -> None:
    with pytest.raises(ValueError):
        _loan(due_date=date(2024, 2, 1))
    with pytest.raises(ValueError):
        _loan(status=LoanStatus.RETURNED)
    returned = _loan(status=LoanStatus.RETURNED, return_date=date(2024, 3, 10))
    assert not returned.is_open


def test_loan_overdue_is_derived() -> None:
    loan = _loan()
    assert loan.effective_status(date(2024, 3, 15)) == LoanStatus.ACTIVE
    assert loan.effective_status(date(2024, 3, 16)) == LoanStatus.OVERDUE
    assert loan.days_late(date(2024, 3, 20)) == 5
    assert loan.days_late(date(2024, 3, 1)) == 0

    # A sweep label on a loan that was renewed afterwards reads as Active.
    relabelled = _loan(status=LoanStatus.OVERDUE, due_date=date(2024, 4, 1))
    assert relabelled.effective_status(date(2024, 3, 20)) == LoanStatus.ACTIVE

    returned = _loan(status=LoanStatus.RETURNED, return_date=date(2024, 3, 20))
    assert returned.effective_status(date(2024, 4, 1)) == LoanStatus.RETURNED


def test_member_validity() -> None:
    with pytest.raises(ValueError):
        Member(
            first_name="A",
            last_name="B",
            membership_date=date(2024, 1, 1),
            membership_expiry=date(2023, 1, 1),
        )
    member = Member(
        first_name="Grace",
        last_name="Hopper",
        membership_date=date(2024, 1, 1),
        membership_expiry=date(2024, 12, 31),
    )
    assert member.full_name == "Grace Hopper"
    assert member.membership_valid_on(date(2024, 12, 31))
    assert not member.membership_valid_on(date(2025, 1, 1))
    suspended = member.model_copy(update={"status": MemberStatus.SUSPENDED})
    assert not suspended.membership_valid_on(date(2024, 6, 1))


def test_reservation_requires_aware_datetime() -> None:
    with pytest.raises(ValueError):
        Reservation(
            book_id=BookId(1),
            member_id=MemberId(1),
            reservation_date=datetime(2024, 3, 1),
            expiry_date=date(2024, 3, 8),
        )
    cet = timezone(timedelta(hours=1))
    res = Reservation(
        book_id=BookId(1),
        member_id=MemberId(1),
        reservation_date=datetime(2024, 3, 1, 12, 0, tzinfo=cet),
        expiry_date=date(2024, 3, 8),
    )
    assert res.reservation_date.tzinfo == timezone.utc
    assert res.reservation_date.hour == 11


def test_reservation_hold_rules() -> None:
    base = dict(
        book_id=BookId(1),
        member_id=MemberId(1),
        reservation_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
        expiry_date=date(2024, 3, 8),
    )
    with pytest.raises(ValueError):
        Reservation(**base, held_copy_id=CopyId(3))

    pending = Reservation(**base)
    assert not pending.is_stale(date(2024, 3, 8))
    assert pending.is_stale(date(2024, 3, 9))

    held = Reservation(**base, status=ReservationStatus.FULFILLED, held_copy_id=CopyId(3))
    assert held.awaiting_pickup
    assert held.is_stale(date(2024, 3, 9))
    picked_up = held.model_copy(update={"loan_id": LoanId(4)})
    assert not picked_up.awaiting_pickup
    assert not picked_up.is_stale(date(2024, 4, 1))


def test_fine_settlement_validation() -> None:
    base = dict(
        loan_id=LoanId(1),
        amount="3",
        kind=FineKind.OVERDUE,
        reason="late",
        issue_date=date(2024, 3, 1),
    )
    fine = Fine(**base)
    assert fine.is_open
    assert fine.as_money().amount == Decimal("3.00")
    with pytest.raises(ValueError):
        Fine(**base, status=FineStatus.PAID)
    with pytest.raises(ValueError):
        Fine(**base, status=FineStatus.WAIVED)
    waived = Fine(**base, status=FineStatus.WAIVED, waived_by=StaffId(2))
    assert not waived.is_open


def test_event_models() -> None:
    with pytest.raises(ValueError):
        Event(title="Reading club", event_date=date(2024, 3, 1), max_attendees=0)
    with pytest.raises(ValueError):
        EventAttendance(event_id=1, member_id=1, registration_date=datetime(2024, 3, 1))
