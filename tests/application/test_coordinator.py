from __future__ import annotations

import sqlite3
import threading
from datetime import date
from decimal import Decimal

import pytest
from _pytest.logging import LogCaptureFixture

from circulation.application.container import Container, build_sqlite
from circulation.domain.entities import BookCopy
from circulation.domain.errors import (
    CopyUnavailableError,
    MemberIneligibleError,
)
from circulation.domain.value_objects.enums import (
    CopyCondition,
    CopyStatus,
    LoanStatus,
    MemberStatus,
    ReservationStatus,
    ReturnCondition,
)
from circulation.repositories.sqlite import create_schema
from conftest import FakeClock, Library


def test_concurrent_checkout_has_one_winner(container: Container, library: Library) -> None:
    copy_id = library.copy(library.book())
    members = [library.member(f"M{n}") for n in range(8)]
    barrier = threading.Barrier(len(members))
    loans: list[int] = []
    rejected: list[int] = []

    def attempt(member_id: int) -> None:
        barrier.wait()
        try:
            loans.append(container.coordinator.checkout(copy_id, member_id, staff_id=1).loan_id)
        except CopyUnavailableError:
            rejected.append(member_id)

    threads = [threading.Thread(target=attempt, args=(m,)) for m in members]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert len(loans) == 1
    assert len(rejected) == len(members) - 1
    assert len(container.loans_repo.list_open()) == 1


def test_suspended_member_rejected_without_side_effects(
    container: Container, library: Library
) -> None:
    copy_id = library.copy(library.book())
    member = library.member(status=MemberStatus.SUSPENDED)
    with pytest.raises(MemberIneligibleError):
        container.coordinator.checkout(copy_id, member, staff_id=1)
    assert container.ledger.get_copy(copy_id).status == CopyStatus.AVAILABLE
    assert container.members.get_by_id(member).total_borrowed == 0


def test_failed_loan_creation_restores_copy(
    container: Container, library: Library, monkeypatch: pytest.MonkeyPatch
) -> None:
    copy_id = library.copy(library.book())
    member = library.member()

    def boom(_loan: object) -> int:
        raise RuntimeError("insert failed")

    monkeypatch.setattr(container.loans_repo, "insert", boom)
    with pytest.raises(RuntimeError, match="insert failed"):
        container.coordinator.checkout(copy_id, member, staff_id=1)
    assert container.ledger.get_copy(copy_id).status == CopyStatus.AVAILABLE


def test_failed_pickup_restores_hold(
    container: Container, library: Library, monkeypatch: pytest.MonkeyPatch
) -> None:
    book = library.book()
    copy_id = library.copy(book)
    member = library.member()
    held = container.coordinator.reserve(book, member)

    def boom(_loan: object) -> int:
        raise RuntimeError("insert failed")

    monkeypatch.setattr(container.loans_repo, "insert", boom)
    with pytest.raises(RuntimeError):
        container.coordinator.checkout(copy_id, member, staff_id=1)
    assert container.ledger.get_copy(copy_id).status == CopyStatus.RESERVED
    assert container.queue.get(held.reservation_id).awaiting_pickup


def test_pickup_stamps_reservation(container: Container, library: Library) -> None:
    book = library.book()
    copy_id = library.copy(book)
    member = library.member()
    held = container.coordinator.reserve(book, member)
    assert held.status == ReservationStatus.FULFILLED

    loan = container.coordinator.checkout(copy_id, member, staff_id=1)
    picked = container.queue.get(held.reservation_id)
    assert picked.loan_id == loan.loan_id
    assert container.queue.held_reservation_for_copy(copy_id) is None


def test_hold_lapsing_before_checkout_is_a_plain_checkout(
    container: Container, library: Library, clock: FakeClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    book = library.book()
    copy_id = library.copy(book)
    member = library.member()
    held = container.coordinator.reserve(book, member)
    clock.advance(days=4)

    real = container.loans.ensure_eligible

    def sweep_first(member_id: int) -> None:
        container.queue.expire_stale()
        real(member_id)

    monkeypatch.setattr(container.loans, "ensure_eligible", sweep_first)
    loan = container.coordinator.checkout(copy_id, member, staff_id=1)

    assert loan.is_open
    assert container.ledger.get_copy(copy_id).status == CopyStatus.LOANED
    lapsed = container.queue.get(held.reservation_id)
    assert lapsed.status == ReservationStatus.EXPIRED
    assert lapsed.loan_id is None


def test_hold_expiring_at_ledger_gate_leaves_nothing_behind(
    container: Container, library: Library, clock: FakeClock, monkeypatch: pytest.MonkeyPatch
) -> None:
    book = library.book()
    copy_id = library.copy(book)
    member = library.member()
    container.coordinator.reserve(book, member)
    clock.advance(days=4)

    real = container.ledger.mark_loaned

    def sweep_first(copy: int) -> BookCopy:
        container.queue.expire_stale()
        return real(copy)

    monkeypatch.setattr(container.ledger, "mark_loaned", sweep_first)
    with pytest.raises(CopyUnavailableError):
        container.coordinator.checkout(copy_id, member, staff_id=1)

    assert container.loans_repo.list_open() == []
    assert container.ledger.get_copy(copy_id).status == CopyStatus.AVAILABLE
    assert container.members.get_by_id(member).total_borrowed == 0


def test_hold_cancelled_during_pickup_still_lends_copy(
    container: Container, library: Library, monkeypatch: pytest.MonkeyPatch
) -> None:
    book = library.book()
    copy_id = library.copy(book)
    member = library.member()
    held = container.coordinator.reserve(book, member)

    real = container.ledger.mark_loaned

    def cancel_first(copy: int) -> BookCopy:
        container.queue.cancel(held.reservation_id)
        return real(copy)

    monkeypatch.setattr(container.ledger, "mark_loaned", cancel_first)
    loan = container.coordinator.checkout(copy_id, member, staff_id=1)

    assert container.ledger.get_copy(copy_id).status == CopyStatus.LOANED
    assert container.loans.get(loan.loan_id).is_open
    assert container.queue.get(held.reservation_id).status == ReservationStatus.CANCELLED


def test_retried_return_still_serves_waiting_member(
    container: Container, library: Library, monkeypatch: pytest.MonkeyPatch
) -> None:
    book = library.book()
    copy_id = library.copy(book)
    loan = container.coordinator.checkout(copy_id, library.member("Ada"), staff_id=1)
    waiting = container.coordinator.reserve(book, library.member("Bob"))

    real = container.ledger.mark_returned
    calls: list[int] = []

    def flaky(copy: int, condition: ReturnCondition, *, hold: bool = False) -> BookCopy:
        calls.append(copy)
        if len(calls) == 1:
            raise RuntimeError("storage hiccup")
        return real(copy, condition, hold=hold)

    monkeypatch.setattr(container.ledger, "mark_returned", flaky)
    with pytest.raises(RuntimeError):
        container.coordinator.return_loan(loan.loan_id, ReturnCondition.GOOD)
    assert container.loans.get(loan.loan_id).status == LoanStatus.RETURNED

    container.coordinator.return_loan(loan.loan_id, ReturnCondition.GOOD)
    assert container.ledger.get_copy(copy_id).status == CopyStatus.RESERVED
    promoted = container.queue.get(waiting.reservation_id)
    assert promoted.status == ReservationStatus.FULFILLED
    assert promoted.held_copy_id == copy_id


def test_return_with_waiting_member_holds_copy(
    container: Container, library: Library, clock: FakeClock
) -> None:
    book = library.book()
    copy_id = library.copy(book)
    loan = container.coordinator.checkout(copy_id, library.member("Ada"), staff_id=1)
    waiting = container.coordinator.reserve(book, library.member("Bob"))
    assert waiting.status == ReservationStatus.PENDING

    clock.advance(days=7)
    container.coordinator.return_loan(loan.loan_id, ReturnCondition.GOOD)

    promoted = container.queue.get(waiting.reservation_id)
    assert promoted.status == ReservationStatus.FULFILLED
    assert promoted.held_copy_id == copy_id
    assert promoted.expiry_date == date(2024, 3, 11)
    assert container.ledger.get_copy(copy_id).status == CopyStatus.RESERVED


def test_return_is_idempotent_with_single_fine(
    container: Container, library: Library, clock: FakeClock
) -> None:
    copy_id = library.copy(library.book())
    loan = container.coordinator.checkout(copy_id, library.member(), staff_id=1)
    clock.advance(days=19)

    container.coordinator.return_loan(loan.loan_id, ReturnCondition.GOOD)
    container.coordinator.return_loan(loan.loan_id, ReturnCondition.GOOD)

    [fine] = container.fines.list_for_loan(loan.loan_id)
    assert fine.amount == Decimal("5.00")
    assert container.ledger.get_copy(copy_id).status == CopyStatus.AVAILABLE


def test_damaged_return_skips_queue(container: Container, library: Library) -> None:
    book = library.book()
    copy_id = library.copy(book)
    loan = container.coordinator.checkout(copy_id, library.member("Ada"), staff_id=1)
    waiting = container.coordinator.reserve(book, library.member("Bob"))

    container.coordinator.return_loan(loan.loan_id, ReturnCondition.DAMAGED)
    assert container.ledger.get_copy(copy_id).status == CopyStatus.DAMAGED
    assert container.queue.get(waiting.reservation_id).status == ReservationStatus.PENDING

    container.coordinator.send_to_repair(copy_id)
    repaired = container.coordinator.complete_repair(copy_id, CopyCondition.GOOD)
    assert repaired.status == CopyStatus.RESERVED
    assert container.queue.get(waiting.reservation_id).held_copy_id == copy_id


def test_return_failure_is_logged_and_reraised(
    container: Container,
    library: Library,
    monkeypatch: pytest.MonkeyPatch,
    caplog: LogCaptureFixture,
) -> None:
    loan = container.coordinator.checkout(library.copy(library.book()), library.member(), staff_id=1)

    def boom(_loan: object) -> None:
        raise RuntimeError("update failed")

    monkeypatch.setattr(container.loans_repo, "update", boom)
    with pytest.raises(RuntimeError):
        container.coordinator.return_loan(loan.loan_id, ReturnCondition.GOOD)
    assert any(r.getMessage() == "Return failed" for r in caplog.records)


def test_cancel_held_reservation_passes_copy_on(
    container: Container, library: Library
) -> None:
    book = library.book()
    copy_id = library.copy(book)
    first = container.coordinator.reserve(book, library.member("Ada"))
    second = container.coordinator.reserve(book, library.member("Bob"))

    cancelled = container.coordinator.cancel_reservation(first.reservation_id)
    assert cancelled.status == ReservationStatus.CANCELLED
    assert container.queue.get(second.reservation_id).held_copy_id == copy_id

    container.coordinator.cancel_reservation(second.reservation_id)
    assert container.ledger.get_copy(copy_id).status == CopyStatus.AVAILABLE
    # Cancelling again changes nothing
    assert container.coordinator.cancel_reservation(second.reservation_id).status == (
        ReservationStatus.CANCELLED
    )


def test_new_copy_serves_waiting_member(container: Container, library: Library) -> None:
    book = library.book()
    waiting = container.coordinator.reserve(book, library.member())
    added = container.coordinator.add_copy(BookCopy(book_id=book, barcode="NEW-1"))
    assert added.status == CopyStatus.RESERVED
    assert container.queue.get(waiting.reservation_id).held_copy_id == added.copy_id


def test_run_sweep(container: Container, library: Library, clock: FakeClock) -> None:
    book = library.book()
    copy_id = library.copy(book)
    first = container.coordinator.reserve(book, library.member("Ada"))
    second = container.coordinator.reserve(book, library.member("Bob"))
    loan = container.coordinator.checkout(
        library.copy(library.book("Emma")), library.member("Cy"), staff_id=1
    )

    clock.advance(days=15)
    result = container.coordinator.run_sweep()

    assert [r.reservation_id for r in result.expired] == [
        second.reservation_id,
        first.reservation_id,
    ]
    assert [r.loan_id for r in result.overdue] == [loan.loan_id]
    assert container.loans.get(loan.loan_id).status == LoanStatus.OVERDUE
    assert container.ledger.get_copy(copy_id).status == CopyStatus.AVAILABLE


def test_sqlite_backed_workflow(clock: FakeClock) -> None:
    conn = sqlite3.connect(":memory:", check_same_thread=False)
    create_schema(conn)
    container = build_sqlite(conn, clock=clock)
    library = Library(container)

    book = library.book()
    copy_id = library.copy(book)
    loan = container.coordinator.checkout(copy_id, library.member("Ada"), staff_id=1)
    clock.advance(days=16)
    waiting = container.coordinator.reserve(book, library.member("Bob"))
    container.coordinator.return_loan(loan.loan_id, ReturnCondition.GOOD)

    assert container.queue.get(waiting.reservation_id).held_copy_id == copy_id
    [fine] = container.fines.list_for_loan(loan.loan_id)
    assert fine.amount == Decimal("2.00")
    container.close()
