from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from circulation.config.policy import Policy
from circulation.domain.entities import Reservation
from circulation.domain.errors import (
    ConflictError,
    DuplicatePendingError,
    InvalidStateError,
    NotFoundError,
)
from circulation.domain.value_objects.enums import CopyStatus, ReservationStatus
from circulation.domain.value_objects.ids import BookId, CopyId, LoanId, MemberId, ReservationId
from circulation.infrastructure.clock import Clock, utc_now
from circulation.infrastructure.keyed_lock import KeyedLock
from circulation.repositories.reservations import ReservationsRepo

from .ledger import InventoryLedger

logger = logging.getLogger(__name__)


class ReservationQueue:
    """Per-book FIFO waitlist consulted whenever a copy comes free.

    - Queue order is ``(reservation_date, reservation_id)``.
    - Every mutation of a book's queue runs under that book's lock; different
      books never contend.
    - A fulfilled reservation holds one copy (Reserved in the ledger) for the
      pickup window, then lapses through :meth:`expire_stale`.
    """

    def __init__(
        self,
        reservations: ReservationsRepo,
        ledger: InventoryLedger,
        policy: Optional[Policy] = None,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._reservations = reservations
        self._ledger = ledger
        self._policy = policy or Policy()
        self._clock = clock
        self._book_locks: KeyedLock[int] = KeyedLock()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def get(self, reservation_id: int) -> Reservation:
        reservation = self._reservations.get_by_id(reservation_id)
        if reservation is None:
            raise NotFoundError("Reservation", reservation_id)
        return reservation

    def has_pending(self, book_id: int) -> bool:
        """True when a pending reservation that has not lapsed is waiting."""
        return self._next_waiting(book_id, self._clock().date()) is not None

    def pending_for_book(self, book_id: int) -> list[Reservation]:
        return self._reservations.list_pending_for_book(book_id)

    def held_reservation_for_copy(self, copy_id: int) -> Optional[Reservation]:
        return self._reservations.find_holding_copy(copy_id)

    def list_for_member(self, member_id: int) -> list[Reservation]:
        return self._reservations.list_by_member(member_id)

    # ------------------------------------------------------------------
    # Queue operations
    # ------------------------------------------------------------------
    def enqueue(self, book_id: int, member_id: int) -> Reservation:
        now = self._clock()
        with self._book_locks.hold(book_id):
            if self._reservations.find_pending(book_id, member_id) is not None:
                raise DuplicatePendingError(
                    f"Member {member_id} already has a pending reservation for book {book_id}"
                )
            reservation = Reservation(
                book_id=BookId(book_id),
                member_id=MemberId(member_id),
                reservation_date=now,
                expiry_date=now.date() + timedelta(days=self._policy.reservation_expiry_days),
            )
            reservation_id = self._reservations.insert(reservation)
        logger.info(
            "Reservation queued",
            extra={"reservation_id": reservation_id, "book_id": book_id, "member_id": member_id},
        )
        return reservation.model_copy(update={"reservation_id": ReservationId(reservation_id)})

    def cancel(self, reservation_id: int) -> Reservation:
        """Cancel a reservation; cancelling twice returns the cancelled record.

        A copy the reservation was holding stays Reserved until the caller
        runs :meth:`on_copy_available` for it.
        """
        reservation = self.get(reservation_id)
        with self._book_locks.hold(reservation.book_id):
            reservation = self.get(reservation_id)
            if reservation.status == ReservationStatus.CANCELLED:
                return reservation
            if reservation.status == ReservationStatus.EXPIRED or reservation.loan_id is not None:
                raise InvalidStateError(
                    f"Reservation {reservation_id} is {reservation.status.value}; cannot cancel"
                )
            cancelled = reservation.model_copy(update={"status": ReservationStatus.CANCELLED})
            self._reservations.update(cancelled)
        logger.info(
            "Reservation cancelled",
            extra={"reservation_id": reservation_id, "held_copy_id": cancelled.held_copy_id},
        )
        return cancelled

    def on_copy_available(
        self, book_id: int, copy_id: Optional[int] = None
    ) -> Optional[Reservation]:
        """Hand a free copy of ``book_id`` to the oldest pending reservation.

        A free copy is either Available or Reserved without a holder (a return
        the ledger already held for the queue). When nobody is waiting, such
        an unclaimed hold is released back to Available. Without ``copy_id``
        every copy of the book is considered.
        """
        with self._book_locks.hold(book_id):
            today = self._clock().date()
            if copy_id is not None:
                candidates = [copy_id]
            else:
                candidates = [int(c.copy_id or 0) for c in self._ledger.copies_of(book_id)]

            for candidate in candidates:
                copy = self._ledger.get_copy(candidate)
                if copy.status == CopyStatus.RESERVED:
                    if self._reservations.find_holding_copy(candidate) is not None:
                        continue
                    unclaimed_hold = True
                elif copy.status == CopyStatus.AVAILABLE:
                    unclaimed_hold = False
                else:
                    continue

                waiting = self._next_waiting(book_id, today)
                if waiting is None:
                    if unclaimed_hold:
                        self._ledger.release(candidate)
                        logger.info(
                            "Hold released, queue empty",
                            extra={"book_id": book_id, "copy_id": candidate},
                        )
                    return None

                if not unclaimed_hold:
                    try:
                        self._ledger.mark_reserved(candidate)
                    except ConflictError:
                        # A checkout took the copy first.
                        continue
                return self._fulfil(waiting, candidate, today)
            return None

    def _next_waiting(self, book_id: int, today: date) -> Optional[Reservation]:
        for reservation in self._reservations.list_pending_for_book(book_id):
            if not reservation.is_stale(today):
                return reservation
        return None

    def _fulfil(self, reservation: Reservation, copy_id: int, today: date) -> Reservation:
        fulfilled = reservation.model_copy(
            update={
                "status": ReservationStatus.FULFILLED,
                "held_copy_id": CopyId(copy_id),
                "expiry_date": today + timedelta(days=self._policy.pickup_window_days),
            }
        )
        self._reservations.update(fulfilled)
        logger.info(
            "Reservation fulfilled",
            extra={
                "reservation_id": reservation.reservation_id,
                "copy_id": copy_id,
                "pickup_until": fulfilled.expiry_date.isoformat(),
            },
        )
        return fulfilled

    def complete_pickup(self, reservation_id: int, loan_id: int) -> Reservation:
        """Record that the held copy went out on ``loan_id``."""
        reservation = self.get(reservation_id)
        with self._book_locks.hold(reservation.book_id):
            reservation = self.get(reservation_id)
            if reservation.loan_id == loan_id:
                return reservation
            if not reservation.awaiting_pickup:
                raise InvalidStateError(f"Reservation {reservation_id} is not awaiting pickup")
            picked_up = reservation.model_copy(update={"loan_id": LoanId(loan_id)})
            self._reservations.update(picked_up)
            return picked_up

    def expire_stale(self, now: Optional[datetime] = None) -> list[Reservation]:
        """Expire lapsed reservations and pass released copies down the queue.

        Safe to run next to checkouts: releasing a held copy is a
        compare-and-set, and if the pickup won the reservation is left alone.
        """
        today = (now or self._clock()).date()
        stale = self._reservations.list_stale(today)
        # Lapsed pending entries go first so a released copy never lands on one.
        stale.sort(key=lambda r: (r.status != ReservationStatus.PENDING, r.queue_key()))

        expired: list[Reservation] = []
        for candidate in stale:
            with self._book_locks.hold(candidate.book_id):
                reservation = self._reservations.get_by_id(int(candidate.reservation_id or 0))
                if reservation is None or not reservation.is_stale(today):
                    continue
                held_copy = reservation.held_copy_id
                if held_copy is not None:
                    try:
                        self._ledger.release(held_copy)
                    except ConflictError:
                        logger.info(
                            "Hold expiry lost to pickup",
                            extra={"reservation_id": reservation.reservation_id},
                        )
                        continue
                lapsed = reservation.model_copy(update={"status": ReservationStatus.EXPIRED})
                self._reservations.update(lapsed)
                expired.append(lapsed)
                logger.info(
                    "Reservation expired",
                    extra={"reservation_id": reservation.reservation_id, "copy_id": held_copy},
                )
                if held_copy is not None:
                    self.on_copy_available(reservation.book_id, held_copy)
        return expired
