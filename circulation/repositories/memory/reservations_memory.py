from __future__ import annotations

from datetime import date
from typing import Optional

from circulation.domain.entities import Reservation
from circulation.domain.value_objects.enums import ReservationStatus

from ..reservations import ReservationsRepo
from ._store import MemoryStore


class ReservationsRepoMemory(ReservationsRepo):
    def __init__(self) -> None:
        self._store: MemoryStore[Reservation] = MemoryStore("reservation_id")

    def get_by_id(self, reservation_id: int) -> Optional[Reservation]:
        return self._store.get(reservation_id)

    def insert(self, reservation: Reservation) -> int:
        return self._store.insert(reservation)

    def update(self, reservation: Reservation) -> None:
        self._store.replace(reservation)

    def list_pending_for_book(self, book_id: int) -> list[Reservation]:
        rows = [
            r
            for r in self._store.values()
            if r.book_id == book_id and r.status == ReservationStatus.PENDING
        ]
        # FIFO by reservation_date, ties by insertion id
        return sorted(rows, key=lambda r: r.queue_key())

    def find_pending(self, book_id: int, member_id: int) -> Optional[Reservation]:
        for r in self._store.values():
            if (
                r.book_id == book_id
                and r.member_id == member_id
                and r.status == ReservationStatus.PENDING
            ):
                return r
        return None

    def find_holding_copy(self, copy_id: int) -> Optional[Reservation]:
        for r in self._store.values():
            if r.held_copy_id == copy_id and r.awaiting_pickup:
                return r
        return None

    def list_stale(self, today: date) -> list[Reservation]:
        rows = [r for r in self._store.values() if r.is_stale(today)]
        return sorted(rows, key=lambda r: r.queue_key())

    def list_by_member(self, member_id: int) -> list[Reservation]:
        rows = [r for r in self._store.values() if r.member_id == member_id]
        return sorted(rows, key=lambda r: r.queue_key())
