from __future__ import annotations

from datetime import date
from typing import Any, Optional

from circulation.domain.entities import Reservation
from circulation.domain.value_objects.enums import ReservationStatus

from ..reservations import ReservationsRepo
from ._base import SqliteRepoBase, iso, to_date, to_datetime

_COLUMNS = (
    "reservation_id, book_id, member_id, reservation_date, expiry_date, status, "
    "held_copy_id, loan_id"
)
# Reservation dates are stored as UTC ISO strings, so text order is time order.
_FIFO = "ORDER BY reservation_date, reservation_id"


class ReservationsRepoSqlite(SqliteRepoBase, ReservationsRepo):
    """SQLite implementation of :class:`ReservationsRepo`."""

    table = "reservations"

    def _ensure_schema(self) -> None:
        self._create(
            """
            CREATE TABLE IF NOT EXISTS reservations (
                reservation_id INTEGER PRIMARY KEY,
                book_id INTEGER NOT NULL,
                member_id INTEGER NOT NULL,
                reservation_date TEXT NOT NULL,
                expiry_date TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'Pending'
                    CHECK(status IN ('Pending','Fulfilled','Cancelled','Expired')),
                held_copy_id INTEGER,
                loan_id INTEGER,
                FOREIGN KEY (book_id) REFERENCES books(book_id),
                FOREIGN KEY (member_id) REFERENCES members(member_id)
            )
            """,
            "CREATE INDEX IF NOT EXISTS ix_reservations_book ON reservations(book_id, status)",
            # At most one pending reservation per (book, member)
            """
            CREATE UNIQUE INDEX IF NOT EXISTS ux_reservations_pending
            ON reservations(book_id, member_id) WHERE status = 'Pending'
            """,
        )

    @staticmethod
    def _row_to_reservation(r: tuple[Any, ...]) -> Reservation:
        return Reservation(
            reservation_id=r[0],
            book_id=r[1],
            member_id=r[2],
            reservation_date=to_datetime(r[3]),
            expiry_date=to_date(r[4]),
            status=ReservationStatus(r[5]),
            held_copy_id=r[6],
            loan_id=r[7],
        )

    def _select(self, where: str, params: tuple[Any, ...]) -> list[Reservation]:
        rows = self._read(f"SELECT {_COLUMNS} FROM reservations WHERE {where} {_FIFO}", params)
        return [self._row_to_reservation(r) for r in rows]

    def get_by_id(self, reservation_id: int) -> Optional[Reservation]:
        rows = self._select("reservation_id = ?", (reservation_id,))
        return rows[0] if rows else None

    def insert(self, reservation: Reservation) -> int:
        return self._insert(
            f"INSERT INTO reservations ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                reservation.reservation_id,
                reservation.book_id,
                reservation.member_id,
                reservation.reservation_date.isoformat(),
                iso(reservation.expiry_date),
                reservation.status.value,
                reservation.held_copy_id,
                reservation.loan_id,
            ),
        )

    def update(self, reservation: Reservation) -> None:
        self._write(
            """
            UPDATE reservations
            SET book_id = ?, member_id = ?, reservation_date = ?, expiry_date = ?,
                status = ?, held_copy_id = ?, loan_id = ?
            WHERE reservation_id = ?
            """,
            (
                reservation.book_id,
                reservation.member_id,
                reservation.reservation_date.isoformat(),
                iso(reservation.expiry_date),
                reservation.status.value,
                reservation.held_copy_id,
                reservation.loan_id,
                reservation.reservation_id,
            ),
        )

    def list_pending_for_book(self, book_id: int) -> list[Reservation]:
        return self._select("book_id = ? AND status = 'Pending'", (book_id,))

    def find_pending(self, book_id: int, member_id: int) -> Optional[Reservation]:
        rows = self._select(
            "book_id = ? AND member_id = ? AND status = 'Pending'", (book_id, member_id)
        )
        return rows[0] if rows else None

    def find_holding_copy(self, copy_id: int) -> Optional[Reservation]:
        rows = self._select(
            "held_copy_id = ? AND status = 'Fulfilled' AND loan_id IS NULL", (copy_id,)
        )
        return rows[0] if rows else None

    def list_stale(self, today: date) -> list[Reservation]:
        return self._select(
            """
            expiry_date < ?
            AND (status = 'Pending'
                 OR (status = 'Fulfilled' AND held_copy_id IS NOT NULL AND loan_id IS NULL))
            """,
            (today.isoformat(),),
        )

    def list_by_member(self, member_id: int) -> list[Reservation]:
        return self._select("member_id = ?", (member_id,))
