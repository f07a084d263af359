from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from circulation.domain.entities import Reservation


class ReservationsRepo(ABC):
    """Repository interface for reservations."""

    @abstractmethod
    def get_by_id(self, reservation_id: int) -> Optional[Reservation]:
        """Return a reservation by identifier if present."""

    @abstractmethod
    def insert(self, reservation: Reservation) -> int:
        """Persist a new reservation and return the identifier."""

    @abstractmethod
    def update(self, reservation: Reservation) -> None:
        """Update an existing reservation."""

    @abstractmethod
    def list_pending_for_book(self, book_id: int) -> list[Reservation]:
        """Pending reservations of a book in FIFO order (date, then id)."""

    @abstractmethod
    def find_pending(self, book_id: int, member_id: int) -> Optional[Reservation]:
        """Return the member's pending reservation for a book, if any."""

    @abstractmethod
    def find_holding_copy(self, copy_id: int) -> Optional[Reservation]:
        """Return the fulfilled reservation still waiting for pickup of ``copy_id``."""

    @abstractmethod
    def list_stale(self, today: date) -> list[Reservation]:
        """Pending or awaiting-pickup reservations whose expiry date is before ``today``."""

    @abstractmethod
    def list_by_member(self, member_id: int) -> list[Reservation]:
        """List every reservation of a member."""
