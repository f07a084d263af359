from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Collection, Optional

from circulation.domain.entities import Book, BookCopy
from circulation.domain.value_objects.enums import CopyCondition, CopyStatus


class BooksRepo(ABC):
    """Repository interface for catalogue rows."""

    @abstractmethod
    def get_by_id(self, book_id: int) -> Optional[Book]:
        """Return a book by identifier if present."""

    @abstractmethod
    def insert(self, book: Book) -> int:
        """Persist a new book and return the identifier."""

    @abstractmethod
    def list_all(self, *, limit: int = 100, offset: int = 0) -> list[Book]:
        """List books with pagination."""


class CopiesRepo(ABC):
    """Repository interface for physical copies.

    ``compare_and_set_status`` is the only way copy status changes after the
    copy is created; it must be atomic against concurrent callers.
    """

    @abstractmethod
    def get_by_id(self, copy_id: int) -> Optional[BookCopy]:
        """Return a copy by identifier if present."""

    @abstractmethod
    def insert(self, copy: BookCopy) -> int:
        """Persist a new copy and return the identifier."""

    @abstractmethod
    def update_details(self, copy: BookCopy) -> None:
        """Update physical attributes (barcode, location, price, condition); status is ignored."""

    @abstractmethod
    def list_by_book(self, book_id: int) -> list[BookCopy]:
        """List copies of a book ordered by copy id."""

    @abstractmethod
    def compare_and_set_status(
        self,
        copy_id: int,
        expected: Collection[CopyStatus],
        new: CopyStatus,
        *,
        condition: Optional[CopyCondition] = None,
    ) -> bool:
        """Atomically move the copy to ``new`` if its status is in ``expected``.

        :param condition: when given, written together with the status.
        :return: ``True`` when the transition happened.
        """
