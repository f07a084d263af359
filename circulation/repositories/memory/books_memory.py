from __future__ import annotations

from typing import Collection, Optional

from circulation.domain.entities import Book, BookCopy
from circulation.domain.value_objects.enums import CopyCondition, CopyStatus

from ..books import BooksRepo, CopiesRepo
from ._store import MemoryStore


class BooksRepoMemory(BooksRepo):
    def __init__(self) -> None:
        self._store: MemoryStore[Book] = MemoryStore("book_id")

    def get_by_id(self, book_id: int) -> Optional[Book]:
        return self._store.get(book_id)

    def insert(self, book: Book) -> int:
        return self._store.insert(book)

    def list_all(self, *, limit: int = 100, offset: int = 0) -> list[Book]:
        rows = sorted(self._store.values(), key=lambda b: int(b.book_id or 0))
        return rows[offset : offset + limit]


class CopiesRepoMemory(CopiesRepo):
    """In-memory :class:`CopiesRepo`; CAS runs under the store lock."""

    def __init__(self) -> None:
        self._store: MemoryStore[BookCopy] = MemoryStore("copy_id")

    def get_by_id(self, copy_id: int) -> Optional[BookCopy]:
        return self._store.get(copy_id)

    def insert(self, copy: BookCopy) -> int:
        return self._store.insert(copy)

    def update_details(self, copy: BookCopy) -> None:
        with self._store.lock:
            current = self._store.get(int(copy.copy_id or 0))
            if current is None:
                raise KeyError(f"Unknown copy_id {copy.copy_id}")
            self._store.replace(copy.model_copy(update={"status": current.status}))

    def list_by_book(self, book_id: int) -> list[BookCopy]:
        rows = [c for c in self._store.values() if c.book_id == book_id]
        return sorted(rows, key=lambda c: int(c.copy_id or 0))

    def compare_and_set_status(
        self,
        copy_id: int,
        expected: Collection[CopyStatus],
        new: CopyStatus,
        *,
        condition: Optional[CopyCondition] = None,
    ) -> bool:
        with self._store.lock:
            current = self._store.get(copy_id)
            if current is None or current.status not in expected:
                return False
            update: dict[str, object] = {"status": new}
            if condition is not None:
                update["condition"] = condition
            self._store.replace(current.model_copy(update=update))
            return True
