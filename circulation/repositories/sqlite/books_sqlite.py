from __future__ import annotations

from typing import Any, Collection, Optional

from circulation.domain.entities import Book, BookCopy
from circulation.domain.value_objects.enums import CopyCondition, CopyStatus

from ..books import BooksRepo, CopiesRepo
from ._base import SqliteRepoBase, iso, to_date

_COPY_COLUMNS = (
    "copy_id, book_id, barcode, location, acquisition_date, price, status, copy_condition"
)


class BooksRepoSqlite(SqliteRepoBase, BooksRepo):
    """SQLite implementation of :class:`BooksRepo`.

    Example:
        >>> conn = sqlite3.connect(":memory:")
        >>> repo = BooksRepoSqlite(conn)
        >>> book_id = repo.insert(Book(isbn="9780451524935", title="1984"))
        >>> repo.get_by_id(book_id).title
        '1984'
    """

    table = "books"

    def _ensure_schema(self) -> None:
        self._create(
            """
            CREATE TABLE IF NOT EXISTS books (
                book_id INTEGER PRIMARY KEY,
                isbn TEXT NOT NULL UNIQUE,
                title TEXT NOT NULL
            )
            """
        )

    def get_by_id(self, book_id: int) -> Optional[Book]:
        rows = self._read("SELECT book_id, isbn, title FROM books WHERE book_id = ?", (book_id,))
        if rows:
            r = rows[0]
            return Book(book_id=r[0], isbn=r[1], title=r[2])
        return None

    def insert(self, book: Book) -> int:
        return self._insert(
            "INSERT INTO books (book_id, isbn, title) VALUES (?, ?, ?)",
            (book.book_id, book.isbn, book.title),
        )

    def list_all(self, *, limit: int = 100, offset: int = 0) -> list[Book]:
        rows = self._read(
            "SELECT book_id, isbn, title FROM books ORDER BY book_id LIMIT ? OFFSET ?",
            (limit, offset),
        )
        return [Book(book_id=r[0], isbn=r[1], title=r[2]) for r in rows]


class CopiesRepoSqlite(SqliteRepoBase, CopiesRepo):
    """SQLite implementation of :class:`CopiesRepo`.

    The status compare-and-set is a single conditional ``UPDATE``; the
    affected row count tells whether this caller won.
    """

    table = "book_copies"

    def _ensure_schema(self) -> None:
        self._create(
            """
            CREATE TABLE IF NOT EXISTS book_copies (
                copy_id INTEGER PRIMARY KEY,
                book_id INTEGER NOT NULL,
                barcode TEXT UNIQUE,
                location TEXT,
                acquisition_date TEXT,
                price TEXT NOT NULL DEFAULT '0.00',
                status TEXT NOT NULL DEFAULT 'Available'
                    CHECK(status IN ('Available','Loaned','Reserved','Lost','Damaged','Under Repair')),
                copy_condition TEXT NOT NULL DEFAULT 'Good'
                    CHECK(copy_condition IN ('New','Good','Fair','Poor')),
                FOREIGN KEY (book_id) REFERENCES books(book_id)
            )
            """,
            "CREATE INDEX IF NOT EXISTS ix_book_copies_book ON book_copies(book_id)",
        )

    @staticmethod
    def _row_to_copy(r: tuple[Any, ...]) -> BookCopy:
        return BookCopy(
            copy_id=r[0],
            book_id=r[1],
            barcode=r[2],
            location=r[3],
            acquisition_date=to_date(r[4]),
            price=r[5],
            status=CopyStatus(r[6]),
            condition=CopyCondition(r[7]),
        )

    def get_by_id(self, copy_id: int) -> Optional[BookCopy]:
        rows = self._read(f"SELECT {_COPY_COLUMNS} FROM book_copies WHERE copy_id = ?", (copy_id,))
        return self._row_to_copy(rows[0]) if rows else None

    def insert(self, copy: BookCopy) -> int:
        return self._insert(
            f"INSERT INTO book_copies ({_COPY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                copy.copy_id,
                copy.book_id,
                copy.barcode,
                copy.location,
                iso(copy.acquisition_date),
                str(copy.price),
                copy.status.value,
                copy.condition.value,
            ),
        )

    def update_details(self, copy: BookCopy) -> None:
        self._write(
            """
            UPDATE book_copies
            SET barcode = ?, location = ?, acquisition_date = ?, price = ?, copy_condition = ?
            WHERE copy_id = ?
            """,
            (
                copy.barcode,
                copy.location,
                iso(copy.acquisition_date),
                str(copy.price),
                copy.condition.value,
                copy.copy_id,
            ),
        )

    def list_by_book(self, book_id: int) -> list[BookCopy]:
        rows = self._read(
            f"SELECT {_COPY_COLUMNS} FROM book_copies WHERE book_id = ? ORDER BY copy_id",
            (book_id,),
        )
        return [self._row_to_copy(r) for r in rows]

    def compare_and_set_status(
        self,
        copy_id: int,
        expected: Collection[CopyStatus],
        new: CopyStatus,
        *,
        condition: Optional[CopyCondition] = None,
    ) -> bool:
        expected_values = [s.value for s in expected]
        if not expected_values:
            return False
        placeholders = ", ".join("?" for _ in expected_values)
        if condition is None:
            sql = f"UPDATE book_copies SET status = ? WHERE copy_id = ? AND status IN ({placeholders})"
            params: list[Any] = [new.value, copy_id, *expected_values]
        else:
            sql = (
                "UPDATE book_copies SET status = ?, copy_condition = ? "
                f"WHERE copy_id = ? AND status IN ({placeholders})"
            )
            params = [new.value, condition.value, copy_id, *expected_values]
        cur = self._write(sql, params)
        return cur.rowcount == 1
