from __future__ import annotations

from typing import Any, Optional

from circulation.domain.entities import Loan
from circulation.domain.value_objects.enums import LoanStatus

from ..loans import LoansRepo
from ._base import SqliteRepoBase, iso, to_date

_COLUMNS = (
    "loan_id, copy_id, member_id, staff_id, loan_date, due_date, return_date, status, "
    "renewal_count, notes"
)


class LoansRepoSqlite(SqliteRepoBase, LoansRepo):
    """SQLite implementation of :class:`LoansRepo`."""

    table = "loans"

    def _ensure_schema(self) -> None:
        self._create(
            """
            CREATE TABLE IF NOT EXISTS loans (
                loan_id INTEGER PRIMARY KEY,
                copy_id INTEGER NOT NULL,
                member_id INTEGER NOT NULL,
                staff_id INTEGER NOT NULL,
                loan_date TEXT NOT NULL,
                due_date TEXT NOT NULL,
                return_date TEXT,
                status TEXT NOT NULL DEFAULT 'Active'
                    CHECK(status IN ('Active','Returned','Overdue','Lost')),
                renewal_count INTEGER NOT NULL DEFAULT 0,
                notes TEXT,
                FOREIGN KEY (copy_id) REFERENCES book_copies(copy_id),
                FOREIGN KEY (member_id) REFERENCES members(member_id)
            )
            """,
            "CREATE INDEX IF NOT EXISTS ix_loans_copy ON loans(copy_id)",
            "CREATE INDEX IF NOT EXISTS ix_loans_member ON loans(member_id)",
        )

    @staticmethod
    def _row_to_loan(r: tuple[Any, ...]) -> Loan:
        return Loan(
            loan_id=r[0],
            copy_id=r[1],
            member_id=r[2],
            staff_id=r[3],
            loan_date=to_date(r[4]),
            due_date=to_date(r[5]),
            return_date=to_date(r[6]),
            status=LoanStatus(r[7]),
            renewal_count=r[8],
            notes=r[9],
        )

    def _params(self, loan: Loan) -> tuple[Any, ...]:
        return (
            loan.copy_id,
            loan.member_id,
            loan.staff_id,
            iso(loan.loan_date),
            iso(loan.due_date),
            iso(loan.return_date),
            loan.status.value,
            loan.renewal_count,
            loan.notes,
        )

    def get_by_id(self, loan_id: int) -> Optional[Loan]:
        rows = self._read(f"SELECT {_COLUMNS} FROM loans WHERE loan_id = ?", (loan_id,))
        return self._row_to_loan(rows[0]) if rows else None

    def insert(self, loan: Loan) -> int:
        return self._insert(
            f"INSERT INTO loans ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (loan.loan_id, *self._params(loan)),
        )

    def update(self, loan: Loan) -> None:
        self._write(
            """
            UPDATE loans
            SET copy_id = ?, member_id = ?, staff_id = ?, loan_date = ?, due_date = ?,
                return_date = ?, status = ?, renewal_count = ?, notes = ?
            WHERE loan_id = ?
            """,
            (*self._params(loan), loan.loan_id),
        )

    def find_open_by_copy(self, copy_id: int) -> Optional[Loan]:
        rows = self._read(
            f"""
            SELECT {_COLUMNS} FROM loans
            WHERE copy_id = ? AND status IN ('Active', 'Overdue')
            ORDER BY loan_id DESC LIMIT 1
            """,
            (copy_id,),
        )
        return self._row_to_loan(rows[0]) if rows else None

    def list_by_member(self, member_id: int) -> list[Loan]:
        rows = self._read(
            f"SELECT {_COLUMNS} FROM loans WHERE member_id = ? ORDER BY loan_id", (member_id,)
        )
        return [self._row_to_loan(r) for r in rows]

    def list_open(self) -> list[Loan]:
        rows = self._read(
            f"SELECT {_COLUMNS} FROM loans WHERE status IN ('Active', 'Overdue') ORDER BY loan_id"
        )
        return [self._row_to_loan(r) for r in rows]
