from __future__ import annotations

from typing import Any, Optional

from circulation.domain.entities import Fine
from circulation.domain.value_objects.enums import FineKind, FineStatus

from ..fines import FinesRepo
from ._base import SqliteRepoBase, iso, to_date

_COLUMNS = (
    "fine_id, loan_id, amount, currency, kind, reason, issue_date, payment_date, status, "
    "waived_by"
)


class FinesRepoSqlite(SqliteRepoBase, FinesRepo):
    """SQLite implementation of :class:`FinesRepo`. Amounts are stored as decimal text."""

    table = "fines"

    def _ensure_schema(self) -> None:
        self._create(
            """
            CREATE TABLE IF NOT EXISTS fines (
                fine_id INTEGER PRIMARY KEY,
                loan_id INTEGER NOT NULL,
                amount TEXT NOT NULL,
                currency TEXT NOT NULL DEFAULT 'USD',
                kind TEXT NOT NULL CHECK(kind IN ('Overdue','Loss')),
                reason TEXT,
                issue_date TEXT NOT NULL,
                payment_date TEXT,
                status TEXT NOT NULL DEFAULT 'Pending'
                    CHECK(status IN ('Pending','Paid','Waived')),
                waived_by INTEGER,
                FOREIGN KEY (loan_id) REFERENCES loans(loan_id)
            )
            """,
            "CREATE INDEX IF NOT EXISTS ix_fines_loan ON fines(loan_id)",
        )

    @staticmethod
    def _row_to_fine(r: tuple[Any, ...]) -> Fine:
        return Fine(
            fine_id=r[0],
            loan_id=r[1],
            amount=r[2],
            currency=r[3],
            kind=FineKind(r[4]),
            reason=r[5] or "",
            issue_date=to_date(r[6]),
            payment_date=to_date(r[7]),
            status=FineStatus(r[8]),
            waived_by=r[9],
        )

    def _params(self, fine: Fine) -> tuple[Any, ...]:
        return (
            fine.loan_id,
            str(fine.amount),
            fine.currency,
            fine.kind.value,
            fine.reason,
            iso(fine.issue_date),
            iso(fine.payment_date),
            fine.status.value,
            fine.waived_by,
        )

    def get_by_id(self, fine_id: int) -> Optional[Fine]:
        rows = self._read(f"SELECT {_COLUMNS} FROM fines WHERE fine_id = ?", (fine_id,))
        return self._row_to_fine(rows[0]) if rows else None

    def insert(self, fine: Fine) -> int:
        return self._insert(
            f"INSERT INTO fines ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (fine.fine_id, *self._params(fine)),
        )

    def update(self, fine: Fine) -> None:
        self._write(
            """
            UPDATE fines
            SET loan_id = ?, amount = ?, currency = ?, kind = ?, reason = ?, issue_date = ?,
                payment_date = ?, status = ?, waived_by = ?
            WHERE fine_id = ?
            """,
            (*self._params(fine), fine.fine_id),
        )

    def list_by_loan(self, loan_id: int) -> list[Fine]:
        rows = self._read(
            f"SELECT {_COLUMNS} FROM fines WHERE loan_id = ? ORDER BY fine_id", (loan_id,)
        )
        return [self._row_to_fine(r) for r in rows]
