from __future__ import annotations

from typing import Optional

from circulation.domain.entities import Loan

from ..loans import LoansRepo
from ._store import MemoryStore


class LoansRepoMemory(LoansRepo):
    def __init__(self) -> None:
        self._store: MemoryStore[Loan] = MemoryStore("loan_id")

    def get_by_id(self, loan_id: int) -> Optional[Loan]:
        return self._store.get(loan_id)

    def insert(self, loan: Loan) -> int:
        return self._store.insert(loan)

    def update(self, loan: Loan) -> None:
        self._store.replace(loan)

    def find_open_by_copy(self, copy_id: int) -> Optional[Loan]:
        for loan in self._store.values():
            if loan.copy_id == copy_id and loan.is_open:
                return loan
        return None

    def list_by_member(self, member_id: int) -> list[Loan]:
        rows = [loan for loan in self._store.values() if loan.member_id == member_id]
        return sorted(rows, key=lambda loan: int(loan.loan_id or 0))

    def list_open(self) -> list[Loan]:
        rows = [loan for loan in self._store.values() if loan.is_open]
        return sorted(rows, key=lambda loan: int(loan.loan_id or 0))
