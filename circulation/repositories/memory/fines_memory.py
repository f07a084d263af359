from __future__ import annotations

from typing import Optional

from circulation.domain.entities import Fine

from ..fines import FinesRepo
from ._store import MemoryStore


class FinesRepoMemory(FinesRepo):
    def __init__(self) -> None:
        self._store: MemoryStore[Fine] = MemoryStore("fine_id")

    def get_by_id(self, fine_id: int) -> Optional[Fine]:
        return self._store.get(fine_id)

    def insert(self, fine: Fine) -> int:
        return self._store.insert(fine)

    def update(self, fine: Fine) -> None:
        self._store.replace(fine)

    def list_by_loan(self, loan_id: int) -> list[Fine]:
        rows = [f for f in self._store.values() if f.loan_id == loan_id]
        return sorted(rows, key=lambda f: int(f.fine_id or 0))
