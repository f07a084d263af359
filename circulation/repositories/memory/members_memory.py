from __future__ import annotations

from typing import Optional

from circulation.domain.entities import Member

from ..members import MembersRepo
from ._store import MemoryStore


class MembersRepoMemory(MembersRepo):
    def __init__(self) -> None:
        self._store: MemoryStore[Member] = MemoryStore("member_id")

    def get_by_id(self, member_id: int) -> Optional[Member]:
        return self._store.get(member_id)

    def insert(self, member: Member) -> int:
        return self._store.insert(member)

    def update(self, member: Member) -> None:
        with self._store.lock:
            current = self._store.get(int(member.member_id or 0))
            if current is None:
                raise KeyError(f"Unknown member_id {member.member_id}")
            self._store.replace(member.model_copy(update={"total_borrowed": current.total_borrowed}))

    def increment_borrowed(self, member_id: int) -> None:
        with self._store.lock:
            current = self._store.get(member_id)
            if current is None:
                raise KeyError(f"Unknown member_id {member_id}")
            self._store.replace(
                current.model_copy(update={"total_borrowed": current.total_borrowed + 1})
            )

    def list_all(self, *, limit: int = 100, offset: int = 0) -> list[Member]:
        rows = sorted(self._store.values(), key=lambda m: int(m.member_id or 0))
        return rows[offset : offset + limit]
