from __future__ import annotations

from typing import Any, Optional

from circulation.domain.entities import Member
from circulation.domain.value_objects.enums import MemberStatus

from ..members import MembersRepo
from ._base import SqliteRepoBase, iso, to_date

_COLUMNS = (
    "member_id, first_name, last_name, email, membership_date, membership_expiry, "
    "status, total_borrowed"
)


class MembersRepoSqlite(SqliteRepoBase, MembersRepo):
    """SQLite implementation of :class:`MembersRepo`."""

    table = "members"

    def _ensure_schema(self) -> None:
        self._create(
            """
            CREATE TABLE IF NOT EXISTS members (
                member_id INTEGER PRIMARY KEY,
                first_name TEXT NOT NULL,
                last_name TEXT NOT NULL,
                email TEXT UNIQUE,
                membership_date TEXT NOT NULL,
                membership_expiry TEXT,
                status TEXT NOT NULL DEFAULT 'Active'
                    CHECK(status IN ('Active','Expired','Suspended','Cancelled')),
                total_borrowed INTEGER NOT NULL DEFAULT 0
            )
            """
        )

    @staticmethod
    def _row_to_member(r: tuple[Any, ...]) -> Member:
        return Member(
            member_id=r[0],
            first_name=r[1],
            last_name=r[2],
            email=r[3],
            membership_date=to_date(r[4]),
            membership_expiry=to_date(r[5]),
            status=MemberStatus(r[6]),
            total_borrowed=r[7],
        )

    def get_by_id(self, member_id: int) -> Optional[Member]:
        rows = self._read(f"SELECT {_COLUMNS} FROM members WHERE member_id = ?", (member_id,))
        return self._row_to_member(rows[0]) if rows else None

    def insert(self, member: Member) -> int:
        return self._insert(
            f"INSERT INTO members ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                member.member_id,
                member.first_name,
                member.last_name,
                member.email,
                iso(member.membership_date),
                iso(member.membership_expiry),
                member.status.value,
                member.total_borrowed,
            ),
        )

    def update(self, member: Member) -> None:
        self._write(
            """
            UPDATE members
            SET first_name = ?, last_name = ?, email = ?, membership_date = ?,
                membership_expiry = ?, status = ?
            WHERE member_id = ?
            """,
            (
                member.first_name,
                member.last_name,
                member.email,
                iso(member.membership_date),
                iso(member.membership_expiry),
                member.status.value,
                member.member_id,
            ),
        )

    def increment_borrowed(self, member_id: int) -> None:
        cur = self._write(
            "UPDATE members SET total_borrowed = total_borrowed + 1 WHERE member_id = ?",
            (member_id,),
        )
        if cur.rowcount != 1:
            raise KeyError(f"Unknown member_id {member_id}")

    def list_all(self, *, limit: int = 100, offset: int = 0) -> list[Member]:
        rows = self._read(
            f"SELECT {_COLUMNS} FROM members ORDER BY member_id LIMIT ? OFFSET ?", (limit, offset)
        )
        return [self._row_to_member(r) for r in rows]
