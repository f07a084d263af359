from __future__ import annotations

from typing import Any, Optional

from circulation.domain.entities import Event, EventAttendance

from ..events import EventsRepo
from ._base import SqliteRepoBase, iso, to_date, to_datetime


class EventsRepoSqlite(SqliteRepoBase, EventsRepo):
    """SQLite implementation of :class:`EventsRepo`."""

    table = "events"

    def _ensure_schema(self) -> None:
        self._create(
            """
            CREATE TABLE IF NOT EXISTS events (
                event_id INTEGER PRIMARY KEY,
                title TEXT NOT NULL,
                event_date TEXT NOT NULL,
                location TEXT,
                max_attendees INTEGER,
                organizer_id INTEGER
            )
            """
        )
        self._create(
            """
            CREATE TABLE IF NOT EXISTS event_attendees (
                event_id INTEGER NOT NULL,
                member_id INTEGER NOT NULL,
                registration_date TEXT NOT NULL,
                attended INTEGER NOT NULL DEFAULT 0 CHECK(attended IN (0,1)),
                PRIMARY KEY (event_id, member_id),
                FOREIGN KEY (event_id) REFERENCES events(event_id)
            )
            """
        )

    def get_by_id(self, event_id: int) -> Optional[Event]:
        rows = self._read(
            """
            SELECT event_id, title, event_date, location, max_attendees, organizer_id
            FROM events WHERE event_id = ?
            """,
            (event_id,),
        )
        if rows:
            r = rows[0]
            return Event(
                event_id=r[0],
                title=r[1],
                event_date=to_date(r[2]),
                location=r[3],
                max_attendees=r[4],
                organizer_id=r[5],
            )
        return None

    def insert(self, event: Event) -> int:
        return self._insert(
            """
            INSERT INTO events (event_id, title, event_date, location, max_attendees, organizer_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                event.event_id,
                event.title,
                iso(event.event_date),
                event.location,
                event.max_attendees,
                event.organizer_id,
            ),
        )

    @staticmethod
    def _row_to_attendance(r: tuple[Any, ...]) -> EventAttendance:
        return EventAttendance(
            event_id=r[0],
            member_id=r[1],
            registration_date=to_datetime(r[2]),
            attended=bool(r[3]),
        )

    def add_attendee(self, attendance: EventAttendance) -> None:
        self._write(
            """
            INSERT INTO event_attendees (event_id, member_id, registration_date, attended)
            VALUES (?, ?, ?, ?)
            """,
            (
                attendance.event_id,
                attendance.member_id,
                attendance.registration_date.isoformat(),
                int(attendance.attended),
            ),
        )

    def get_attendance(self, event_id: int, member_id: int) -> Optional[EventAttendance]:
        rows = self._read(
            """
            SELECT event_id, member_id, registration_date, attended
            FROM event_attendees WHERE event_id = ? AND member_id = ?
            """,
            (event_id, member_id),
        )
        return self._row_to_attendance(rows[0]) if rows else None

    def update_attendance(self, attendance: EventAttendance) -> None:
        self._write(
            "UPDATE event_attendees SET attended = ? WHERE event_id = ? AND member_id = ?",
            (int(attendance.attended), attendance.event_id, attendance.member_id),
        )

    def list_attendees(self, event_id: int) -> list[EventAttendance]:
        rows = self._read(
            """
            SELECT event_id, member_id, registration_date, attended
            FROM event_attendees WHERE event_id = ? ORDER BY registration_date, member_id
            """,
            (event_id,),
        )
        return [self._row_to_attendance(r) for r in rows]

    def count_for_member(self, member_id: int) -> int:
        rows = self._read(
            "SELECT COUNT(*) FROM event_attendees WHERE member_id = ?", (member_id,)
        )
        return int(rows[0][0]) if rows else 0
