from __future__ import annotations

import threading
from typing import Dict, Optional, Tuple

from circulation.domain.entities import Event, EventAttendance

from ..events import EventsRepo
from ._store import MemoryStore


class EventsRepoMemory(EventsRepo):
    def __init__(self) -> None:
        self._store: MemoryStore[Event] = MemoryStore("event_id")
        self._lock = threading.RLock()
        self._attendance: Dict[Tuple[int, int], EventAttendance] = {}

    def get_by_id(self, event_id: int) -> Optional[Event]:
        return self._store.get(event_id)

    def insert(self, event: Event) -> int:
        return self._store.insert(event)

    def add_attendee(self, attendance: EventAttendance) -> None:
        key = (int(attendance.event_id), int(attendance.member_id))
        with self._lock:
            if key in self._attendance:
                raise KeyError(f"Member {key[1]} already registered for event {key[0]}")
            self._attendance[key] = attendance

    def get_attendance(self, event_id: int, member_id: int) -> Optional[EventAttendance]:
        with self._lock:
            return self._attendance.get((int(event_id), int(member_id)))

    def update_attendance(self, attendance: EventAttendance) -> None:
        key = (int(attendance.event_id), int(attendance.member_id))
        with self._lock:
            if key not in self._attendance:
                raise KeyError(f"No registration for {key}")
            self._attendance[key] = attendance

    def list_attendees(self, event_id: int) -> list[EventAttendance]:
        with self._lock:
            rows = [a for (eid, _), a in self._attendance.items() if eid == event_id]
        return sorted(rows, key=lambda a: (a.registration_date, int(a.member_id)))

    def count_for_member(self, member_id: int) -> int:
        with self._lock:
            return sum(1 for (_, mid) in self._attendance if mid == member_id)
