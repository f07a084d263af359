from __future__ import annotations

import logging

from circulation.domain.entities import Event, EventAttendance
from circulation.domain.errors import InvalidStateError, NotFoundError
from circulation.domain.value_objects.ids import EventId, MemberId
from circulation.infrastructure.clock import Clock, utc_now
from circulation.infrastructure.keyed_lock import KeyedLock
from circulation.repositories.events import EventsRepo
from circulation.repositories.members import MembersRepo

logger = logging.getLogger(__name__)


class EventsService:
    """Library events and attendee registration."""

    def __init__(
        self, events: EventsRepo, members: MembersRepo, *, clock: Clock = utc_now
    ) -> None:
        self._events = events
        self._members = members
        self._clock = clock
        self._event_locks: KeyedLock[int] = KeyedLock()

    def get(self, event_id: int) -> Event:
        event = self._events.get_by_id(event_id)
        if event is None:
            raise NotFoundError("Event", event_id)
        return event

    def create_event(self, event: Event) -> Event:
        event_id = self._events.insert(event)
        logger.info("Event created", extra={"event_id": event_id, "title": event.title})
        return event.model_copy(update={"event_id": EventId(event_id)})

    def register(self, event_id: int, member_id: int) -> EventAttendance:
        """Register a member; full events and repeat registrations are rejected."""
        if self._members.get_by_id(member_id) is None:
            raise NotFoundError("Member", member_id)
        with self._event_locks.hold(event_id):
            event = self.get(event_id)
            if self._events.get_attendance(event_id, member_id) is not None:
                raise InvalidStateError(
                    f"Member {member_id} is already registered for event {event_id}"
                )
            if (
                event.max_attendees is not None
                and len(self._events.list_attendees(event_id)) >= event.max_attendees
            ):
                raise InvalidStateError(f"Event {event_id} is full")
            attendance = EventAttendance(
                event_id=EventId(event_id),
                member_id=MemberId(member_id),
                registration_date=self._clock(),
            )
            self._events.add_attendee(attendance)
        logger.info("Event registration", extra={"event_id": event_id, "member_id": member_id})
        return attendance

    def mark_attended(self, event_id: int, member_id: int) -> EventAttendance:
        attendance = self._events.get_attendance(event_id, member_id)
        if attendance is None:
            raise NotFoundError("Registration", member_id)
        if attendance.attended:
            return attendance
        attended = attendance.model_copy(update={"attended": True})
        self._events.update_attendance(attended)
        return attended

    def attendees(self, event_id: int) -> list[EventAttendance]:
        self.get(event_id)
        return self._events.list_attendees(event_id)
