from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from circulation.domain.entities import Event, EventAttendance


class EventsRepo(ABC):
    """Repository interface for library events and their attendees."""

    @abstractmethod
    def get_by_id(self, event_id: int) -> Optional[Event]:
        """Return an event by identifier if present."""

    @abstractmethod
    def insert(self, event: Event) -> int:
        """Persist a new event and return the identifier."""

    @abstractmethod
    def add_attendee(self, attendance: EventAttendance) -> None:
        """Register a member for an event."""

    @abstractmethod
    def get_attendance(self, event_id: int, member_id: int) -> Optional[EventAttendance]:
        """Return the registration of a member for an event, if any."""

    @abstractmethod
    def update_attendance(self, attendance: EventAttendance) -> None:
        """Update an existing registration."""

    @abstractmethod
    def list_attendees(self, event_id: int) -> list[EventAttendance]:
        """List registrations for an event."""

    @abstractmethod
    def count_for_member(self, member_id: int) -> int:
        """Number of events the member is registered for."""
