from __future__ import annotations

from datetime import date, datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..value_objects.ids import EventId, MemberId, StaffId


class Event(BaseModel):
    event_id: EventId | None = None
    title: str = Field(..., min_length=1)
    event_date: date
    location: str | None = None
    max_attendees: int | None = Field(default=None, gt=0)
    organizer_id: StaffId | None = None

    model_config = ConfigDict(frozen=True)


class EventAttendance(BaseModel):
    event_id: EventId
    member_id: MemberId
    registration_date: datetime
    attended: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("registration_date", mode="before")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("registration_date must be timezone-aware")
        return v.astimezone(timezone.utc)
