from __future__ import annotations

from datetime import date, datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..value_objects.enums import ReservationStatus
from ..value_objects.ids import BookId, CopyId, LoanId, MemberId, ReservationId


class Reservation(BaseModel):
    reservation_id: ReservationId | None = Field(default=None, description="Reservation id")
    book_id: BookId
    member_id: MemberId
    reservation_date: datetime = Field(..., description="When the member joined the queue (UTC)")
    expiry_date: date = Field(..., description="Last day the reservation (or hold) is valid")
    status: ReservationStatus = ReservationStatus.PENDING
    held_copy_id: CopyId | None = Field(
        default=None, description="Copy held on the shelf once the reservation is fulfilled"
    )
    loan_id: LoanId | None = Field(default=None, description="Loan created when picked up")

    model_config = ConfigDict(frozen=True)

    @field_validator("reservation_date", mode="before")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            raise ValueError("reservation_date must be timezone-aware")
        return v.astimezone(timezone.utc)

    @model_validator(mode="after")
    def _held_copy_requires_fulfilled(self) -> "Reservation":
        if self.held_copy_id is not None and self.status == ReservationStatus.PENDING:
            raise ValueError("A pending reservation cannot hold a copy")
        return self

    @property
    def awaiting_pickup(self) -> bool:
        return (
            self.status == ReservationStatus.FULFILLED
            and self.held_copy_id is not None
            and self.loan_id is None
        )

    def queue_key(self) -> tuple[datetime, int]:
        """FIFO ordering key: reservation time, ties broken by insertion id."""
        return (self.reservation_date, int(self.reservation_id or 0))

    def is_stale(self, today: date) -> bool:
        if self.status == ReservationStatus.PENDING:
            return self.expiry_date < today
        return self.awaiting_pickup and self.expiry_date < today
