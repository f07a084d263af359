from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..value_objects.enums import MemberStatus
from ..value_objects.ids import MemberId


class Member(BaseModel):
    member_id: MemberId | None = Field(default=None, description="Member identifier")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str | None = None
    membership_date: date = Field(..., description="Date the membership started")
    membership_expiry: date | None = Field(
        default=None, description="Last day the membership is valid; None never expires"
    )
    status: MemberStatus = MemberStatus.ACTIVE
    total_borrowed: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _expiry_after_start(self) -> "Member":
        if self.membership_expiry is not None and self.membership_expiry < self.membership_date:
            raise ValueError("membership_expiry must not precede membership_date")
        return self

    def membership_valid_on(self, today: date) -> bool:
        if self.status != MemberStatus.ACTIVE:
            return False
        return self.membership_expiry is None or self.membership_expiry >= today

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
