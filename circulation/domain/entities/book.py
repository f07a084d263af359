from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..value_objects.enums import CopyCondition, CopyStatus
from ..value_objects.ids import BookId, CopyId


class Book(BaseModel):
    book_id: BookId | None = Field(default=None, description="Catalogue identifier")
    isbn: str = Field(..., min_length=1, description="ISBN-10 or ISBN-13")
    title: str = Field(..., min_length=1, description="Title as catalogued")

    model_config = ConfigDict(frozen=True)


class BookCopy(BaseModel):
    copy_id: CopyId | None = Field(default=None, description="Physical copy identifier")
    book_id: BookId = Field(..., description="Parent book")
    barcode: str | None = Field(default=None, description="Unique shelf barcode")
    location: str | None = Field(default=None, description="Floor / shelf")
    acquisition_date: date | None = None
    price: Decimal = Field(default=Decimal("0.00"), ge=0, description="Replacement price")
    status: CopyStatus = CopyStatus.AVAILABLE
    condition: CopyCondition = CopyCondition.GOOD

    model_config = ConfigDict(frozen=True)

    @field_validator("price", mode="before")
    @classmethod
    def _ensure_decimal(cls, v: Decimal | int | float | str) -> Decimal:
        if not isinstance(v, Decimal):
            v = Decimal(str(v))
        return v.quantize(Decimal("0.01"))

    @property
    def is_available(self) -> bool:
        return self.status == CopyStatus.AVAILABLE
