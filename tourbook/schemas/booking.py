from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class AdditionalServiceLine(BaseModel):
    id: int
    quantity: int = Field(default=1, ge=1)
    name: Optional[str] = None


class BookingExtras(BaseModel):
    """Structured data carried inside a booking's free-text ``notes`` column."""

    additional_services: List[AdditionalServiceLine] = []
    coupon_code: Optional[str] = None
    complementary_service_ids: List[int] = []
    complementary_service_names: List[str] = []  # display cache
    start_time: Optional[str] = Field(default=None, pattern=r"^\d{1,2}:\d{2}$")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    cancel_reason_customer: Optional[str] = None
    cancel_reason_host: Optional[str] = None
    cancel_by: Optional[str] = None
    cancel_time: Optional[str] = None
    final_amount_override: Optional[int] = None
    free_text: str = ""

    @field_validator(
        "coupon_code", "start_time", "cancel_reason_customer", "cancel_reason_host",
        "cancel_by", "cancel_time", mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("complementary_service_ids", mode="after")
    @classmethod
    def dedupe_ids(cls, v: List[int]) -> List[int]:
        return list(dict.fromkeys(v))


class AddOnSelection(BaseModel):
    id: int
    quantity: int = 1


class BookingCreate(BaseModel):
    serviceOfferingId: int
    quantity: int = 1
    additionalServices: List[AddOnSelection] = []
    complementaryServiceIds: List[int] = []
    couponCode: Optional[str] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    startTime: Optional[str] = Field(default=None, pattern=r"^\d{1,2}:\d{2}$")
    notes: str = ""


class ReasonIn(BaseModel):
    reason: str = ""


class NotesIn(BaseModel):
    notes: str = ""


class NotesOut(BaseModel):
    notes: str


class BookingOut(BaseModel):
    id: str
    bookingNumber: str
    customerId: str
    serviceOfferingId: int
    quantity: int
    unitPrice: int
    totalAmount: int
    status: str
    statusLabel: str
    notes: str = ""
    extras: BookingExtras
    bookingDate: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None
