from pydantic import BaseModel, Field, field_validator
from typing import Optional, Annotated
from datetime import date, datetime
from decimal import Decimal

from ..models.booking_status import BookingStatus, BookingPaymentStatus
from ..utils.profile import parse_hhmm


class BookingCreate(BaseModel):
    artist_id: int
    service: Annotated[str, Field(min_length=1)]
    booking_date: date
    start_time: str
    duration: Annotated[float, Field(gt=0, le=24)]
    location: Annotated[str, Field(min_length=1)]
    total_amount: Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2)]
    notes: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def start_time_is_hhmm(cls, v: str) -> str:
        hours, minutes = parse_hhmm(v)
        return f"{hours:02d}:{minutes:02d}"

    @field_validator("service", "location")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class BookingDecision(BaseModel):
    reason: Optional[str] = None


class BookingResponse(BaseModel):
    id: int
    customer_id: int
    artist_id: int
    service: str
    booking_date: date
    start_time: str
    duration: float
    end_time: str
    location: str
    notes: Optional[str] = None
    total_amount: Decimal
    currency: str
    delivery_days: Optional[int] = None
    status: BookingStatus
    payment_status: BookingPaymentStatus
    decline_reason: Optional[str] = None
    payment_id: Optional[int] = None
    chat_id: Optional[int] = None
    review_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = {
        "from_attributes": True
    }
