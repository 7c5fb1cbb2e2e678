from pydantic import BaseModel, Field
from typing import Optional, Annotated
from datetime import datetime
from decimal import Decimal
import enum

from ..models.payment import PaymentStatus
from .booking import BookingResponse


class PaymentIntentCreate(BaseModel):
    booking_id: int


class PaymentIntentResponse(BaseModel):
    client_secret: str
    provider_transaction_id: str
    amount: Decimal
    currency: str


class PaymentConfirm(BaseModel):
    provider_transaction_id: Annotated[str, Field(min_length=1)]


class RefundCreate(BaseModel):
    # Defaults to the full payment amount
    amount: Optional[Annotated[Decimal, Field(gt=0, max_digits=12, decimal_places=2)]] = None


class PaymentResponse(BaseModel):
    id: int
    booking_id: int
    customer_id: int
    artist_id: int
    amount: Decimal
    currency: str
    payment_method: str
    provider_transaction_id: str
    status: PaymentStatus
    commission_percent: float
    commission_amount: Decimal
    artist_payout_amount: Decimal
    released_to_artist: bool
    released_at: Optional[datetime] = None
    refunded_amount: Optional[Decimal] = None
    refund_id: Optional[str] = None
    refunded_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ConfirmationOutcome(str, enum.Enum):
    CONFIRMED = "confirmed"
    ALREADY_CONFIRMED = "already_confirmed"
    NOT_SUCCEEDED = "not_succeeded"
    REFUNDED = "refunded"


class PaymentConfirmationResponse(BaseModel):
    outcome: ConfirmationOutcome
    provider_status: Optional[str] = None
    payment: Optional[PaymentResponse] = None
    booking: Optional[BookingResponse] = None
