from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    Float,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    text,
)
from sqlalchemy.orm import relationship
import enum

from .base import BaseModel
from .types import CaseInsensitiveEnum


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    HELD = "held"
    SUCCEEDED = "succeeded"
    REFUNDED = "refunded"
    FAILED = "failed"


class Payment(BaseModel):
    """One escrow record per successful payment attempt on a booking.

    ``commission_amount + artist_payout_amount == amount`` is fixed when the
    row is created and never recomputed.
    """

    __tablename__ = "payments"
    __table_args__ = (
        # One live payment per booking; failed and refunded rows are history
        Index(
            "uq_payments_active_booking",
            "booking_id",
            unique=True,
            sqlite_where=text("status NOT IN ('failed', 'refunded')"),
            postgresql_where=text("status NOT IN ('failed', 'refunded')"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    artist_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="LKR")
    payment_method = Column(String, nullable=False, default="card")
    provider_transaction_id = Column(String, nullable=False, unique=True, index=True)

    status = Column(
        CaseInsensitiveEnum(PaymentStatus, name="paymentstatus"),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )
    commission_percent = Column(Float, nullable=False)
    commission_amount = Column(Numeric(12, 2), nullable=False)
    artist_payout_amount = Column(Numeric(12, 2), nullable=False)

    released_to_artist = Column(Boolean, nullable=False, default=False)
    released_at = Column(DateTime, nullable=True)
    refunded_amount = Column(Numeric(12, 2), nullable=True)
    refund_id = Column(String, nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    booking = relationship("Booking", foreign_keys=[booking_id])
