# backend/marketplace/models/booking.py

from sqlalchemy import Column, Integer, Date, Float, Numeric, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel
from .booking_status import BookingStatus, BookingPaymentStatus
from .types import CaseInsensitiveEnum


class Booking(BaseModel):
    __tablename__ = "bookings"

    id           = Column(Integer, primary_key=True, index=True)
    customer_id  = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    artist_id    = Column(Integer, ForeignKey("artist_profiles.user_id"), nullable=False, index=True)
    service      = Column(String, nullable=False)
    booking_date = Column(Date, nullable=False, index=True)
    start_time   = Column(String(5), nullable=False)   # HH:MM
    duration     = Column(Float, nullable=False)       # hours
    end_time     = Column(String(5), nullable=False)   # HH:MM, computed on create
    location     = Column(String, nullable=False)
    notes        = Column(Text, nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    currency     = Column(String(3), nullable=False, default="LKR")
    delivery_days = Column(Integer, nullable=True)     # snapshot of artist delivery time

    # status/payment_status are written only through conditional updates in
    # services.booking_lifecycle and services.payment_escrow
    status = Column(
        CaseInsensitiveEnum(BookingStatus, name="bookingstatus"),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_status = Column(
        CaseInsensitiveEnum(BookingPaymentStatus, name="bookingpaymentstatus"),
        default=BookingPaymentStatus.PENDING,
        nullable=False,
    )
    decline_reason = Column(Text, nullable=True)

    # Back-links written by the ledger, chat provisioning and reviews
    payment_id = Column(Integer, nullable=True, index=True)
    chat_id    = Column(Integer, nullable=True)
    review_id  = Column(Integer, nullable=True)

    # Relationships
    customer = relationship("User", foreign_keys=[customer_id])
    artist   = relationship("ArtistProfile", foreign_keys=[artist_id])
