from sqlalchemy import Column, Integer, ForeignKey, DateTime

from .base import BaseModel


class ChatChannel(BaseModel):
    """Customer-artist conversation opened once a booking is paid.

    Keyed uniquely by booking so provisioning is a get-or-create.
    """

    __tablename__ = "chat_channels"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    artist_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    last_message_at = Column(DateTime, nullable=True)
