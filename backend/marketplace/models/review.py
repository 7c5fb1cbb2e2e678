from sqlalchemy import Boolean, Column, Integer, Text, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel


class Review(BaseModel):
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Exactly one review per booking
    booking_id  = Column(Integer, ForeignKey("bookings.id"), nullable=False, unique=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    artist_id   = Column(Integer, ForeignKey("artist_profiles.user_id"), nullable=False, index=True)

    rating      = Column(Integer, nullable=False)
    comment     = Column(Text, nullable=True)
    # Hidden reviews are excluded from the artist rating
    is_visible  = Column(Boolean, nullable=False, default=True)

    # Relationships
    #   Each Review is attached to exactly one Booking
    booking = relationship("Booking", foreign_keys=[booking_id])
    customer = relationship("User", foreign_keys=[customer_id])
