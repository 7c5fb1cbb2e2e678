# backend/marketplace/models/artist_profile.py

from sqlalchemy import (
    Column,
    String,
    Text,
    Numeric,
    ForeignKey,
    JSON,
    Integer,
    Float,
    DateTime,
)
from sqlalchemy.orm import relationship
import enum

from .base import BaseModel
from .category import ArtistType
from .types import CaseInsensitiveEnum


class ArtistStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ArtistProfile(BaseModel):
    """Bookable artist identity created when an application is approved."""

    __tablename__ = "artist_profiles"

    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        unique=True,
        nullable=False,
        index=True,
    )
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    artist_type = Column(
        CaseInsensitiveEnum(ArtistType, name="artisttype"),
        nullable=False,
        default=ArtistType.REMOTE,
    )
    bio = Column(Text, nullable=True)
    profile_image = Column(String, nullable=True)
    skills = Column(JSON, nullable=True)
    hourly_rate = Column(Numeric(10, 2), nullable=False, default=0)
    # {"amount": 2500, "unit": "hour", "currency": "LKR"}
    pricing = Column(JSON, nullable=True)
    # Days to deliver remote work; snapshotted onto each booking
    delivery_time = Column(Integer, nullable=True)
    availability = Column(JSON, nullable=True)

    # Owned by the rating aggregator; never written from elsewhere
    rating = Column(Float, nullable=False, default=0.0)
    total_reviews = Column(Integer, nullable=False, default=0)

    status = Column(
        CaseInsensitiveEnum(ArtistStatus, name="artiststatus"),
        nullable=False,
        default=ArtistStatus.APPROVED,
        index=True,
    )
    status_reason = Column(Text, nullable=True)
    verified_at = Column(DateTime, nullable=True)
    subscription_status = Column(
        CaseInsensitiveEnum(SubscriptionStatus, name="subscriptionstatus"),
        nullable=False,
        default=SubscriptionStatus.ACTIVE,
    )

    # Relationships
    user = relationship("User", back_populates="artist_profile")
    category = relationship("Category", back_populates="artists")
