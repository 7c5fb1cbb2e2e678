from pydantic import BaseModel, EmailStr, Field
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
from decimal import Decimal

from ..models.artist_profile import ArtistStatus, SubscriptionStatus
from ..models.category import ArtistType
from ..models.pending_artist import ApplicationStatus


class ArtistApplicationCreate(BaseModel):
    """Registration payload for a prospective artist.

    ``category`` accepts a category id or its name (case-insensitive).
    ``skills``, ``hourly_rate`` and ``availability`` are accepted loosely and
    normalized before the application is stored.
    """

    email: EmailStr
    password: str = Field(min_length=6)
    name: str = ""
    phone: Optional[str] = None
    category: Union[int, str]
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    skills: Union[List[str], str, None] = None
    hourly_rate: Any = None
    pricing: Optional[Dict[str, Any]] = None
    delivery_time: Optional[int] = Field(default=None, ge=0)
    availability: Any = None


class ArtistApplicationResponse(BaseModel):
    id: int
    name: str
    email: EmailStr
    phone: Optional[str] = None
    category_id: int
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    hourly_rate: Decimal
    pricing: Optional[Dict[str, Any]] = None
    delivery_time: Optional[int] = None
    availability: Optional[Dict[str, Any]] = None
    status: ApplicationStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class ApplicationDecision(BaseModel):
    reason: Optional[str] = None


class ArtistProfileResponse(BaseModel):
    user_id: int
    category_id: Optional[int] = None
    artist_type: ArtistType
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    skills: Optional[List[str]] = None
    hourly_rate: Decimal
    pricing: Optional[Dict[str, Any]] = None
    delivery_time: Optional[int] = None
    availability: Optional[Dict[str, Any]] = None
    rating: float
    total_reviews: int
    status: ArtistStatus
    status_reason: Optional[str] = None
    subscription_status: SubscriptionStatus
    verified_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ArtistStatusUpdate(BaseModel):
    status: ArtistStatus
    reason: Optional[str] = None
