from pydantic import BaseModel, Field
from typing import Optional, Annotated
from datetime import datetime


class ReviewBase(BaseModel):
    rating: Annotated[int, Field(ge=1, le=5)]
    comment: Optional[str] = None


class ReviewCreate(ReviewBase):
    """Customer → artist review payload (booking-bound)."""
    pass


class ReviewUpdate(BaseModel):
    rating: Optional[Annotated[int, Field(ge=1, le=5)]] = None
    comment: Optional[str] = None


class ReviewVisibility(BaseModel):
    is_visible: bool


class ReviewResponse(ReviewBase):
    id: int
    booking_id: int
    customer_id: int
    artist_id: int
    is_visible: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
