from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session
from typing import List

from ..database import get_db
from ..models import User
from ..schemas import Envelope, ReviewCreate, ReviewResponse, ReviewUpdate, ok
from ..services import rating_aggregator
from .dependencies import get_current_active_user, get_current_customer

router = APIRouter(tags=["reviews"])


@router.post(
    "/bookings/{booking_id}/reviews",
    response_model=Envelope[ReviewResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_review_for_booking(
    *,
    db: Session = Depends(get_db),
    booking_id: int = Path(..., title="The ID of the booking to review"),
    review_in: ReviewCreate,
    current_customer: User = Depends(get_current_customer),
):
    """
    Create a review for a specific booking.
    Only the customer who made the booking can review it, and only if it's completed.
    """
    review = rating_aggregator.create_review(db, booking_id, current_customer, review_in)
    return ok(review, "Review submitted")


@router.get("/reviews/{review_id}", response_model=Envelope[ReviewResponse])
def read_review(review_id: int, db: Session = Depends(get_db)):
    return ok(rating_aggregator.get_review(db, review_id))


@router.patch("/reviews/{review_id}", response_model=Envelope[ReviewResponse])
def update_review(
    review_id: int,
    review_in: ReviewUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return ok(rating_aggregator.update_review(db, review_id, current_user, review_in))


@router.delete("/reviews/{review_id}")
def delete_review(
    review_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    rating_aggregator.delete_review(db, review_id, current_user)
    return ok(None, "Review deleted")


@router.get("/artists/{artist_id}/reviews", response_model=Envelope[List[ReviewResponse]])
def list_artist_reviews(
    artist_id: int,
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
):
    """Visible reviews for an artist, newest first."""
    return ok(rating_aggregator.list_reviews_for_artist(db, artist_id, skip=skip, limit=limit))
