"""Artist rating maintenance and the review operations that drive it.

An artist's ``rating`` and ``total_reviews`` are always a full recompute over
their visible reviews (0 and 0 when there are none); nothing else writes
those columns.
"""

import logging
from typing import List, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..crud.crud_artist import artist as crud_artist
from ..crud.crud_booking import booking as crud_booking
from ..crud.crud_review import review as crud_review
from ..models import BookingStatus, NotificationType, RecipientKind, RelatedKind
from ..schemas.review import ReviewCreate, ReviewUpdate
from ..utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ..utils.notifications import notify

logger = logging.getLogger(__name__)


def recompute_artist_rating(db: Session, artist_id: int) -> Tuple[float, int]:
    """Refresh the artist's rating fields in the current transaction."""
    mean, count = crud_review.visible_stats(db, artist_id)
    rating = float(mean) if count else 0.0
    db.query(models.ArtistProfile).filter(models.ArtistProfile.user_id == artist_id).update(
        {
            models.ArtistProfile.rating: rating,
            models.ArtistProfile.total_reviews: count,
        },
        synchronize_session=False,
    )
    logger.debug("Artist %s rating=%s over %s reviews", artist_id, rating, count)
    return rating, count


# Review events all collapse to a full recompute
on_review_created = recompute_artist_rating
on_review_updated = recompute_artist_rating
on_review_deleted = recompute_artist_rating


def _get_review_or_404(db: Session, review_id: int) -> models.Review:
    review = crud_review.get_review(db, review_id)
    if not review:
        raise NotFoundError("Review not found")
    return review


def create_review(
    db: Session, booking_id: int, customer: models.User, data: ReviewCreate
) -> models.Review:
    if not 1 <= int(data.rating) <= 5:
        raise BadRequestError("Rating must be between 1 and 5")
    booking = crud_booking.get_booking(db, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    if booking.customer_id != customer.id:
        raise ForbiddenError("You can only review your own bookings")
    if booking.status != BookingStatus.COMPLETED:
        raise BadRequestError("Booking must be completed to leave a review")
    if crud_review.get_review_by_booking(db, booking_id):
        raise ConflictError("Review already submitted for this booking")

    review = models.Review(
        booking_id=booking.id,
        customer_id=customer.id,
        artist_id=booking.artist_id,
        rating=data.rating,
        comment=data.comment,
        is_visible=True,
    )
    db.add(review)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Review already submitted for this booking")
    crud_booking.set_fields(db, booking.id, {models.Booking.review_id: review.id})
    on_review_created(db, booking.artist_id)
    db.commit()
    db.refresh(review)
    logger.info("Review %s created for booking %s", review.id, booking.id)

    notify(
        db,
        booking.artist_id,
        RecipientKind.ARTIST,
        NotificationType.REVIEW_RECEIVED,
        "New review",
        f"You received a {review.rating}-star review for booking #{booking.id}.",
        related_id=review.id,
        related_kind=RelatedKind.REVIEW,
    )
    return review


def update_review(
    db: Session, review_id: int, customer: models.User, data: ReviewUpdate
) -> models.Review:
    review = _get_review_or_404(db, review_id)
    if review.customer_id != customer.id:
        raise ForbiddenError("You can only edit your own reviews")
    changes = data.model_dump(exclude_unset=True)
    if "rating" in changes:
        if changes["rating"] is None or not 1 <= int(changes["rating"]) <= 5:
            raise BadRequestError("Rating must be between 1 and 5")
        review.rating = changes["rating"]
    if "comment" in changes:
        review.comment = changes["comment"]
    db.flush()
    on_review_updated(db, review.artist_id)
    db.commit()
    db.refresh(review)
    return review


def delete_review(db: Session, review_id: int, actor: models.User) -> None:
    review = _get_review_or_404(db, review_id)
    if not actor.is_admin and review.customer_id != actor.id:
        raise ForbiddenError("You can only delete your own reviews")
    artist_id = review.artist_id
    crud_booking.set_fields(db, review.booking_id, {models.Booking.review_id: None})
    db.delete(review)
    db.flush()
    on_review_deleted(db, artist_id)
    db.commit()
    logger.info("Review %s deleted by user %s", review_id, actor.id)


def set_review_visibility(
    db: Session, review_id: int, admin: models.User, visible: bool
) -> models.Review:
    if not admin.is_admin:
        raise ForbiddenError("Only admins can moderate reviews")
    review = _get_review_or_404(db, review_id)
    review.is_visible = bool(visible)
    db.flush()
    on_review_updated(db, review.artist_id)
    db.commit()
    db.refresh(review)
    return review


def get_review(db: Session, review_id: int) -> models.Review:
    """Public read of one review. Hidden reviews read as missing."""
    review = _get_review_or_404(db, review_id)
    if not review.is_visible:
        raise NotFoundError("Review not found")
    return review


def list_reviews_for_artist(
    db: Session, artist_id: int, skip: int = 0, limit: int = 100
) -> List[models.Review]:
    if not crud_artist.get_profile(db, artist_id):
        raise NotFoundError("Artist not found")
    return crud_review.get_visible_reviews_by_artist(db, artist_id, skip=skip, limit=limit)
