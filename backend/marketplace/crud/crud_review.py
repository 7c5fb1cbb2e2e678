from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple

from .. import models


class CRUDReview:
    def get_review(self, db: Session, review_id: int) -> Optional[models.Review]:
        return db.query(models.Review).filter(models.Review.id == review_id).first()

    def get_review_by_booking(self, db: Session, booking_id: int) -> Optional[models.Review]:
        # A booking has at most one review
        return db.query(models.Review).filter(models.Review.booking_id == booking_id).first()

    def get_visible_reviews_by_artist(
        self, db: Session, artist_id: int, skip: int = 0, limit: int = 100
    ) -> List[models.Review]:
        return (
            db.query(models.Review)
            .filter(models.Review.artist_id == artist_id, models.Review.is_visible.is_(True))
            .order_by(models.Review.created_at.desc(), models.Review.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def visible_stats(self, db: Session, artist_id: int) -> Tuple[Optional[float], int]:
        """Return ``(mean rating, count)`` over the artist's visible reviews."""
        avg, count = (
            db.query(func.avg(models.Review.rating), func.count(models.Review.id))
            .filter(models.Review.artist_id == artist_id, models.Review.is_visible.is_(True))
            .one()
        )
        return (float(avg) if avg is not None else None), int(count or 0)


review = CRUDReview()
