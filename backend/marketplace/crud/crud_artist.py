from sqlalchemy import func
from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models


class CRUDArtist:
    # Categories

    def get_category(self, db: Session, category_id: int) -> Optional[models.Category]:
        return db.query(models.Category).filter(models.Category.id == category_id).first()

    def get_category_by_name(self, db: Session, name: str) -> Optional[models.Category]:
        return (
            db.query(models.Category)
            .filter(func.lower(models.Category.name) == (name or "").strip().lower())
            .first()
        )

    def list_active_categories(self, db: Session) -> List[models.Category]:
        return (
            db.query(models.Category)
            .filter(models.Category.is_active.is_(True))
            .order_by(models.Category.name)
            .all()
        )

    # Profiles

    def get_profile(self, db: Session, user_id: int) -> Optional[models.ArtistProfile]:
        return (
            db.query(models.ArtistProfile)
            .filter(models.ArtistProfile.user_id == user_id)
            .first()
        )

    def set_profile_status(
        self,
        db: Session,
        user_id: int,
        status: models.ArtistStatus,
        reason: Optional[str] = None,
    ) -> bool:
        matched = (
            db.query(models.ArtistProfile)
            .filter(models.ArtistProfile.user_id == user_id)
            .update(
                {
                    models.ArtistProfile.status: status,
                    models.ArtistProfile.status_reason: reason,
                },
                synchronize_session=False,
            )
        )
        return matched == 1

    # Pending applications

    def get_application(self, db: Session, application_id: int) -> Optional[models.PendingArtist]:
        return (
            db.query(models.PendingArtist)
            .filter(models.PendingArtist.id == application_id)
            .first()
        )

    def get_application_by_email(self, db: Session, email: str) -> Optional[models.PendingArtist]:
        return db.query(models.PendingArtist).filter(models.PendingArtist.email == email).first()

    def list_applications(
        self,
        db: Session,
        status: Optional[models.ApplicationStatus] = models.ApplicationStatus.PENDING,
        skip: int = 0,
        limit: int = 100,
    ) -> List[models.PendingArtist]:
        query = db.query(models.PendingArtist)
        if status is not None:
            query = query.filter(models.PendingArtist.status == status)
        return (
            query.order_by(models.PendingArtist.created_at.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def compare_and_set_application_status(
        self,
        db: Session,
        application_id: int,
        expected: models.ApplicationStatus,
        new: models.ApplicationStatus,
    ) -> bool:
        """Move an application from ``expected`` to ``new``. Caller commits."""
        matched = (
            db.query(models.PendingArtist)
            .filter(
                models.PendingArtist.id == application_id,
                models.PendingArtist.status == expected,
            )
            .update({models.PendingArtist.status: new}, synchronize_session=False)
        )
        return matched == 1

    def delete_application(self, db: Session, application_id: int) -> int:
        return (
            db.query(models.PendingArtist)
            .filter(models.PendingArtist.id == application_id)
            .delete(synchronize_session=False)
        )


artist = CRUDArtist()
