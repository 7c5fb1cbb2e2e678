from sqlalchemy.orm import Session
from typing import List, Optional

from .. import models
from ..utils.auth import get_password_hash, is_password_hash, normalize_email


class CRUDUser:
    def get_user(self, db: Session, user_id: int) -> Optional[models.User]:
        return db.query(models.User).filter(models.User.id == user_id).first()

    def get_user_by_email(self, db: Session, email: str) -> Optional[models.User]:
        return (
            db.query(models.User)
            .filter(models.User.email == normalize_email(email))
            .first()
        )

    def create_user(
        self,
        db: Session,
        *,
        email: str,
        password: str,
        name: str,
        role: models.UserRole,
        phone_number: Optional[str] = None,
        commit: bool = True,
    ) -> models.User:
        """Create an identity. ``password`` may be plain text or an existing hash."""
        hashed = password if is_password_hash(password) else get_password_hash(password)
        db_user = models.User(
            email=normalize_email(email),
            password=hashed,
            name=name or "",
            phone_number=phone_number or None,
            role=role,
            is_active=True,
        )
        db.add(db_user)
        if commit:
            db.commit()
            db.refresh(db_user)
        else:
            db.flush()
        return db_user

    def get_admins(self, db: Session) -> List[models.User]:
        return (
            db.query(models.User)
            .filter(models.User.role == models.UserRole.ADMIN, models.User.is_active.is_(True))
            .all()
        )


user = CRUDUser()  # Create an instance for easy import
