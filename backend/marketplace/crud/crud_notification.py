from sqlalchemy.orm import Session
from typing import Optional

from .. import models


def create_notification(
    db: Session,
    recipient_id: int,
    recipient_kind: models.RecipientKind,
    type: models.NotificationType,
    title: str,
    message: str,
    related_id: Optional[int] = None,
    related_kind: Optional[models.RelatedKind] = None,
) -> models.Notification:
    db_obj = models.Notification(
        recipient_id=recipient_id,
        recipient_kind=recipient_kind,
        type=type,
        title=title,
        message=message,
        related_id=related_id,
        related_kind=related_kind,
    )
    db.add(db_obj)
    db.commit()
    db.refresh(db_obj)
    return db_obj
