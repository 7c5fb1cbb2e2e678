"""Fire-and-continue notification dispatch.

Notifications are advisory: a failure here must never undo the state change
that triggered it, so errors are logged and the session is rolled back to a
clean state.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..crud import crud_notification
from ..crud.crud_user import user as crud_user

logger = logging.getLogger(__name__)


def notify(
    db: Session,
    recipient_id: int,
    recipient_kind: models.RecipientKind,
    event_type: models.NotificationType,
    title: str,
    body: str,
    related_id: Optional[int] = None,
    related_kind: Optional[models.RelatedKind] = None,
) -> Optional[models.Notification]:
    try:
        return crud_notification.create_notification(
            db,
            recipient_id=recipient_id,
            recipient_kind=recipient_kind,
            type=event_type,
            title=title,
            message=body,
            related_id=related_id,
            related_kind=related_kind,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "Failed to notify %s %s of %s: %s",
            recipient_kind.value if hasattr(recipient_kind, "value") else recipient_kind,
            recipient_id,
            event_type.value if hasattr(event_type, "value") else event_type,
            exc,
        )
        return None


def notify_admins(
    db: Session,
    event_type: models.NotificationType,
    title: str,
    body: str,
    related_id: Optional[int] = None,
    related_kind: Optional[models.RelatedKind] = None,
) -> int:
    """Notify every active admin. Returns the number of notifications stored."""
    sent = 0
    for admin in crud_user.get_admins(db):
        if notify(
            db,
            admin.id,
            models.RecipientKind.ADMIN,
            event_type,
            title,
            body,
            related_id=related_id,
            related_kind=related_kind,
        ):
            sent += 1
    return sent
