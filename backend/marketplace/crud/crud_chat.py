import logging
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional, Sequence

from .. import models

logger = logging.getLogger(__name__)


def get_channel_for_booking(db: Session, booking_id: int) -> Optional[models.ChatChannel]:
    return (
        db.query(models.ChatChannel)
        .filter(models.ChatChannel.booking_id == booking_id)
        .first()
    )


def ensure_channel(
    db: Session, booking_id: int, participant_ids: Sequence[int]
) -> models.ChatChannel:
    """Get or create the chat channel for a booking.

    ``participant_ids`` is ``(customer_id, artist_id)``. A concurrent create
    losing the unique race on ``booking_id`` re-reads the winner's row.
    """
    existing = get_channel_for_booking(db, booking_id)
    if existing:
        return existing
    customer_id, artist_id = participant_ids
    channel = models.ChatChannel(
        booking_id=booking_id, customer_id=customer_id, artist_id=artist_id
    )
    db.add(channel)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = get_channel_for_booking(db, booking_id)
        if existing is None:
            raise
        logger.info("Chat channel for booking %s created concurrently", booking_id)
        return existing
    db.refresh(channel)
    return channel
