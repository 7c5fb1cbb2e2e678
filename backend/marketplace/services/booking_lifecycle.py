"""Booking state machine.

    pending ──accept──▶ accepted ──(payment confirmed)──▶ in_progress ──complete──▶ completed
       │                   │                                   │
       ├──reject──▶ declined                                   │
       └───────────────────┴──────────cancel───────────────────┴──▶ cancelled

``accepted -> in_progress`` belongs to the escrow ledger and is never exposed
here. Every transition is a conditional UPDATE on the expected prior status;
losing that race raises ``ConflictError``. Admins may act on any booking but
cannot skip an edge.
"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..crud import crud_payment
from ..crud.crud_artist import artist as crud_artist
from ..crud.crud_booking import booking as crud_booking
from ..models import (
    ArtistStatus,
    ArtistType,
    BookingStatus,
    NotificationType,
    RecipientKind,
    RelatedKind,
)
from ..models.booking_status import TERMINAL_BOOKING_STATUSES, can_transition
from ..schemas.booking import BookingCreate
from ..utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ..utils.metrics import incr as metrics_incr
from ..utils.notifications import notify
from ..utils.profile import compute_end_time
from . import payment_escrow
from .payment_provider import PaymentProviderClient

logger = logging.getLogger(__name__)


def _get_booking_or_404(db: Session, booking_id: int) -> models.Booking:
    booking = crud_booking.get_booking(db, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def _require_artist(booking: models.Booking, actor: models.User) -> None:
    if actor.is_admin:
        return
    if actor.id != booking.artist_id:
        raise ForbiddenError("Only the booked artist can perform this action")


def _require_customer(booking: models.Booking, actor: models.User) -> None:
    if actor.is_admin:
        return
    if actor.id != booking.customer_id:
        raise ForbiddenError("Only the customer who made this booking can perform this action")


def _transition(
    db: Session,
    booking: models.Booking,
    target: BookingStatus,
    extra: Optional[dict] = None,
) -> models.Booking:
    current = booking.status
    if not can_transition(current, target):
        raise BadRequestError(f"Cannot move booking from {current.value} to {target.value}")
    moved = crud_booking.compare_and_set_status(db, booking.id, current, target, extra=extra)
    if not moved:
        db.rollback()
        raise ConflictError("Booking was modified by another request")
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s moved %s -> %s", booking.id, current.value, target.value)
    metrics_incr("booking.transition", tags={"from": current.value, "to": target.value})
    return booking


def create_booking(db: Session, customer: models.User, data: BookingCreate) -> models.Booking:
    if customer.id == data.artist_id:
        raise BadRequestError("You cannot book yourself")
    profile = crud_artist.get_profile(db, data.artist_id)
    if not profile:
        raise NotFoundError("Artist not found")
    if profile.artist_type == ArtistType.PHYSICAL:
        raise BadRequestError(
            "Physical artists cannot be booked online. Please contact them directly."
        )
    if profile.status != ArtistStatus.APPROVED:
        raise BadRequestError("This artist is not accepting bookings")

    booking = crud_booking.create_booking(
        db,
        customer_id=customer.id,
        artist_id=profile.user_id,
        service=data.service,
        booking_date=data.booking_date,
        start_time=data.start_time,
        duration=data.duration,
        end_time=compute_end_time(data.start_time, data.duration),
        location=data.location,
        notes=data.notes,
        total_amount=data.total_amount,
        currency=settings.DEFAULT_CURRENCY,
        delivery_days=profile.delivery_time,
    )
    logger.info("Booking %s created by customer %s for artist %s", booking.id, customer.id, profile.user_id)
    metrics_incr("booking.created")

    notify(
        db,
        profile.user_id,
        RecipientKind.ARTIST,
        NotificationType.NEW_BOOKING,
        "New booking",
        f"{customer.name or 'A customer'} requested {booking.service} on {booking.booking_date:%Y-%m-%d} at {booking.start_time}.",
        related_id=booking.id,
        related_kind=RelatedKind.BOOKING,
    )
    return booking


def accept_booking(db: Session, booking_id: int, actor: models.User) -> models.Booking:
    booking = _get_booking_or_404(db, booking_id)
    _require_artist(booking, actor)
    if booking.status != BookingStatus.PENDING:
        raise BadRequestError(f"Booking is already {booking.status.value}")
    booking = _transition(db, booking, BookingStatus.ACCEPTED)
    notify(
        db,
        booking.customer_id,
        RecipientKind.CUSTOMER,
        NotificationType.BOOKING_ACCEPTED,
        "Booking accepted",
        f"Your booking #{booking.id} was accepted. Complete payment to get started.",
        related_id=booking.id,
        related_kind=RelatedKind.BOOKING,
    )
    return booking


def reject_booking(
    db: Session, booking_id: int, actor: models.User, reason: Optional[str] = None
) -> models.Booking:
    booking = _get_booking_or_404(db, booking_id)
    _require_artist(booking, actor)
    if booking.status != BookingStatus.PENDING:
        raise BadRequestError(f"Booking is already {booking.status.value}")
    booking = _transition(
        db, booking, BookingStatus.DECLINED, extra={models.Booking.decline_reason: reason}
    )
    body = f"Your booking #{booking.id} was declined."
    if reason:
        body += f" Reason: {reason}"
    notify(
        db,
        booking.customer_id,
        RecipientKind.CUSTOMER,
        NotificationType.BOOKING_REJECTED,
        "Booking declined",
        body,
        related_id=booking.id,
        related_kind=RelatedKind.BOOKING,
    )
    return booking


def complete_booking(db: Session, booking_id: int, actor: models.User) -> models.Booking:
    booking = _get_booking_or_404(db, booking_id)
    _require_artist(booking, actor)
    if booking.status != BookingStatus.IN_PROGRESS:
        raise BadRequestError(
            f"Only in-progress bookings can be completed (booking is {booking.status.value})"
        )
    booking = _transition(db, booking, BookingStatus.COMPLETED)
    notify(
        db,
        booking.customer_id,
        RecipientKind.CUSTOMER,
        NotificationType.BOOKING_COMPLETED,
        "Booking completed",
        f"Booking #{booking.id} was marked complete. Please confirm delivery to release payment.",
        related_id=booking.id,
        related_kind=RelatedKind.BOOKING,
    )
    return booking


def cancel_booking(
    db: Session,
    booking_id: int,
    actor: models.User,
    provider: PaymentProviderClient,
) -> models.Booking:
    booking = _get_booking_or_404(db, booking_id)
    _require_customer(booking, actor)
    if booking.status in TERMINAL_BOOKING_STATUSES:
        raise BadRequestError(f"Booking is already {booking.status.value}")

    # Only the payment the booking was placed with; late extras refund themselves
    payment = crud_payment.get_payment(db, booking.payment_id) if booking.payment_id else None
    if payment is not None:
        payment_escrow.refund_payment(db, payment.id, actor, provider, from_cancellation=True)
        db.refresh(booking)

    booking = _transition(db, booking, BookingStatus.CANCELLED)
    notify(
        db,
        booking.artist_id,
        RecipientKind.ARTIST,
        NotificationType.BOOKING_CANCELLED,
        "Booking cancelled",
        f"Booking #{booking.id} was cancelled by the customer.",
        related_id=booking.id,
        related_kind=RelatedKind.BOOKING,
    )
    return booking


def get_booking(db: Session, booking_id: int, actor: models.User) -> models.Booking:
    booking = _get_booking_or_404(db, booking_id)
    if not actor.is_admin and actor.id not in (booking.customer_id, booking.artist_id):
        raise ForbiddenError("You cannot access this booking")
    return booking


def list_bookings(
    db: Session,
    actor: models.User,
    status: Optional[BookingStatus] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.Booking]:
    if actor.is_admin:
        return crud_booking.get_all_bookings(db, status=status, skip=skip, limit=limit)
    if actor.role == models.UserRole.ARTIST:
        return crud_booking.get_bookings_by_artist(db, actor.id, status=status, skip=skip, limit=limit)
    return crud_booking.get_bookings_by_customer(db, actor.id, status=status, skip=skip, limit=limit)
