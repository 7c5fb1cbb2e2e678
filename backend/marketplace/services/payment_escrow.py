"""Escrow ledger: payment intents, confirmation, release and refund.

Money is held as ``Decimal`` major units in the database and converted to
integer minor units only when talking to the provider. The commission split
is fixed when the payment row is created:

    commission = round_half_up(amount * percent / 100)   # whole major units
    payout     = amount - commission
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from ..core.config import settings
from ..crud import crud_chat, crud_payment
from ..crud.crud_booking import booking as crud_booking
from ..models import (
    ArtistType,
    BookingPaymentStatus,
    BookingStatus,
    NotificationType,
    PaymentStatus,
    RecipientKind,
    RelatedKind,
)
from ..schemas.payment import ConfirmationOutcome
from ..utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ..utils.metrics import Timer, incr as metrics_incr
from ..utils.notifications import notify
from .payment_provider import (
    SUCCEEDED_STATUSES,
    PaymentProviderClient,
    from_minor_units,
    to_minor_units,
)

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")
_UNIT = Decimal("1")

ACTIVE_PAYMENT_STATUSES = (PaymentStatus.HELD, PaymentStatus.SUCCEEDED)


@dataclass
class PaymentConfirmation:
    outcome: ConfirmationOutcome
    payment: Optional[models.Payment] = None
    booking: Optional[models.Booking] = None
    provider_status: Optional[str] = None


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise BadRequestError("Invalid amount")


def compute_commission(amount: Any, percent: Any = None) -> Tuple[Decimal, Decimal]:
    """Return ``(commission_amount, artist_payout_amount)`` for ``amount``.

    The two parts always sum to ``amount`` exactly.
    """
    amount = _to_decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)
    pct = _to_decimal(settings.PLATFORM_COMMISSION_PERCENT if percent is None else percent)
    commission = (amount * pct / Decimal(100)).quantize(_UNIT, rounding=ROUND_HALF_UP)
    commission = commission.quantize(_CENT)
    payout = (amount - commission).quantize(_CENT)
    return commission, payout


def _get_booking_or_404(db: Session, booking_id: int) -> models.Booking:
    booking = crud_booking.get_booking(db, booking_id)
    if not booking:
        raise NotFoundError("Booking not found")
    return booking


def _get_payment_or_404(db: Session, payment_id: int) -> models.Payment:
    payment = crud_payment.get_payment(db, payment_id)
    if not payment:
        raise NotFoundError("Payment not found")
    return payment


def _is_participant(user: models.User, payment_or_booking) -> bool:
    return user.id in (payment_or_booking.customer_id, payment_or_booking.artist_id)


def create_payment_intent(
    db: Session,
    booking_id: int,
    customer: models.User,
    provider: PaymentProviderClient,
) -> dict:
    """Open a provider intent for an accepted booking.

    Nothing is written locally; the booking only moves once the provider
    reports success through :func:`confirm_payment`.
    """
    booking = _get_booking_or_404(db, booking_id)
    if booking.customer_id != customer.id and not customer.is_admin:
        raise ForbiddenError("You can only pay for your own bookings")
    if booking.status != BookingStatus.ACCEPTED:
        raise BadRequestError(
            f"Booking must be accepted before payment (booking is {booking.status.value})"
        )
    total = _to_decimal(booking.total_amount)
    if total <= 0:
        raise BadRequestError("Booking total must be greater than zero")
    artist = booking.artist
    if artist is None or artist.artist_type != ArtistType.REMOTE:
        raise BadRequestError("Physical artists are paid directly, not through escrow")
    if crud_payment.get_payment_for_booking(db, booking.id, statuses=ACTIVE_PAYMENT_STATUSES):
        raise ConflictError("Payment already in escrow for this booking")

    intent = provider.create_intent(
        to_minor_units(total),
        booking.currency,
        {
            "booking_id": booking.id,
            "customer_id": booking.customer_id,
            "artist_id": booking.artist_id,
        },
    )
    logger.info("Created payment intent %s for booking %s", intent["id"], booking.id)
    metrics_incr("payment.intent_created")
    return {
        "client_secret": intent["client_secret"],
        "provider_transaction_id": intent["id"],
        "amount": total.quantize(_CENT),
        "currency": booking.currency,
    }


def _already_confirmed(db: Session, payment: models.Payment) -> PaymentConfirmation:
    return PaymentConfirmation(
        outcome=ConfirmationOutcome.ALREADY_CONFIRMED,
        payment=payment,
        booking=crud_booking.get_booking(db, payment.booking_id),
        provider_status=None,
    )


def _booking_id_from_metadata(metadata: dict) -> int:
    raw = (metadata or {}).get("booking_id")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise BadRequestError("Payment is not linked to a booking")


def confirm_payment(
    db: Session,
    provider_transaction_id: str,
    provider: PaymentProviderClient,
    verifying_user: Optional[models.User] = None,
    *,
    trusted: bool = False,
) -> PaymentConfirmation:
    """Record a succeeded provider transaction as an escrow hold.

    Safe to call any number of times for the same transaction: the unique
    provider transaction id decides which call creates the payment, every
    other call gets the existing row back with ``ALREADY_CONFIRMED``.
    Funds that arrive after the booking stopped awaiting payment are refunded
    and reported as ``REFUNDED``.
    ``trusted`` is set by the signed webhook, which has no user.
    """
    if verifying_user is None and not trusted:
        raise ForbiddenError("Payment confirmation requires an authenticated user")

    existing = crud_payment.get_payment_by_transaction(db, provider_transaction_id)
    if existing:
        if not trusted and not verifying_user.is_admin and not _is_participant(verifying_user, existing):
            raise ForbiddenError("You cannot access this payment")
        return _already_confirmed(db, existing)

    with Timer("payment.confirm_ms"):
        intent = provider.retrieve_intent(provider_transaction_id)
        booking = _get_booking_or_404(db, _booking_id_from_metadata(intent.get("metadata")))
        if not trusted and not verifying_user.is_admin and verifying_user.id != booking.customer_id:
            raise ForbiddenError("You can only confirm payments for your own bookings")

        if intent["status"] not in SUCCEEDED_STATUSES:
            logger.info(
                "Payment %s not yet succeeded (status=%s)", provider_transaction_id, intent["status"]
            )
            return PaymentConfirmation(
                outcome=ConfirmationOutcome.NOT_SUCCEEDED,
                provider_status=intent["status"],
            )

        amount = from_minor_units(intent["amount"])
        if amount != _to_decimal(booking.total_amount).quantize(_CENT):
            logger.warning(
                "Payment %s amount %s does not match booking %s total %s",
                provider_transaction_id,
                amount,
                booking.id,
                booking.total_amount,
            )
            raise BadRequestError("Payment amount does not match booking total")
        currency = intent.get("currency") or booking.currency
        if currency.upper() != (booking.currency or settings.DEFAULT_CURRENCY).upper():
            raise BadRequestError("Payment currency does not match booking currency")
        payment_method = intent.get("payment_method") or "card"
        if booking.status != BookingStatus.ACCEPTED:
            return _refund_unplaceable(
                db, booking, provider_transaction_id, intent, amount, payment_method, provider
            )

        percent = float(settings.PLATFORM_COMMISSION_PERCENT)
        commission, payout = compute_commission(amount, percent)

        # Payment insert and booking transition share one commit
        try:
            payment = crud_payment.add_payment(
                db,
                booking_id=booking.id,
                customer_id=booking.customer_id,
                artist_id=booking.artist_id,
                amount=amount,
                currency=booking.currency,
                payment_method=payment_method,
                provider_transaction_id=provider_transaction_id,
                status=PaymentStatus.HELD,
                commission_percent=percent,
                commission_amount=commission,
                artist_payout_amount=payout,
                released_to_artist=False,
            )
            moved = crud_booking.compare_and_set_status(
                db,
                booking.id,
                BookingStatus.ACCEPTED,
                BookingStatus.IN_PROGRESS,
                expected_payment_status=BookingPaymentStatus.PENDING,
                extra={
                    models.Booking.payment_status: BookingPaymentStatus.HELD,
                    models.Booking.payment_id: payment.id,
                },
            )
            if not moved:
                db.rollback()
                return _resolve_lost_race(
                    db, booking.id, provider_transaction_id, intent, amount, payment_method, provider
                )
            db.commit()
        except IntegrityError:
            db.rollback()
            return _resolve_lost_race(
                db, booking.id, provider_transaction_id, intent, amount, payment_method, provider
            )

    db.refresh(payment)
    logger.info(
        "Payment %s held for booking %s (commission=%s payout=%s)",
        payment.id,
        booking.id,
        commission,
        payout,
    )
    metrics_incr("payment.confirmed")
    metrics_incr("booking.transition", tags={"to": BookingStatus.IN_PROGRESS.value})

    _provision_chat(db, booking)

    notify(
        db,
        booking.customer_id,
        RecipientKind.CUSTOMER,
        NotificationType.PAYMENT_RECEIVED,
        "Payment received",
        f"Your payment of {booking.currency} {amount} for booking #{booking.id} is held in escrow.",
        related_id=payment.id,
        related_kind=RelatedKind.PAYMENT,
    )
    notify(
        db,
        booking.artist_id,
        RecipientKind.ARTIST,
        NotificationType.PAYMENT_RECEIVED,
        "Booking paid",
        f"Booking #{booking.id} has been paid. You can start working on it.",
        related_id=booking.id,
        related_kind=RelatedKind.BOOKING,
    )

    db.refresh(booking)
    return PaymentConfirmation(
        outcome=ConfirmationOutcome.CONFIRMED,
        payment=payment,
        booking=booking,
        provider_status=intent["status"],
    )


def _resolve_lost_race(
    db: Session,
    booking_id: int,
    provider_transaction_id: str,
    intent: dict,
    amount: Decimal,
    payment_method: str,
    provider: PaymentProviderClient,
) -> PaymentConfirmation:
    winner = crud_payment.get_payment_by_transaction(db, provider_transaction_id)
    if winner:
        logger.info("Payment %s confirmed concurrently", provider_transaction_id)
        return _already_confirmed(db, winner)
    booking = crud_booking.get_booking(db, booking_id)
    if booking is not None and booking.status != BookingStatus.ACCEPTED:
        return _refund_unplaceable(
            db, booking, provider_transaction_id, intent, amount, payment_method, provider
        )
    raise ConflictError("Booking is no longer awaiting payment")


def _refund_unplaceable(
    db: Session,
    booking: models.Booking,
    provider_transaction_id: str,
    intent: dict,
    amount: Decimal,
    payment_method: str,
    provider: PaymentProviderClient,
) -> PaymentConfirmation:
    """Give back funds captured for a booking that can no longer be paid.

    The booking is left as it is. The refunded payment row makes repeated
    confirmations of the same transaction return ``ALREADY_CONFIRMED``.
    """
    logger.warning(
        "Payment %s succeeded for booking %s in status %s; refunding",
        provider_transaction_id,
        booking.id,
        booking.status.value,
    )
    result = provider.refund(provider_transaction_id)
    percent = float(settings.PLATFORM_COMMISSION_PERCENT)
    commission, payout = compute_commission(amount, percent)
    try:
        payment = crud_payment.add_payment(
            db,
            booking_id=booking.id,
            customer_id=booking.customer_id,
            artist_id=booking.artist_id,
            amount=amount,
            currency=booking.currency,
            payment_method=payment_method,
            provider_transaction_id=provider_transaction_id,
            status=PaymentStatus.REFUNDED,
            commission_percent=percent,
            commission_amount=commission,
            artist_payout_amount=payout,
            released_to_artist=False,
            refunded_amount=amount,
            refund_id=result.get("refund_id"),
            refunded_at=datetime.utcnow(),
        )
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = crud_payment.get_payment_by_transaction(db, provider_transaction_id)
        if winner is None:
            raise
        return _already_confirmed(db, winner)
    db.refresh(payment)
    metrics_incr("payment.refunded", tags={"reason": "booking_closed"})

    notify(
        db,
        booking.customer_id,
        RecipientKind.CUSTOMER,
        NotificationType.PAYMENT_REFUNDED,
        "Payment refunded",
        f"Booking #{booking.id} is {booking.status.value}, so your payment of "
        f"{booking.currency} {amount} has been refunded.",
        related_id=payment.id,
        related_kind=RelatedKind.PAYMENT,
    )
    return PaymentConfirmation(
        outcome=ConfirmationOutcome.REFUNDED,
        payment=payment,
        booking=booking,
        provider_status=intent["status"],
    )


def _provision_chat(db: Session, booking: models.Booking) -> None:
    try:
        channel = crud_chat.ensure_channel(db, booking.id, (booking.customer_id, booking.artist_id))
        if booking.chat_id != channel.id:
            crud_booking.set_fields(db, booking.id, {models.Booking.chat_id: channel.id})
            db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Chat provisioning failed for booking %s: %s", booking.id, exc)


def release_to_artist(db: Session, payment_id: int, actor: models.User) -> models.Payment:
    payment = _get_payment_or_404(db, payment_id)
    booking = _get_booking_or_404(db, payment.booking_id)
    if not actor.is_admin and actor.id != booking.customer_id:
        raise ForbiddenError("Only the customer or an admin can release this payment")
    if booking.status != BookingStatus.COMPLETED:
        raise BadRequestError("Booking must be completed before releasing payment")
    if payment.status != PaymentStatus.HELD:
        raise BadRequestError(
            f"Payment is {payment.status.value}; only held payments can be released"
        )

    released = crud_payment.compare_and_set_status(
        db,
        payment.id,
        (PaymentStatus.HELD,),
        PaymentStatus.SUCCEEDED,
        extra={
            models.Payment.released_to_artist: True,
            models.Payment.released_at: datetime.utcnow(),
        },
    )
    if not released:
        db.rollback()
        raise ConflictError("Payment was modified by another request")
    crud_booking.set_fields(db, booking.id, {models.Booking.payment_status: BookingPaymentStatus.PAID})
    db.commit()
    db.refresh(payment)
    logger.info("Released payment %s to artist %s", payment.id, payment.artist_id)
    metrics_incr("payment.released")

    notify(
        db,
        payment.artist_id,
        RecipientKind.ARTIST,
        NotificationType.PAYMENT_RELEASED,
        "Payment released",
        f"{payment.currency} {payment.artist_payout_amount} for booking #{booking.id} has been released to you.",
        related_id=payment.id,
        related_kind=RelatedKind.PAYMENT,
    )
    return payment


def refund_payment(
    db: Session,
    payment_id: int,
    actor: models.User,
    provider: PaymentProviderClient,
    amount: Optional[Any] = None,
    *,
    from_cancellation: bool = False,
) -> models.Payment:
    """Reverse a held or succeeded payment.

    Admin only, except when called by booking cancellation, where an already
    refunded payment is returned unchanged.
    """
    payment = _get_payment_or_404(db, payment_id)
    if not from_cancellation and not actor.is_admin:
        raise ForbiddenError("Only admins can issue refunds")
    if payment.status == PaymentStatus.REFUNDED and from_cancellation:
        return payment
    if payment.status not in ACTIVE_PAYMENT_STATUSES:
        raise BadRequestError(
            f"Payment is {payment.status.value}; only held or succeeded payments can be refunded"
        )

    paid = _to_decimal(payment.amount).quantize(_CENT)
    refund_amount = paid if amount is None else _to_decimal(amount).quantize(_CENT)
    if refund_amount <= 0 or refund_amount > paid:
        raise BadRequestError(f"Refund amount must be greater than 0 and at most {paid}")

    result = provider.refund(payment.provider_transaction_id, to_minor_units(refund_amount))

    refunded = crud_payment.compare_and_set_status(
        db,
        payment.id,
        ACTIVE_PAYMENT_STATUSES,
        PaymentStatus.REFUNDED,
        extra={
            models.Payment.refunded_amount: refund_amount,
            models.Payment.refund_id: result.get("refund_id"),
            models.Payment.refunded_at: datetime.utcnow(),
        },
    )
    if not refunded:
        db.rollback()
        logger.error(
            "Provider refunded %s but payment %s changed concurrently",
            payment.provider_transaction_id,
            payment.id,
        )
        raise ConflictError("Payment was modified by another request")
    crud_booking.set_fields(
        db, payment.booking_id, {models.Booking.payment_status: BookingPaymentStatus.REFUNDED}
    )
    db.commit()
    db.refresh(payment)
    logger.info("Refunded %s on payment %s", refund_amount, payment.id)
    metrics_incr("payment.refunded", tags={"partial": refund_amount < paid})

    notify(
        db,
        payment.customer_id,
        RecipientKind.CUSTOMER,
        NotificationType.PAYMENT_REFUNDED,
        "Payment refunded",
        f"{payment.currency} {refund_amount} for booking #{payment.booking_id} has been refunded.",
        related_id=payment.id,
        related_kind=RelatedKind.PAYMENT,
    )
    return payment


def get_payment(db: Session, payment_id: int, actor: models.User) -> models.Payment:
    payment = _get_payment_or_404(db, payment_id)
    if not actor.is_admin and not _is_participant(actor, payment):
        raise ForbiddenError("You cannot access this payment")
    return payment


def list_payments(
    db: Session, actor: models.User, skip: int = 0, limit: int = 100
) -> List[models.Payment]:
    if actor.is_admin:
        return crud_payment.list_all_payments(db, skip=skip, limit=limit)
    return crud_payment.list_payments_for_user(db, actor.id, skip=skip, limit=limit)
