from decimal import Decimal

import pytest

from marketplace.models import (
    Booking,
    BookingPaymentStatus,
    BookingStatus,
    ChatChannel,
    Notification,
    NotificationType,
    Payment,
    PaymentStatus,
    UserRole,
)
from marketplace.schemas import ConfirmationOutcome
from marketplace.services import booking_lifecycle, payment_escrow
from marketplace.utils.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    UnavailableError,
)

from factories import FakeProvider, make_artist, make_booking, make_user, pay_booking, setup_db


def _accepted_booking(db, total="500"):
    customer = make_user(db, "customer@example.com")
    artist = make_artist(db)
    booking = make_booking(db, customer, artist, total=total, accept=True)
    return customer, artist, booking


def test_intent_uses_minor_units_and_carries_booking_id():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    provider = FakeProvider()

    intent = payment_escrow.create_payment_intent(db, booking.id, customer, provider)

    assert intent["client_secret"].endswith("_secret")
    assert intent["amount"] == Decimal("500.00")
    assert intent["currency"] == "LKR"
    amount_minor, currency, metadata = provider.created[0]
    assert amount_minor == 50000
    assert metadata["booking_id"] == booking.id
    # Intent creation never touches local state
    assert db.query(Payment).count() == 0
    db.refresh(booking)
    assert booking.status == BookingStatus.ACCEPTED


def test_intent_requires_owner_and_accepted_booking():
    db = setup_db()
    customer = make_user(db, "customer@example.com")
    stranger = make_user(db, "stranger@example.com")
    artist = make_artist(db)
    booking = make_booking(db, customer, artist)
    provider = FakeProvider()

    with pytest.raises(BadRequestError):
        payment_escrow.create_payment_intent(db, booking.id, customer, provider)
    booking_lifecycle.accept_booking(db, booking.id, artist)
    with pytest.raises(ForbiddenError):
        payment_escrow.create_payment_intent(db, booking.id, stranger, provider)


def test_intent_rejects_zero_total():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db, total="0")
    with pytest.raises(BadRequestError):
        payment_escrow.create_payment_intent(db, booking.id, customer, FakeProvider())


def test_intent_conflicts_with_active_payment():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    db.add(
        Payment(
            booking_id=booking.id,
            customer_id=customer.id,
            artist_id=artist.id,
            amount=Decimal("500"),
            currency="LKR",
            provider_transaction_id="pi_existing",
            status=PaymentStatus.HELD,
            commission_percent=15.0,
            commission_amount=Decimal("75"),
            artist_payout_amount=Decimal("425"),
        )
    )
    db.commit()
    with pytest.raises(ConflictError):
        payment_escrow.create_payment_intent(db, booking.id, customer, FakeProvider())


def test_confirm_holds_payment_and_starts_booking():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    provider = FakeProvider()

    result = pay_booking(db, booking, customer, provider)

    assert result.outcome == ConfirmationOutcome.CONFIRMED
    payment = result.payment
    assert payment.status == PaymentStatus.HELD
    assert payment.amount == Decimal("500")
    assert payment.commission_amount == Decimal("75")
    assert payment.artist_payout_amount == Decimal("425")
    assert payment.commission_amount + payment.artist_payout_amount == payment.amount
    assert payment.commission_percent == 15.0
    assert payment.payment_method == "pm_card_visa"

    db.refresh(booking)
    assert booking.status == BookingStatus.IN_PROGRESS
    assert booking.payment_status == BookingPaymentStatus.HELD
    assert booking.payment_id == payment.id
    channel = db.query(ChatChannel).one()
    assert booking.chat_id == channel.id
    assert {channel.customer_id, channel.artist_id} == {customer.id, artist.id}

    received = db.query(Notification).filter(Notification.type == NotificationType.PAYMENT_RECEIVED).all()
    assert {n.recipient_id for n in received} == {customer.id, artist.id}


def test_confirm_is_idempotent():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    provider = FakeProvider()
    first = pay_booking(db, booking, customer, provider)
    notifications = db.query(Notification).count()

    txn = first.payment.provider_transaction_id
    again = payment_escrow.confirm_payment(db, txn, provider, customer)
    webhook = payment_escrow.confirm_payment(db, txn, provider, trusted=True)

    assert again.outcome == ConfirmationOutcome.ALREADY_CONFIRMED
    assert webhook.outcome == ConfirmationOutcome.ALREADY_CONFIRMED
    assert again.payment.id == first.payment.id
    assert db.query(Payment).count() == 1
    assert db.query(ChatChannel).count() == 1
    assert db.query(Notification).count() == notifications
    assert db.query(Booking).one().status == BookingStatus.IN_PROGRESS


def test_confirm_not_yet_succeeded_changes_nothing():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    provider = FakeProvider(status="requires_payment_method")

    result = pay_booking(db, booking, customer, provider)

    assert result.outcome == ConfirmationOutcome.NOT_SUCCEEDED
    assert result.provider_status == "requires_payment_method"
    assert result.payment is None
    assert db.query(Payment).count() == 0
    db.refresh(booking)
    assert booking.status == BookingStatus.ACCEPTED
    assert booking.payment_status == BookingPaymentStatus.PENDING


def test_confirm_checks_amount_and_caller():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    stranger = make_user(db, "stranger@example.com")
    provider = FakeProvider()
    intent = payment_escrow.create_payment_intent(db, booking.id, customer, provider)
    txn = intent["provider_transaction_id"]

    with pytest.raises(ForbiddenError):
        payment_escrow.confirm_payment(db, txn, provider, stranger)
    with pytest.raises(ForbiddenError):
        payment_escrow.confirm_payment(db, txn, provider)

    provider.intents[txn]["amount"] = 10000
    with pytest.raises(BadRequestError):
        payment_escrow.confirm_payment(db, txn, provider, customer)
    assert db.query(Payment).count() == 0


def test_release_after_completion():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    provider = FakeProvider()
    payment = pay_booking(db, booking, customer, provider).payment

    with pytest.raises(BadRequestError):
        payment_escrow.release_to_artist(db, payment.id, customer)

    booking_lifecycle.complete_booking(db, booking.id, artist)
    with pytest.raises(ForbiddenError):
        payment_escrow.release_to_artist(db, payment.id, artist)

    payment = payment_escrow.release_to_artist(db, payment.id, customer)
    assert payment.status == PaymentStatus.SUCCEEDED
    assert payment.released_to_artist is True
    assert payment.released_at is not None
    db.refresh(booking)
    assert booking.payment_status == BookingPaymentStatus.PAID

    with pytest.raises(BadRequestError):
        payment_escrow.release_to_artist(db, payment.id, customer)


def test_admin_refund_defaults_to_full_amount():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    admin = make_user(db, "admin@example.com", role=UserRole.ADMIN)
    provider = FakeProvider()
    payment = pay_booking(db, booking, customer, provider).payment

    payment = payment_escrow.refund_payment(db, payment.id, admin, provider)

    assert provider.refunds == [(payment.provider_transaction_id, 50000)]
    assert payment.refunded_amount == Decimal("500")
    assert payment.status == PaymentStatus.REFUNDED
    assert payment.refund_id == "re_test_1"
    db.refresh(booking)
    assert booking.payment_status == BookingPaymentStatus.REFUNDED
    types = [n.type for n in db.query(Notification).filter(Notification.recipient_id == customer.id)]
    assert NotificationType.PAYMENT_REFUNDED in types


def test_refund_rules():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    admin = make_user(db, "admin@example.com", role=UserRole.ADMIN)
    provider = FakeProvider()
    payment = pay_booking(db, booking, customer, provider).payment

    with pytest.raises(ForbiddenError):
        payment_escrow.refund_payment(db, payment.id, customer, provider)
    with pytest.raises(BadRequestError):
        payment_escrow.refund_payment(db, payment.id, admin, provider, Decimal("500.01"))
    with pytest.raises(BadRequestError):
        payment_escrow.refund_payment(db, payment.id, admin, provider, Decimal("0"))

    payment = payment_escrow.refund_payment(db, payment.id, admin, provider, Decimal("200"))
    assert provider.refunds[-1][1] == 20000
    assert payment.refunded_amount == Decimal("200")

    with pytest.raises(BadRequestError):
        payment_escrow.refund_payment(db, payment.id, admin, provider)


def test_refund_provider_failure_leaves_payment_held():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    admin = make_user(db, "admin@example.com", role=UserRole.ADMIN)
    provider = FakeProvider()
    payment = pay_booking(db, booking, customer, provider).payment
    provider.fail_refund = True

    with pytest.raises(UnavailableError):
        payment_escrow.refund_payment(db, payment.id, admin, provider)
    db.refresh(payment)
    assert payment.status == PaymentStatus.HELD


def test_payment_reads_are_scoped():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    stranger = make_user(db, "stranger@example.com")
    payment = pay_booking(db, booking, customer, FakeProvider()).payment

    assert payment_escrow.get_payment(db, payment.id, artist).id == payment.id
    with pytest.raises(ForbiddenError):
        payment_escrow.get_payment(db, payment.id, stranger)
    assert [p.id for p in payment_escrow.list_payments(db, customer)] == [payment.id]
    assert payment_escrow.list_payments(db, stranger) == []


def test_status_of_unpaid_intent_is_only_shown_to_the_owner():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    stranger = make_user(db, "stranger@example.com")
    provider = FakeProvider(status="requires_payment_method")
    txn = payment_escrow.create_payment_intent(db, booking.id, customer, provider)["provider_transaction_id"]

    with pytest.raises(ForbiddenError):
        payment_escrow.confirm_payment(db, txn, provider, stranger)


def test_payment_arriving_after_cancellation_is_refunded():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    provider = FakeProvider()
    txn = payment_escrow.create_payment_intent(db, booking.id, customer, provider)["provider_transaction_id"]
    booking_lifecycle.cancel_booking(db, booking.id, customer, provider)

    result = payment_escrow.confirm_payment(db, txn, provider, trusted=True)

    assert result.outcome == ConfirmationOutcome.REFUNDED
    assert provider.refunds == [(txn, None)]
    payment = db.query(Payment).one()
    assert payment.status == PaymentStatus.REFUNDED
    assert payment.refunded_amount == Decimal("500")
    assert payment.refund_id == "re_test_1"
    db.refresh(booking)
    assert booking.status == BookingStatus.CANCELLED
    assert booking.payment_id is None
    refunded = db.query(Notification).filter(Notification.type == NotificationType.PAYMENT_REFUNDED).one()
    assert refunded.recipient_id == customer.id

    # Provider retries the webhook
    again = payment_escrow.confirm_payment(db, txn, provider, trusted=True)
    assert again.outcome == ConfirmationOutcome.ALREADY_CONFIRMED
    assert len(provider.refunds) == 1
    assert db.query(Payment).count() == 1


def test_second_paid_intent_for_same_booking_is_refunded():
    db = setup_db()
    customer, artist, booking = _accepted_booking(db)
    provider = FakeProvider()
    first = payment_escrow.create_payment_intent(db, booking.id, customer, provider)["provider_transaction_id"]
    second = payment_escrow.create_payment_intent(db, booking.id, customer, provider)["provider_transaction_id"]

    held = payment_escrow.confirm_payment(db, first, provider, customer)
    extra = payment_escrow.confirm_payment(db, second, provider, customer)

    assert held.outcome == ConfirmationOutcome.CONFIRMED
    assert extra.outcome == ConfirmationOutcome.REFUNDED
    assert provider.refunds == [(second, None)]
    db.refresh(booking)
    assert booking.payment_id == held.payment.id
    assert booking.payment_status == BookingPaymentStatus.HELD

    booking_lifecycle.cancel_booking(db, booking.id, customer, provider)
    assert provider.refunds == [(second, None), (first, 50000)]
