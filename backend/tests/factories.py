"""Shared builders for the test-suite (plain functions, no fixtures)."""

import itertools
from datetime import date
from decimal import Decimal

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from marketplace.models import (
    ArtistProfile,
    ArtistStatus,
    ArtistType,
    Category,
    SubscriptionStatus,
    User,
    UserRole,
)
from marketplace.models.base import BaseModel
from marketplace.schemas import BookingCreate
from marketplace.services import booking_lifecycle, payment_escrow
from marketplace.services.payment_provider import PaymentProviderError
from marketplace.utils.auth import get_password_hash


def make_engine():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    BaseModel.metadata.create_all(engine)
    return engine


def setup_db():
    Session = sessionmaker(bind=make_engine())
    return Session()


def make_user(db, email, role=UserRole.CUSTOMER, password="secret123", name="Test User"):
    user = User(
        email=email,
        password=get_password_hash(password),
        name=name,
        role=role,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def make_category(db, name="Design", type=ArtistType.REMOTE):
    category = db.query(Category).filter(Category.name == name).first()
    if category:
        return category
    category = Category(name=name, type=type, is_active=True)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def make_artist(
    db,
    email="artist@example.com",
    artist_type=ArtistType.REMOTE,
    status=ArtistStatus.APPROVED,
    delivery_time=5,
):
    category = make_category(
        db,
        name="Design" if artist_type == ArtistType.REMOTE else "Live Music",
        type=artist_type,
    )
    user = make_user(db, email, role=UserRole.ARTIST, name="Artist")
    profile = ArtistProfile(
        user_id=user.id,
        category_id=category.id,
        artist_type=artist_type,
        hourly_rate=Decimal("2500"),
        delivery_time=delivery_time,
        status=status,
        subscription_status=SubscriptionStatus.ACTIVE,
    )
    db.add(profile)
    db.commit()
    db.refresh(user)
    return user


def booking_payload(artist_id, total="500", start="10:00", duration=2.0):
    return BookingCreate(
        artist_id=artist_id,
        service="Logo design",
        booking_date=date(2030, 1, 15),
        start_time=start,
        duration=duration,
        location="Remote",
        total_amount=Decimal(total),
        notes="Minimal style",
    )


def make_booking(db, customer, artist, total="500", accept=False):
    booking = booking_lifecycle.create_booking(db, customer, booking_payload(artist.id, total))
    if accept:
        booking = booking_lifecycle.accept_booking(db, booking.id, artist)
    return booking


def pay_booking(db, booking, customer, provider):
    intent = payment_escrow.create_payment_intent(db, booking.id, customer, provider)
    return payment_escrow.confirm_payment(
        db, intent["provider_transaction_id"], provider, customer
    )


# Intent ids are unique across providers, like real ones
_intent_ids = itertools.count(1)


class FakeProvider:
    """In-memory stand-in for PaymentProviderClient."""

    def __init__(self, status="succeeded"):
        self.status = status
        self.intents = {}
        self.created = []
        self.refunds = []
        self.fail_refund = False

    def create_intent(self, amount_minor, currency, metadata):
        txn = f"pi_test_{next(_intent_ids)}"
        self.intents[txn] = {
            "id": txn,
            "status": self.status,
            "amount": amount_minor,
            "currency": currency.upper(),
            "metadata": {k: str(v) for k, v in metadata.items()},
            "payment_method": "pm_card_visa",
        }
        self.created.append((amount_minor, currency, dict(metadata)))
        return {"id": txn, "client_secret": f"{txn}_secret", "status": "requires_payment_method"}

    def retrieve_intent(self, transaction_id):
        return dict(self.intents[transaction_id])

    def refund(self, transaction_id, amount_minor=None):
        if self.fail_refund:
            raise PaymentProviderError()
        self.refunds.append((transaction_id, amount_minor))
        return {"refund_id": f"re_test_{len(self.refunds)}", "status": "succeeded"}
