import pytest
from sqlalchemy.orm import sessionmaker

from marketplace.models import (
    ApplicationStatus,
    ArtistProfile,
    ArtistStatus,
    ArtistType,
    Notification,
    NotificationType,
    PendingArtist,
    SubscriptionStatus,
    User,
    UserRole,
)
from marketplace.schemas import ArtistApplicationCreate
from marketplace.services import artist_approval, booking_lifecycle
from marketplace.utils.auth import verify_password
from marketplace.utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError

from factories import booking_payload, make_artist, make_category, make_user, setup_db


def application(email="new.artist@example.com", category="Design", **overrides):
    fields = dict(
        email=email,
        password="artistpass",
        name="New Artist",
        phone="0771234567",
        category=category,
        bio="Brand identities",
        skills="logos, branding",
        hourly_rate="3000",
        delivery_time=7,
        availability="Available on weekdays",
    )
    fields.update(overrides)
    return ArtistApplicationCreate(**fields)


def _setup(db):
    make_category(db, "Design", ArtistType.REMOTE)
    make_category(db, "Live Music", ArtistType.PHYSICAL)
    return make_user(db, "admin@example.com", role=UserRole.ADMIN)


def test_submit_normalizes_and_notifies_admins():
    db = setup_db()
    admin = _setup(db)

    app = artist_approval.submit_application(
        db, application(email="New.Artist@Example.com", category="design", hourly_rate="abc")
    )

    assert app.email == "new.artist@example.com"
    assert app.status == ApplicationStatus.PENDING
    assert app.skills == ["logos", "branding"]
    assert float(app.hourly_rate) == 0
    assert app.pricing == {"amount": 0.0, "unit": "hour", "currency": "LKR"}
    assert app.availability["monday"] == {"start": "09:00", "end": "18:00", "available": True}
    assert app.availability["sunday"]["available"] is False
    assert app.password != "artistpass"
    assert verify_password("artistpass", app.password)
    assert db.query(Notification).filter(Notification.recipient_id == admin.id).count() == 1


def test_submit_rejects_duplicates_and_unknown_categories():
    db = setup_db()
    _setup(db)
    make_user(db, "taken@example.com")
    artist_approval.submit_application(db, application())

    with pytest.raises(ConflictError):
        artist_approval.submit_application(db, application(email="taken@example.com"))
    with pytest.raises(ConflictError):
        artist_approval.submit_application(db, application())
    with pytest.raises(NotFoundError):
        artist_approval.submit_application(db, application(email="x@example.com", category="Pottery"))
    with pytest.raises(BadRequestError) as exc:
        artist_approval.submit_application(db, application(email="y@example.com", category=999))
    assert "Design" in exc.value.message
    assert db.query(PendingArtist).count() == 1


def test_approve_migrates_application(sent_emails):
    db = setup_db()
    admin = _setup(db)
    app = artist_approval.submit_application(db, application())

    profile = artist_approval.approve_application(db, app.id, admin)

    user = db.query(User).filter(User.email == "new.artist@example.com").one()
    assert user.role == UserRole.ARTIST
    assert verify_password("artistpass", user.password)
    assert profile.user_id == user.id
    assert profile.status == ArtistStatus.APPROVED
    assert profile.artist_type == ArtistType.REMOTE
    assert profile.subscription_status == SubscriptionStatus.ACTIVE
    assert profile.verified_at is not None
    assert profile.delivery_time == 7
    assert profile.skills == ["logos", "branding"]
    assert db.query(PendingArtist).count() == 0
    assert [m["to"] for m in sent_emails] == ["new.artist@example.com"]
    assert "approved" in sent_emails[0]["subject"]


def test_physical_artist_starts_with_inactive_subscription():
    db = setup_db()
    admin = _setup(db)
    app = artist_approval.submit_application(db, application(category="Live Music"))

    profile = artist_approval.approve_application(db, app.id, admin)

    assert profile.artist_type == ArtistType.PHYSICAL
    assert profile.subscription_status == SubscriptionStatus.INACTIVE


def test_approve_requires_admin():
    db = setup_db()
    _setup(db)
    customer = make_user(db, "c@example.com")
    app = artist_approval.submit_application(db, application())

    with pytest.raises(ForbiddenError):
        artist_approval.approve_application(db, app.id, customer)
    with pytest.raises(ForbiddenError):
        artist_approval.list_pending_applications(db, customer)


def test_email_owned_by_customer_auto_rejects(sent_emails):
    db = setup_db()
    admin = _setup(db)
    app = artist_approval.submit_application(db, application())
    # The customer account appears after the application was filed
    make_user(db, "new.artist@example.com")

    with pytest.raises(ConflictError):
        artist_approval.approve_application(db, app.id, admin)

    assert db.query(PendingArtist).count() == 0
    assert db.query(ArtistProfile).count() == 0
    user = db.query(User).filter(User.email == "new.artist@example.com").one()
    assert user.role == UserRole.CUSTOMER
    assert len(sent_emails) == 1
    assert "not approved" in sent_emails[0]["body"]


def test_approval_is_idempotent_after_partial_run():
    db = setup_db()
    admin = _setup(db)
    app = artist_approval.submit_application(db, application())
    existing = make_artist(db, email="new.artist@example.com")
    db.query(PendingArtist).filter(PendingArtist.id == app.id).update(
        {PendingArtist.status: ApplicationStatus.APPROVED}, synchronize_session=False
    )
    db.commit()

    profile = artist_approval.approve_application(db, app.id, admin)

    assert profile.user_id == existing.id
    assert db.query(User).filter(User.email == "new.artist@example.com").count() == 1
    assert db.query(ArtistProfile).count() == 1
    assert db.query(PendingArtist).count() == 0


def test_approval_reuses_existing_artist_identity():
    db = setup_db()
    admin = _setup(db)
    app = artist_approval.submit_application(db, application())
    identity = make_user(db, "new.artist@example.com", role=UserRole.ARTIST, password="original1")

    profile = artist_approval.approve_application(db, app.id, admin)

    assert profile.user_id == identity.id
    assert db.query(User).filter(User.email == "new.artist@example.com").count() == 1
    db.refresh(identity)
    assert verify_password("original1", identity.password)


def test_reject_removes_application(sent_emails):
    db = setup_db()
    admin = _setup(db)
    app_id = artist_approval.submit_application(db, application()).id

    result = artist_approval.reject_application(db, app_id, admin, "Portfolio incomplete")

    assert result["status"] == "rejected"
    assert db.query(PendingArtist).count() == 0
    assert db.query(User).filter(User.email == "new.artist@example.com").count() == 0
    assert "Portfolio incomplete" in sent_emails[0]["body"]
    with pytest.raises(NotFoundError):
        artist_approval.approve_application(db, app_id, admin)


def _second_request(db):
    """A separate session on the same database, as a concurrent request would have."""
    return sessionmaker(bind=db.get_bind())()


def test_concurrent_approvals_notify_once(monkeypatch, sent_emails):
    db = setup_db()
    admin = _setup(db)
    admin_id = admin.id
    app_id = artist_approval.submit_application(db, application()).id
    original = artist_approval._get_or_create_identity
    interleaved = []

    def identity_after_other_approval(session, snapshot):
        if not interleaved:
            interleaved.append(True)
            other = _second_request(db)
            try:
                artist_approval.approve_application(other, app_id, other.get(User, admin_id))
            finally:
                other.close()
        return original(session, snapshot)

    monkeypatch.setattr(artist_approval, "_get_or_create_identity", identity_after_other_approval)

    profile = artist_approval.approve_application(db, app_id, admin)

    user = db.query(User).filter(User.email == "new.artist@example.com").one()
    assert profile.user_id == user.id
    assert db.query(ArtistProfile).count() == 1
    assert db.query(PendingArtist).count() == 0
    approvals = db.query(Notification).filter(
        Notification.recipient_id == user.id,
        Notification.type == NotificationType.APPROVAL_STATUS,
    )
    assert approvals.count() == 1
    assert len(sent_emails) == 1


def test_approval_loses_to_earlier_rejection(monkeypatch, sent_emails):
    db = setup_db()
    admin = _setup(db)
    admin_id = admin.id
    app_id = artist_approval.submit_application(db, application()).id
    crud = artist_approval.crud_artist
    original = crud.compare_and_set_application_status
    interleaved = []

    def claim_after_other_rejection(session, *args, **kwargs):
        if not interleaved:
            interleaved.append(True)
            other = _second_request(db)
            try:
                artist_approval.reject_application(other, app_id, other.get(User, admin_id), "Duplicate")
            finally:
                other.close()
        return original(session, *args, **kwargs)

    monkeypatch.setattr(crud, "compare_and_set_application_status", claim_after_other_rejection)

    with pytest.raises(ConflictError):
        artist_approval.approve_application(db, app_id, admin)

    assert db.query(User).filter(User.email == "new.artist@example.com").count() == 0
    assert db.query(ArtistProfile).count() == 0
    assert db.query(PendingArtist).count() == 0
    assert len(sent_emails) == 1
    assert "Duplicate" in sent_emails[0]["body"]


def test_rejection_after_claim_leaves_approval_intact(monkeypatch, sent_emails):
    db = setup_db()
    admin = _setup(db)
    admin_id = admin.id
    app_id = artist_approval.submit_application(db, application()).id
    original = artist_approval._get_or_create_identity
    refused = []

    def identity_after_other_rejection(session, snapshot):
        if not refused:
            other = _second_request(db)
            try:
                with pytest.raises(BadRequestError) as exc:
                    artist_approval.reject_application(other, app_id, other.get(User, admin_id))
                refused.append(exc.value.message)
            finally:
                other.close()
        return original(session, snapshot)

    monkeypatch.setattr(artist_approval, "_get_or_create_identity", identity_after_other_rejection)

    profile = artist_approval.approve_application(db, app_id, admin)

    assert refused == ["Application was already approved"]
    assert profile.status == ArtistStatus.APPROVED
    assert db.query(PendingArtist).count() == 0
    assert [m["subject"] for m in sent_emails] == ["Your artist application has been approved"]


def test_suspended_artist_cannot_take_bookings():
    db = setup_db()
    admin = _setup(db)
    customer = make_user(db, "c@example.com")
    artist = make_artist(db)

    profile = artist_approval.set_artist_status(db, artist.id, admin, ArtistStatus.SUSPENDED, "Disputes")

    assert profile.status == ArtistStatus.SUSPENDED
    assert profile.status_reason == "Disputes"
    with pytest.raises(BadRequestError):
        booking_lifecycle.create_booking(db, customer, booking_payload(artist.id))
    with pytest.raises(BadRequestError):
        artist_approval.set_artist_status(db, artist.id, admin, ArtistStatus.PENDING)
