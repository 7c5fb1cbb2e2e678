"""Artist registration and the admin approval saga.

Approval migrates a ``PendingArtist`` into a ``User`` plus ``ArtistProfile``
without one enclosing transaction. Each step re-checks what already exists
before acting and commits on its own, so a retried or half-finished approval
converges on the same identity and profile.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models
from ..crud.crud_artist import artist as crud_artist
from ..crud.crud_user import user as crud_user
from ..models import (
    ApplicationStatus,
    ArtistStatus,
    ArtistType,
    NotificationType,
    RecipientKind,
    SubscriptionStatus,
    UserRole,
)
from ..schemas.artist import ArtistApplicationCreate
from ..utils import email as email_utils
from ..utils.auth import get_password_hash, normalize_email
from ..utils.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from ..utils.metrics import incr as metrics_incr
from ..utils.notifications import notify, notify_admins
from ..utils.profile import (
    normalize_availability,
    normalize_hourly_rate,
    normalize_pricing,
    normalize_skills,
)

logger = logging.getLogger(__name__)

ADMIN_SETTABLE_STATUSES = (ArtistStatus.APPROVED, ArtistStatus.SUSPENDED)


def _require_admin(actor: models.User) -> None:
    if not actor.is_admin:
        raise ForbiddenError("Admin privileges required")


def _resolve_category(db: Session, category) -> models.Category:
    if isinstance(category, int) or (isinstance(category, str) and category.strip().isdigit()):
        found = crud_artist.get_category(db, int(category))
        if not found:
            names = ", ".join(c.name for c in crud_artist.list_active_categories(db))
            raise BadRequestError(
                f'Invalid category provided. Received: "{category}". Available categories: {names}'
            )
        return found
    found = crud_artist.get_category_by_name(db, str(category or ""))
    if not found:
        raise NotFoundError("Category not found. Provide a valid category id or name.")
    return found


def submit_application(db: Session, data: ArtistApplicationCreate) -> models.PendingArtist:
    email = normalize_email(data.email)
    if len(data.password) < 6:
        raise BadRequestError("Password must be at least 6 characters long")
    if crud_user.get_user_by_email(db, email):
        raise ConflictError("User with this email already exists")
    if crud_artist.get_application_by_email(db, email):
        raise ConflictError("Registration request already pending. Please wait for admin approval.")

    category = _resolve_category(db, data.category)
    if not category.is_active:
        raise BadRequestError("This category is not accepting new artists")

    hourly_rate = normalize_hourly_rate(data.hourly_rate)
    application = models.PendingArtist(
        name=(data.name or "").strip(),
        email=email,
        phone=(data.phone or "").strip() or None,
        password=get_password_hash(data.password),
        category_id=category.id,
        bio=data.bio or "",
        profile_image=data.profile_image or None,
        skills=normalize_skills(data.skills),
        hourly_rate=hourly_rate,
        pricing=normalize_pricing(data.pricing, hourly_rate),
        delivery_time=data.delivery_time,
        availability=normalize_availability(data.availability),
        status=ApplicationStatus.PENDING,
    )
    db.add(application)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Registration request already pending. Please wait for admin approval.")
    db.refresh(application)
    logger.info("Artist application %s submitted for %s", application.id, email)
    metrics_incr("artist.application_submitted")

    notify_admins(
        db,
        NotificationType.APPROVAL_STATUS,
        "New artist application",
        f"{application.name or email} applied to join as a {category.name} artist.",
    )
    return application


def list_pending_applications(
    db: Session, actor: models.User, skip: int = 0, limit: int = 100
) -> List[models.PendingArtist]:
    _require_admin(actor)
    return crud_artist.list_applications(db, ApplicationStatus.PENDING, skip=skip, limit=limit)


def _cleanup(db: Session, application_id: int) -> None:
    crud_artist.delete_application(db, application_id)
    db.commit()


def _snapshot(application: models.PendingArtist) -> Dict[str, Any]:
    """Copy what approval needs so later steps survive the row being deleted."""
    category = application.category
    return {
        "id": application.id,
        "name": application.name,
        "email": application.email,
        "phone": application.phone,
        "password": application.password,
        "category_id": application.category_id,
        "artist_type": category.type if category is not None else ArtistType.REMOTE,
        "bio": application.bio,
        "profile_image": application.profile_image,
        "skills": application.skills,
        "hourly_rate": application.hourly_rate,
        "pricing": application.pricing,
        "delivery_time": application.delivery_time,
        "availability": application.availability,
    }


def _get_or_create_identity(db: Session, snapshot: Dict[str, Any]) -> models.User:
    user = crud_user.get_user_by_email(db, snapshot["email"])
    if user:
        return user
    try:
        # The stored password is already a bcrypt hash and is carried over as-is
        return crud_user.create_user(
            db,
            email=snapshot["email"],
            password=snapshot["password"],
            name=snapshot["name"],
            role=UserRole.ARTIST,
            phone_number=snapshot["phone"],
        )
    except IntegrityError:
        db.rollback()
        user = crud_user.get_user_by_email(db, snapshot["email"])
        if user is None:
            raise
        return user


def _get_or_create_profile(
    db: Session, user: models.User, snapshot: Dict[str, Any]
) -> models.ArtistProfile:
    profile = crud_artist.get_profile(db, user.id)
    if profile:
        return profile
    artist_type = snapshot["artist_type"]
    subscription = (
        SubscriptionStatus.INACTIVE if artist_type == ArtistType.PHYSICAL else SubscriptionStatus.ACTIVE
    )
    profile = models.ArtistProfile(
        user_id=user.id,
        category_id=snapshot["category_id"],
        artist_type=artist_type,
        bio=snapshot["bio"],
        profile_image=snapshot["profile_image"],
        skills=snapshot["skills"] or [],
        hourly_rate=snapshot["hourly_rate"] or 0,
        pricing=snapshot["pricing"],
        delivery_time=snapshot["delivery_time"],
        availability=snapshot["availability"] or {},
        rating=0.0,
        total_reviews=0,
        status=ArtistStatus.APPROVED,
        verified_at=datetime.utcnow(),
        subscription_status=subscription,
    )
    db.add(profile)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        profile = crud_artist.get_profile(db, user.id)
        if profile is None:
            raise
        return profile
    db.refresh(profile)
    return profile


def _migrate(db: Session, snapshot: Dict[str, Any]) -> Tuple[models.User, models.ArtistProfile]:
    user = _get_or_create_identity(db, snapshot)
    if user.role != UserRole.ARTIST:
        raise ConflictError("An account with this email already exists with a different role")
    return user, _get_or_create_profile(db, user, snapshot)


def _auto_reject(db: Session, snapshot: Dict[str, Any], existing: models.User) -> None:
    rejected = crud_artist.compare_and_set_application_status(
        db, snapshot["id"], ApplicationStatus.PENDING, ApplicationStatus.REJECTED
    )
    if not rejected:
        db.rollback()
        raise ConflictError("Application was decided by another request")
    db.commit()
    _cleanup(db, snapshot["id"])
    logger.warning(
        "Application %s auto-rejected: %s already registered as %s",
        snapshot["id"],
        snapshot["email"],
        existing.role.value,
    )
    email_utils.send_application_rejected(
        snapshot["email"],
        snapshot["name"],
        "This email is already registered to a non-artist account.",
    )
    raise ConflictError("An account with this email already exists with a different role")


def _finish_claimed_approval(db: Session, snapshot: Dict[str, Any]) -> models.ArtistProfile:
    """Converge on the identity and profile of an application someone already approved.

    The run that claimed the application sends the notifications; this path
    only completes the migration and removes the application.
    """
    user, profile = _migrate(db, snapshot)
    _cleanup(db, snapshot["id"])
    db.refresh(profile)
    logger.info("Application %s already approved; profile %s", snapshot["id"], user.id)
    return profile


def approve_application(
    db: Session, application_id: int, actor: models.User
) -> models.ArtistProfile:
    _require_admin(actor)
    application = crud_artist.get_application(db, application_id)
    if not application:
        raise NotFoundError("Application not found")
    snapshot = _snapshot(application)
    current_status = application.status

    if current_status == ApplicationStatus.REJECTED:
        _cleanup(db, application_id)
        raise BadRequestError("Application was already rejected")
    if current_status == ApplicationStatus.APPROVED:
        return _finish_claimed_approval(db, snapshot)

    existing = crud_user.get_user_by_email(db, snapshot["email"])
    if existing and existing.role != UserRole.ARTIST:
        _auto_reject(db, snapshot, existing)

    # Claim the application before creating anything
    claimed = crud_artist.compare_and_set_application_status(
        db, application_id, ApplicationStatus.PENDING, ApplicationStatus.APPROVED
    )
    if not claimed:
        db.rollback()
        current = crud_artist.get_application(db, application_id)
        if current is not None and current.status == ApplicationStatus.APPROVED:
            return _finish_claimed_approval(db, snapshot)
        raise ConflictError("Application was decided by another request")
    db.commit()

    user, profile = _migrate(db, snapshot)

    notify(
        db,
        user.id,
        RecipientKind.ARTIST,
        NotificationType.APPROVAL_STATUS,
        "Application approved",
        "Your artist application was approved. Welcome aboard!",
    )
    email_utils.send_application_approved(snapshot["email"], snapshot["name"])
    _cleanup(db, application_id)
    db.refresh(profile)
    logger.info("Application %s approved as artist %s", application_id, user.id)
    metrics_incr("artist.application_approved")
    return profile


def reject_application(
    db: Session, application_id: int, actor: models.User, reason: Optional[str] = None
) -> dict:
    _require_admin(actor)
    application = crud_artist.get_application(db, application_id)
    if not application:
        raise NotFoundError("Application not found")
    if application.status == ApplicationStatus.APPROVED:
        raise BadRequestError("Application was already approved")

    name, email = application.name, application.email
    if application.status == ApplicationStatus.PENDING:
        rejected = crud_artist.compare_and_set_application_status(
            db, application_id, ApplicationStatus.PENDING, ApplicationStatus.REJECTED
        )
        if not rejected:
            db.rollback()
            raise ConflictError("Application was decided by another request")
        db.commit()
    _cleanup(db, application_id)
    email_utils.send_application_rejected(email, name, reason)
    logger.info("Application %s rejected", application_id)
    metrics_incr("artist.application_rejected")
    return {"id": application_id, "email": email, "status": ApplicationStatus.REJECTED.value}


def set_artist_status(
    db: Session,
    artist_id: int,
    actor: models.User,
    status: ArtistStatus,
    reason: Optional[str] = None,
) -> models.ArtistProfile:
    _require_admin(actor)
    status = ArtistStatus(status)
    if status not in ADMIN_SETTABLE_STATUSES:
        raise BadRequestError("Artist status can only be set to approved or suspended")
    profile = crud_artist.get_profile(db, artist_id)
    if not profile:
        raise NotFoundError("Artist not found")
    crud_artist.set_profile_status(db, artist_id, status, reason)
    db.commit()
    db.refresh(profile)
    logger.info("Artist %s status set to %s", artist_id, status.value)

    body = f"Your artist account is now {status.value}."
    if reason:
        body += f" Reason: {reason}"
    notify(
        db,
        artist_id,
        RecipientKind.ARTIST,
        NotificationType.APPROVAL_STATUS,
        "Account status updated",
        body,
    )
    return profile
