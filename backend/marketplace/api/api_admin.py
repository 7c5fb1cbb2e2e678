from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..database import get_db
from ..models import User
from ..schemas import (
    ApplicationDecision,
    ArtistApplicationResponse,
    ArtistProfileResponse,
    ArtistStatusUpdate,
    Envelope,
    PaymentResponse,
    RefundCreate,
    ReviewResponse,
    ReviewVisibility,
    ok,
)
from ..services import artist_approval, payment_escrow, rating_aggregator
from ..services.payment_provider import PaymentProviderClient
from .dependencies import get_current_admin, get_payment_provider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


@router.get("/artist-applications", response_model=Envelope[List[ArtistApplicationResponse]])
def list_pending_applications(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    return ok(artist_approval.list_pending_applications(db, admin, skip=skip, limit=limit))


@router.post(
    "/artist-applications/{application_id}/approve",
    response_model=Envelope[ArtistProfileResponse],
)
def approve_application(
    application_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    profile = artist_approval.approve_application(db, application_id, admin)
    return ok(profile, "Artist approved")


@router.post("/artist-applications/{application_id}/reject", response_model=Envelope[dict])
def reject_application(
    application_id: int,
    decision: Optional[ApplicationDecision] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    reason = decision.reason if decision else None
    return ok(artist_approval.reject_application(db, application_id, admin, reason), "Artist rejected")


@router.patch("/artists/{artist_id}/status", response_model=Envelope[ArtistProfileResponse])
def set_artist_status(
    artist_id: int,
    update: ArtistStatusUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    profile = artist_approval.set_artist_status(db, artist_id, admin, update.status, update.reason)
    return ok(profile)


@router.post("/payments/{payment_id}/refund", response_model=Envelope[PaymentResponse])
def refund_payment(
    payment_id: int,
    refund_in: Optional[RefundCreate] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
    provider: PaymentProviderClient = Depends(get_payment_provider),
):
    amount = refund_in.amount if refund_in else None
    payment = payment_escrow.refund_payment(db, payment_id, admin, provider, amount)
    return ok(payment, "Payment refunded")


@router.patch("/reviews/{review_id}/visibility", response_model=Envelope[ReviewResponse])
def set_review_visibility(
    review_id: int,
    visibility: ReviewVisibility,
    db: Session = Depends(get_db),
    admin: User = Depends(get_current_admin),
):
    review = rating_aggregator.set_review_visibility(db, review_id, admin, visibility.is_visible)
    return ok(review)
