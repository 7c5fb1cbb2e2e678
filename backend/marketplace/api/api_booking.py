from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from ..database import get_db
from ..models import BookingStatus, User
from ..schemas import BookingCreate, BookingDecision, BookingResponse, Envelope, ok
from ..services import booking_lifecycle
from ..services.payment_provider import PaymentProviderClient
from .dependencies import (
    get_current_active_user,
    get_current_artist,
    get_current_customer,
    get_payment_provider,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bookings"])


@router.post("/", response_model=Envelope[BookingResponse], status_code=status.HTTP_201_CREATED)
def create_booking(
    *,
    db: Session = Depends(get_db),
    booking_in: BookingCreate,
    current_customer: User = Depends(get_current_customer),
):
    """Create a pending booking with a remote, approved artist."""
    booking = booking_lifecycle.create_booking(db, current_customer, booking_in)
    return ok(booking, "Booking created")


@router.get("/", response_model=Envelope[List[BookingResponse]])
def list_my_bookings(
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    bookings = booking_lifecycle.list_bookings(
        db, current_user, status=status_filter, skip=skip, limit=limit
    )
    return ok(bookings)


@router.get("/{booking_id}", response_model=Envelope[BookingResponse])
def read_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return ok(booking_lifecycle.get_booking(db, booking_id, current_user))


@router.patch("/{booking_id}/accept", response_model=Envelope[BookingResponse])
def accept_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_artist: User = Depends(get_current_artist),
):
    return ok(booking_lifecycle.accept_booking(db, booking_id, current_artist), "Booking accepted")


@router.patch("/{booking_id}/reject", response_model=Envelope[BookingResponse])
def reject_booking(
    booking_id: int,
    decision: Optional[BookingDecision] = None,
    db: Session = Depends(get_db),
    current_artist: User = Depends(get_current_artist),
):
    reason = decision.reason if decision else None
    return ok(
        booking_lifecycle.reject_booking(db, booking_id, current_artist, reason),
        "Booking declined",
    )


@router.patch("/{booking_id}/complete", response_model=Envelope[BookingResponse])
def complete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_artist: User = Depends(get_current_artist),
):
    return ok(booking_lifecycle.complete_booking(db, booking_id, current_artist), "Booking completed")


@router.patch("/{booking_id}/cancel", response_model=Envelope[BookingResponse])
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    provider: PaymentProviderClient = Depends(get_payment_provider),
):
    return ok(
        booking_lifecycle.cancel_booking(db, booking_id, current_user, provider),
        "Booking cancelled",
    )
