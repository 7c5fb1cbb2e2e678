from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from typing import List, Optional
import logging

from ..database import get_db
from ..models import User
from ..schemas import (
    Envelope,
    PaymentConfirm,
    PaymentConfirmationResponse,
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentResponse,
    ok,
)
from ..services import payment_escrow
from ..services.payment_provider import PaymentProviderClient, verify_webhook
from ..utils.metrics import incr as metrics_incr
from .dependencies import (
    get_current_active_user,
    get_current_customer,
    get_payment_provider,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["payments"])


def _confirmation_body(result: payment_escrow.PaymentConfirmation) -> dict:
    return {
        "outcome": result.outcome,
        "provider_status": result.provider_status,
        "payment": result.payment,
        "booking": result.booking,
    }


@router.post(
    "/intent",
    response_model=Envelope[PaymentIntentResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_payment_intent(
    intent_in: PaymentIntentCreate,
    db: Session = Depends(get_db),
    current_customer: User = Depends(get_current_customer),
    provider: PaymentProviderClient = Depends(get_payment_provider),
):
    """Start provider-side authorization for an accepted booking."""
    intent = payment_escrow.create_payment_intent(
        db, intent_in.booking_id, current_customer, provider
    )
    return ok(intent)


@router.post("/confirm", response_model=Envelope[PaymentConfirmationResponse])
def confirm_payment(
    confirm_in: PaymentConfirm,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
    provider: PaymentProviderClient = Depends(get_payment_provider),
):
    result = payment_escrow.confirm_payment(
        db, confirm_in.provider_transaction_id, provider, current_user
    )
    return ok(_confirmation_body(result), result.outcome.value)


@router.post("/webhook", response_model=Envelope[PaymentConfirmationResponse])
async def payment_webhook(
    request: Request,
    db: Session = Depends(get_db),
    provider: PaymentProviderClient = Depends(get_payment_provider),
    provider_signature: Optional[str] = Header(default=None, alias="Provider-Signature"),
):
    """Signed provider callback; ``payment_intent.succeeded`` runs confirmation."""
    raw = await request.body()
    event = verify_webhook(raw, provider_signature)
    event_type = event.get("type")
    metrics_incr("payment.webhook", tags={"type": event_type or "unknown"})
    if event_type != "payment_intent.succeeded":
        logger.info("Ignoring payment webhook event %s", event_type)
        return ok(None, "ignored")
    txn = ((event.get("data") or {}).get("object") or {}).get("id")
    if not txn:
        logger.warning("Payment webhook without a transaction id")
        return ok(None, "ignored")
    result = await run_in_threadpool(
        payment_escrow.confirm_payment, db, txn, provider, None, trusted=True
    )
    return ok(_confirmation_body(result), result.outcome.value)


@router.get("/", response_model=Envelope[List[PaymentResponse]])
def list_my_payments(
    skip: int = 0,
    limit: int = 100,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return ok(payment_escrow.list_payments(db, current_user, skip=skip, limit=limit))


@router.get("/{payment_id}", response_model=Envelope[PaymentResponse])
def read_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return ok(payment_escrow.get_payment(db, payment_id, current_user))


@router.post("/{payment_id}/release", response_model=Envelope[PaymentResponse])
def release_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    """Close escrow for a completed booking (customer or admin)."""
    return ok(payment_escrow.release_to_artist(db, payment_id, current_user), "Payment released")
