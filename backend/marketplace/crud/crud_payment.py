from datetime import datetime
from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Any, Dict, Iterable, List, Optional

from .. import models
from ..models.payment import PaymentStatus


def get_payment(db: Session, payment_id: int) -> Optional[models.Payment]:
    return db.query(models.Payment).filter(models.Payment.id == payment_id).first()


def get_payment_by_transaction(db: Session, provider_transaction_id: str) -> Optional[models.Payment]:
    return (
        db.query(models.Payment)
        .filter(models.Payment.provider_transaction_id == provider_transaction_id)
        .first()
    )


def get_payment_for_booking(
    db: Session,
    booking_id: int,
    statuses: Optional[Iterable[PaymentStatus]] = None,
) -> Optional[models.Payment]:
    query = db.query(models.Payment).filter(models.Payment.booking_id == booking_id)
    if statuses is not None:
        query = query.filter(models.Payment.status.in_(list(statuses)))
    else:
        query = query.filter(models.Payment.status != PaymentStatus.FAILED)
    return query.order_by(models.Payment.id.desc()).first()


def list_payments_for_user(
    db: Session, user_id: int, skip: int = 0, limit: int = 100
) -> List[models.Payment]:
    return (
        db.query(models.Payment)
        .filter(or_(models.Payment.customer_id == user_id, models.Payment.artist_id == user_id))
        .order_by(models.Payment.created_at.desc(), models.Payment.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def list_all_payments(db: Session, skip: int = 0, limit: int = 100) -> List[models.Payment]:
    return (
        db.query(models.Payment)
        .order_by(models.Payment.created_at.desc(), models.Payment.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def add_payment(db: Session, **fields: Any) -> models.Payment:
    """Stage a new payment row and flush it. Caller commits."""
    db_obj = models.Payment(**fields)
    db.add(db_obj)
    db.flush()
    return db_obj


def compare_and_set_status(
    db: Session,
    payment_id: int,
    expected: Iterable[PaymentStatus],
    new: PaymentStatus,
    extra: Optional[Dict[Any, Any]] = None,
) -> bool:
    """Move a payment out of one of ``expected`` into ``new``. Caller commits."""
    values: Dict[Any, Any] = {
        models.Payment.status: new,
        models.Payment.updated_at: datetime.utcnow(),
    }
    if extra:
        values.update(extra)
    matched = (
        db.query(models.Payment)
        .filter(
            models.Payment.id == payment_id,
            models.Payment.status.in_(list(expected)),
        )
        .update(values, synchronize_session=False)
    )
    return matched == 1
