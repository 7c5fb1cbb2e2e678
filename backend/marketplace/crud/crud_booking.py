from datetime import datetime
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional

from .. import models
from ..models.booking_status import BookingStatus, BookingPaymentStatus


class CRUDBooking:
    def get_booking(self, db: Session, booking_id: int) -> Optional[models.Booking]:
        return db.query(models.Booking).filter(models.Booking.id == booking_id).first()

    def get_bookings_by_customer(
        self,
        db: Session,
        customer_id: int,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[models.Booking]:
        query = db.query(models.Booking).filter(models.Booking.customer_id == customer_id)
        return self._page(query, status, skip, limit)

    def get_bookings_by_artist(
        self,
        db: Session,
        artist_id: int,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[models.Booking]:
        query = db.query(models.Booking).filter(models.Booking.artist_id == artist_id)
        return self._page(query, status, skip, limit)

    def get_all_bookings(
        self,
        db: Session,
        status: Optional[BookingStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[models.Booking]:
        return self._page(db.query(models.Booking), status, skip, limit)

    @staticmethod
    def _page(query, status, skip, limit):
        if status is not None:
            query = query.filter(models.Booking.status == status)
        return (
            query.order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def create_booking(self, db: Session, **fields: Any) -> models.Booking:
        db_booking = models.Booking(
            **fields,
            status=BookingStatus.PENDING,
            payment_status=BookingPaymentStatus.PENDING,
        )
        db.add(db_booking)
        db.commit()
        db.refresh(db_booking)
        return db_booking

    def compare_and_set_status(
        self,
        db: Session,
        booking_id: int,
        expected: BookingStatus,
        new: BookingStatus,
        *,
        expected_payment_status: Optional[BookingPaymentStatus] = None,
        extra: Optional[Dict[Any, Any]] = None,
    ) -> bool:
        """Conditionally update a booking's status.

        The UPDATE is filtered on the expected prior status (and payment status
        when given); returns ``True`` only when exactly one row matched. The
        caller owns the commit so the update can share a transaction.
        """
        values: Dict[Any, Any] = {
            models.Booking.status: new,
            models.Booking.updated_at: datetime.utcnow(),
        }
        if extra:
            values.update(extra)
        query = db.query(models.Booking).filter(
            models.Booking.id == booking_id,
            models.Booking.status == expected,
        )
        if expected_payment_status is not None:
            query = query.filter(models.Booking.payment_status == expected_payment_status)
        matched = query.update(values, synchronize_session=False)
        return matched == 1

    def set_fields(self, db: Session, booking_id: int, values: Dict[Any, Any]) -> bool:
        """Unconditional update of back-links and payment status. Caller commits."""
        values = dict(values)
        values[models.Booking.updated_at] = datetime.utcnow()
        matched = (
            db.query(models.Booking)
            .filter(models.Booking.id == booking_id)
            .update(values, synchronize_session=False)
        )
        return matched == 1


booking = CRUDBooking()
