from sqlalchemy import Column, Integer, String, Boolean, Text
import enum

from .base import BaseModel
from .types import CaseInsensitiveEnum


class NotificationType(str, enum.Enum):
    NEW_BOOKING = "new_booking"
    BOOKING_ACCEPTED = "booking_accepted"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_CANCELLED = "booking_cancelled"
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_RELEASED = "payment_released"
    PAYMENT_REFUNDED = "payment_refunded"
    REVIEW_RECEIVED = "review_received"
    APPROVAL_STATUS = "approval_status"
    SYSTEM = "system"


class RecipientKind(str, enum.Enum):
    CUSTOMER = "customer"
    ARTIST = "artist"
    ADMIN = "admin"


class RelatedKind(str, enum.Enum):
    BOOKING = "booking"
    PAYMENT = "payment"
    REVIEW = "review"


class Notification(BaseModel):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    # No FK: recipients may be users or artist profiles keyed by user id
    recipient_id = Column(Integer, nullable=False, index=True)
    recipient_kind = Column(CaseInsensitiveEnum(RecipientKind, name="recipientkind"), nullable=False)
    type = Column(CaseInsensitiveEnum(NotificationType, name="notificationtype"), nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    related_id = Column(Integer, nullable=True)
    related_kind = Column(CaseInsensitiveEnum(RelatedKind, name="relatedkind"), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
