from .user import User, UserRole
from .category import Category, ArtistType
from .artist_profile import ArtistProfile, ArtistStatus, SubscriptionStatus
from .pending_artist import PendingArtist, ApplicationStatus
from .booking import Booking
from .booking_status import BookingStatus, BookingPaymentStatus
from .payment import Payment, PaymentStatus
from .review import Review
from .notification import Notification, NotificationType, RecipientKind, RelatedKind
from .chat import ChatChannel

__all__ = [
    "User",
    "UserRole",
    "Category",
    "ArtistType",
    "ArtistProfile",
    "ArtistStatus",
    "SubscriptionStatus",
    "PendingArtist",
    "ApplicationStatus",
    "Booking",
    "BookingStatus",
    "BookingPaymentStatus",
    "Payment",
    "PaymentStatus",
    "Review",
    "Notification",
    "NotificationType",
    "RecipientKind",
    "RelatedKind",
    "ChatChannel",
]
