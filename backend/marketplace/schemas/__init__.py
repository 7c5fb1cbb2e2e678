from .common import Envelope, ok
from .user import UserBase, CustomerCreate, UserResponse, Token, TokenData
from .artist import (
    ArtistApplicationCreate,
    ArtistApplicationResponse,
    ApplicationDecision,
    ArtistProfileResponse,
    ArtistStatusUpdate,
)
from .booking import BookingCreate, BookingDecision, BookingResponse
from .payment import (
    PaymentIntentCreate,
    PaymentIntentResponse,
    PaymentConfirm,
    RefundCreate,
    PaymentResponse,
    ConfirmationOutcome,
    PaymentConfirmationResponse,
)
from .review import ReviewBase, ReviewCreate, ReviewUpdate, ReviewVisibility, ReviewResponse
