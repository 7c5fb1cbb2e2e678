from .crud_user import user
from .crud_artist import artist
from .crud_booking import booking
from .crud_review import review
from . import crud_payment
from . import crud_notification
from . import crud_chat

# Usage: `crud.booking.get_booking(db, id)`, `crud.crud_payment.get_payment(db, id)`
