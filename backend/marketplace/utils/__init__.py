from .errors import (
    ServiceError,
    NotFoundError,
    BadRequestError,
    ForbiddenError,
    ConflictError,
    UnavailableError,
)
from .email import send_email
from .auth import normalize_email
