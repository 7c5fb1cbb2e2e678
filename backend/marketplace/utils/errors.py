from typing import Dict, Optional
from fastapi import status


class ServiceError(Exception):
    """Base class for errors raised by the booking, escrow and approval services.

    Each subclass carries a stable ``kind`` and HTTP status so the API layer
    can translate every failure uniformly.
    """

    kind = "error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors or {}

    def to_dict(self) -> dict:
        body = {"success": False, "kind": self.kind, "message": self.message}
        if self.field_errors:
            body["field_errors"] = self.field_errors
        return body


class NotFoundError(ServiceError):
    kind = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class BadRequestError(ServiceError):
    kind = "bad_request"
    status_code = status.HTTP_400_BAD_REQUEST


class ForbiddenError(ServiceError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ServiceError):
    kind = "conflict"
    status_code = status.HTTP_409_CONFLICT


class UnavailableError(ServiceError):
    """Transient provider or database failure; safe to retry."""

    kind = "unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True
