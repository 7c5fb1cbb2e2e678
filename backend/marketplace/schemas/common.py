from pydantic import BaseModel
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Success wrapper shared by every endpoint: ``{"success": true, "data": ...}``."""

    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


def ok(data=None, message: Optional[str] = None) -> dict:
    return {"success": True, "message": message, "data": data}
