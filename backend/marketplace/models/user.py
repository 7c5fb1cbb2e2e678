# backend/marketplace/models/user.py

from sqlalchemy import Boolean, Column, Integer, String
from sqlalchemy.orm import relationship
from .base import BaseModel
from .types import CaseInsensitiveEnum
import enum


class UserRole(str, enum.Enum):
    """Enumeration of all supported user roles.

    A single email maps to a single account with exactly one role.
    """

    CUSTOMER = "customer"
    ARTIST = "artist"
    ADMIN = "admin"


class User(BaseModel):
    __tablename__ = "users"

    id           = Column(Integer, primary_key=True, index=True)
    email        = Column(String, unique=True, index=True, nullable=False)
    password     = Column(String, nullable=False)
    name         = Column(String, nullable=False, default="")
    phone_number = Column(String, nullable=True)
    role         = Column(CaseInsensitiveEnum(UserRole, name="userrole"), nullable=False, index=True)
    is_active    = Column(Boolean, default=True, nullable=False)

    # Artists have exactly one profile
    artist_profile = relationship(
        "ArtistProfile",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
