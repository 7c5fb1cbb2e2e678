from sqlalchemy import Column, Integer, String, Text, Numeric, ForeignKey, JSON
from sqlalchemy.orm import relationship
import enum

from .base import BaseModel
from .types import CaseInsensitiveEnum


class ApplicationStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PendingArtist(BaseModel):
    """Artist registration awaiting an admin decision.

    The row is deleted once approved or rejected; ``password`` already holds
    the bcrypt hash and is carried over to the new identity as-is.
    """

    __tablename__ = "pending_artists"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, nullable=True)
    password = Column(String, nullable=False)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    bio = Column(Text, nullable=True)
    profile_image = Column(String, nullable=True)
    skills = Column(JSON, nullable=True)
    hourly_rate = Column(Numeric(10, 2), nullable=False, default=0)
    pricing = Column(JSON, nullable=True)
    delivery_time = Column(Integer, nullable=True)
    availability = Column(JSON, nullable=True)

    status = Column(
        CaseInsensitiveEnum(ApplicationStatus, name="applicationstatus"),
        nullable=False,
        default=ApplicationStatus.PENDING,
        index=True,
    )

    category = relationship("Category")
