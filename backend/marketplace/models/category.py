from sqlalchemy import Column, Integer, String, Boolean, Text
from sqlalchemy.orm import relationship
import enum

from .base import BaseModel
from .types import CaseInsensitiveEnum


class ArtistType(str, enum.Enum):
    """How clients engage artists in a category.

    Physical artists are contacted directly; remote artists are booked and
    paid through escrow before chat opens.
    """

    PHYSICAL = "physical"
    REMOTE = "remote"


class Category(BaseModel):
    """Artist category; its type decides the artist type on approval."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    type = Column(CaseInsensitiveEnum(ArtistType, name="artisttype"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    artists = relationship("ArtistProfile", back_populates="category")
