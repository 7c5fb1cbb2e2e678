# backend/marketplace/schemas/user.py

from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime

from ..models.user import UserRole


class UserBase(BaseModel):
    email: EmailStr
    name: str = ""
    phone_number: Optional[str] = None


class CustomerCreate(UserBase):
    password: str = Field(min_length=6)


class UserResponse(UserBase):
    id: int
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = {
        "from_attributes": True
    }


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse


# TokenData for extracting “sub” (email) from JWT
class TokenData(BaseModel):
    email: Optional[str] = None
