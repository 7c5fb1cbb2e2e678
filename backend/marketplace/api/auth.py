# backend/marketplace/api/auth.py

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import jwt
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import Optional
import logging

from ..core.config import settings
from ..crud.crud_user import user as crud_user
from ..database import get_db
from ..models.user import User, UserRole
from ..schemas import (
    ArtistApplicationCreate,
    ArtistApplicationResponse,
    CustomerCreate,
    Envelope,
    Token,
    UserResponse,
    ok,
)
from ..services import artist_approval
from ..utils.auth import verify_password, normalize_email
from ..utils.errors import ConflictError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

# JWT Configuration
SECRET_KEY = settings.SECRET_KEY
ALGORITHM = settings.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = settings.ACCESS_TOKEN_EXPIRE_MINUTES

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return crud_user.get_user_by_email(db, email)


@router.post(
    "/register",
    response_model=Envelope[UserResponse],
    status_code=status.HTTP_201_CREATED,
)
def register(user_data: CustomerCreate, db: Session = Depends(get_db)):
    """Register a customer account. Artists apply through ``/register/artist``."""
    email = normalize_email(user_data.email)
    if get_user_by_email(db, email):
        raise ConflictError("That email already has an account. Sign in instead.")
    try:
        db_user = crud_user.create_user(
            db,
            email=email,
            password=user_data.password,
            name=user_data.name,
            role=UserRole.CUSTOMER,
            phone_number=user_data.phone_number,
        )
    except IntegrityError:
        db.rollback()
        raise ConflictError("That email already has an account. Sign in instead.")
    logger.info("Registered customer %s", db_user.id)
    return ok(db_user)


@router.post(
    "/register/artist",
    response_model=Envelope[ArtistApplicationResponse],
    status_code=status.HTTP_201_CREATED,
)
def register_artist(data: ArtistApplicationCreate, db: Session = Depends(get_db)):
    application = artist_approval.submit_application(db, data)
    return ok(
        application,
        "Artist registration submitted successfully. Please wait for admin approval.",
    )


@router.post("/login", response_model=Token)
def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    email = normalize_email(form_data.username)
    user = get_user_by_email(db, email)
    if not user or not verify_password(form_data.password, user.password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    access_token = create_access_token({"sub": user.email, "role": user.role.value})
    return {"access_token": access_token, "token_type": "bearer", "user": user}
