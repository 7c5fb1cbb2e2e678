from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session, joinedload
from jose import JWTError, jwt

from ..database import get_db
from ..models.user import User, UserRole
from ..services.payment_provider import PaymentProviderClient
from ..utils.auth import normalize_email
from ..utils.errors import ForbiddenError
from .auth import oauth2_scheme, SECRET_KEY, ALGORITHM


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        email: str = payload.get("sub")
        if email is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    # Eager load artist_profile so role checks below don't issue another query
    user = (
        db.query(User)
        .options(joinedload(User.artist_profile))
        .filter(User.email == normalize_email(email))
        .first()
    )
    if user is None:
        raise credentials_exception
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return current_user


def get_current_customer(current_user: User = Depends(get_current_active_user)) -> User:
    if current_user.role != UserRole.CUSTOMER:
        raise ForbiddenError("Only customers can perform this action")
    return current_user


def get_current_artist(current_user: User = Depends(get_current_active_user)) -> User:
    """Active artist with a profile, or an admin acting on their behalf."""
    if current_user.role == UserRole.ADMIN:
        return current_user
    if current_user.role != UserRole.ARTIST:
        raise ForbiddenError("Only artists can perform this action")
    if not current_user.artist_profile:
        raise ForbiddenError("Artist profile does not exist")
    return current_user


def get_current_admin(current_user: User = Depends(get_current_active_user)) -> User:
    if current_user.role != UserRole.ADMIN:
        raise ForbiddenError("Admin privileges required")
    return current_user


def get_payment_provider() -> PaymentProviderClient:
    return PaymentProviderClient()
