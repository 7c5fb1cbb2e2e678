from __future__ import annotations

import logging
import os
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional

from ..database import SessionLocal
from ..models import User, UserRole
from ..utils.auth import get_password_hash, normalize_email

logger = logging.getLogger(__name__)


def ensure_default_admin(session: Optional[Session] = None) -> Optional[User]:
    """Create the first admin account from the environment if none exists.

    Requires DEFAULT_ADMIN_EMAIL and DEFAULT_ADMIN_PASSWORD; disabled with
    DEFAULT_ADMIN_BOOTSTRAP=0. An existing user with that email is promoted
    only when it is not an artist.
    """
    if os.getenv("DEFAULT_ADMIN_BOOTSTRAP", "1") not in ("1", "true", "TRUE", "yes", "on"):
        return None
    email = os.getenv("DEFAULT_ADMIN_EMAIL", "").strip()
    password = os.getenv("DEFAULT_ADMIN_PASSWORD", "")
    if not email or not password:
        return None

    owns_session = session is None
    session = session or SessionLocal()
    try:
        if session.query(User).filter(User.role == UserRole.ADMIN).count() > 0:
            return None

        email = normalize_email(email)
        user = session.query(User).filter(User.email == email).first()
        if user and user.role == UserRole.ARTIST:
            logger.warning("Default admin %s is an artist account; not promoting", email)
            return None
        if not user:
            user = User(
                email=email,
                password=get_password_hash(password),
                name="Admin",
                role=UserRole.ADMIN,
                is_active=True,
            )
            session.add(user)
        else:
            user.role = UserRole.ADMIN
        session.commit()
        session.refresh(user)
        logger.info("Bootstrapped default admin %s", email)
        return user
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("Default admin bootstrap failed: %s", exc)
        return None
    finally:
        if owns_session:
            session.close()
