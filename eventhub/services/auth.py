"""Password hashing, bearer tokens and the current-user dependencies."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from eventhub.config import get_settings
from eventhub.database import get_db
from eventhub.errors import ConflictError, ForbiddenError, UnauthorizedError
from eventhub.models import User, UserRole

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# auto_error=False so a missing header becomes our Unauthorized, not FastAPI's 403
bearer_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def create_access_token(user: User, expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    payload = {
        "sub": str(user.id),
        "role": user.role.value,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> int:
    """Return the user id carried by a token, or raise UnauthorizedError."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        return int(payload["sub"])
    except (JWTError, KeyError, ValueError):
        raise UnauthorizedError("Invalid or expired token")


def register_user(
    db: Session,
    *,
    email: str,
    name: str,
    password: str,
    role: UserRole,
    company_name: Optional[str] = None,
    contact_details: Optional[str] = None,
) -> User:
    email = email.lower().strip()
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("User with this email already exists")

    user = User(
        email=email,
        name=name,
        role=role,
        password_hash=hash_password(password),
        company_name=company_name,
        contact_details=contact_details,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered %s user %s", role.value, user.id)
    return user


def authenticate(db: Session, email: str, password: str) -> User:
    user = db.query(User).filter(User.email == email.lower().strip()).first()
    if not user or not verify_password(password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")
    return user


def change_password(db: Session, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise UnauthorizedError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    db.commit()


def update_profile(db: Session, user: User, changes: dict) -> User:
    """Apply profile fields; the email and password are changed elsewhere."""
    for field, value in changes.items():
        if field in ("name", "role") and value is None:
            continue
        setattr(user, field, value)
    db.commit()
    db.refresh(user)
    logger.info("User %s updated profile fields %s", user.id, sorted(changes))
    return user


def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """The caller if a valid bearer token was sent, else None."""
    if credentials is None:
        return None
    user_id = decode_access_token(credentials.credentials)
    return db.query(User).filter(User.id == user_id).first()


def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise UnauthorizedError()
    return user


def require_organizer(user: User = Depends(get_current_user)) -> User:
    if user.role != UserRole.ORGANIZER:
        raise ForbiddenError("Organizer access required")
    return user
