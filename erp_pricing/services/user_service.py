import logging
from typing import Optional

from sqlalchemy.orm import Session

from erp_pricing.core.security import get_password_hash
from erp_pricing.models.user import User

logger = logging.getLogger(__name__)


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def create_user(
    db: Session,
    username: str,
    password: str,
    email: Optional[str] = None,
    role: str = "user",
) -> User:
    user = User(
        username=username,
        email=email,
        hashed_password=get_password_hash(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def set_user_role(db: Session, username: str, role: str) -> Optional[User]:
    user = get_user_by_username(db, username)
    if not user:
        return None
    user.role = role
    db.commit()
    db.refresh(user)
    return user


def ensure_admin(db: Session, username: Optional[str], password: Optional[str]) -> Optional[User]:
    """
    Seed the first administrator from configuration.

    Self-registration only ever creates plain users, so this is how a fresh
    deployment gets its first admin. An existing account is promoted, its
    password left untouched.
    """
    if not username or not password:
        return None

    user = get_user_by_username(db, username)
    if user is None:
        logger.info("Creating bootstrap admin %r", username)
        return create_user(db, username, password, role="admin")
    if user.role != "admin":
        logger.info("Promoting %r to admin", username)
        return set_user_role(db, username, "admin")
    return user
