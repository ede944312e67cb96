import logging
from typing import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from erp_pricing.core.security import decode_access_token
from erp_pricing.database.connection import get_db
from erp_pricing.models.user import User
from erp_pricing.services.user_service import get_user_by_username

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    token_data = decode_access_token(token)
    if not token_data.username:
        raise _unauthorized("Could not validate credentials")

    user = get_user_by_username(db, token_data.username)
    if not user:
        logger.info("Token for unknown user %r rejected", token_data.username)
        raise _unauthorized("User not found")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user")
    return user


def require_auth(user: User = Depends(get_current_user)) -> User:
    return user


def require_role(role: str) -> Callable[..., User]:
    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role != role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{role.capitalize()} privileges required",
            )
        return user

    return dependency


require_admin = require_role("admin")
