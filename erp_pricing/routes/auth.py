from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from erp_pricing.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    verify_password,
)
from erp_pricing.database.connection import get_db
from erp_pricing.dependencies.auth import require_admin
from erp_pricing.schemas.user import RefreshRequest, RoleUpdate, Token, UserCreate, UserResponse
from erp_pricing.services.user_service import create_user, get_user_by_username, set_user_role

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/register", response_model=UserResponse)
def register_user(data: UserCreate, db: Session = Depends(get_db)):
    if get_user_by_username(db, data.username):
        raise HTTPException(status_code=400, detail="Username already taken")

    # self-registered accounts are always plain users
    return create_user(db, data.username, data.password, email=data.email, role="user")


@router.put(
    "/users/{username}/role",
    response_model=UserResponse,
    dependencies=[Depends(require_admin)],
)
def change_role(username: str, body: RoleUpdate, db: Session = Depends(get_db)):
    user = set_user_role(db, username, body.role)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.post("/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    user = get_user_by_username(db, form_data.username)

    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")

    claims = {"sub": user.username, "role": user.role}
    return Token(
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
    )


@router.post("/refresh", response_model=Token)
def refresh_token(body: RefreshRequest):
    payload = decode_refresh_token(body.refresh_token)

    if not payload.username:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")

    return Token(access_token=create_access_token({"sub": payload.username, "role": payload.role}))
