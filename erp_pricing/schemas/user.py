from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class UserBase(BaseModel):
    username: str = Field(min_length=3)
    email: Optional[EmailStr] = None


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class RoleUpdate(BaseModel):
    role: Literal["admin", "user"]


class UserResponse(UserBase):
    id: int
    role: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenData(BaseModel):
    username: Optional[str] = None
    role: Optional[str] = None
    token_type: Optional[str] = None
