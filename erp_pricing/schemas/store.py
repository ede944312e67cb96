from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class StoreBase(BaseModel):
    name: str = Field(min_length=1)
    code: str = Field(min_length=1)
    currency: str = "USD"
    is_active: bool = True


class StoreCreate(StoreBase):
    pass


class StoreResponse(StoreBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
