from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from erp_pricing.database.connection import get_db
from erp_pricing.dependencies.auth import require_admin, require_auth
from erp_pricing.dependencies.stores import get_store_or_404
from erp_pricing.models.store import Store
from erp_pricing.schemas.store import StoreCreate, StoreResponse
from erp_pricing.services.store_service import create_store, get_store_by_code, get_stores

router = APIRouter(prefix="/stores", tags=["Stores"])


@router.post("/", response_model=StoreResponse, status_code=201, dependencies=[Depends(require_admin)])
def create(data: StoreCreate, db: Session = Depends(get_db)):
    if get_store_by_code(db, data.code):
        raise HTTPException(status_code=409, detail="Store code already exists")
    return create_store(db, data)


@router.get("/", response_model=List[StoreResponse], dependencies=[Depends(require_auth)])
def list_stores(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return get_stores(db, skip=skip, limit=limit)


@router.get("/{store_id}", response_model=StoreResponse, dependencies=[Depends(require_auth)])
def get_one(store: Store = Depends(get_store_or_404)):
    return store
