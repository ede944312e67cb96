from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from erp_pricing.database.connection import get_db
from erp_pricing.models.store import Store
from erp_pricing.services.store_service import get_store


def get_store_or_404(store_id: int, db: Session = Depends(get_db)) -> Store:
    store = get_store(db, store_id)
    if not store:
        raise HTTPException(status_code=404, detail="Store not found")
    return store
