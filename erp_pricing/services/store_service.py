from typing import List, Optional

from sqlalchemy.orm import Session

from erp_pricing.models.store import Store
from erp_pricing.schemas.store import StoreCreate


def create_store(db: Session, data: StoreCreate) -> Store:
    store = Store(**data.model_dump())
    db.add(store)
    db.commit()
    db.refresh(store)
    return store


def get_stores(db: Session, skip: int = 0, limit: int = 100) -> List[Store]:
    return db.query(Store).order_by(Store.id).offset(skip).limit(limit).all()


def get_store(db: Session, store_id: int) -> Optional[Store]:
    return db.query(Store).filter(Store.id == store_id).first()


def get_store_by_code(db: Session, code: str) -> Optional[Store]:
    return db.query(Store).filter(Store.code == code).first()
