from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from erp_pricing.database.connection import get_db
from erp_pricing.dependencies.auth import require_admin, require_auth
from erp_pricing.dependencies.stores import get_store_or_404
from erp_pricing.models.store import Store
from erp_pricing.schemas.pricing_rule import PricingRuleCreate, PricingRuleResponse, PricingRuleUpdate
from erp_pricing.services.pricing_service.models import to_naive_utc
from erp_pricing.services.pricing_service.pricing_service import (
    activate_pricing_rule,
    create_pricing_rule,
    deactivate_pricing_rule,
    get_live_pricing_rules,
    get_pricing_rule,
    get_pricing_rules,
    update_pricing_rule,
)

router = APIRouter(tags=["Pricing Rules"])


def _duplicate_code(db: Session) -> HTTPException:
    db.rollback()
    return HTTPException(status_code=409, detail="A pricing rule with this rule_code already exists")


@router.post(
    "/stores/{store_id}/pricing-rules",
    response_model=PricingRuleResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
def create_rule(
    rule: PricingRuleCreate,
    store: Store = Depends(get_store_or_404),
    db: Session = Depends(get_db),
):
    try:
        return create_pricing_rule(db, store.id, rule)
    except IntegrityError as exc:
        raise _duplicate_code(db) from exc


@router.get(
    "/stores/{store_id}/pricing-rules",
    response_model=List[PricingRuleResponse],
    dependencies=[Depends(require_auth)],
)
def list_rules(
    skip: int = 0,
    limit: int = 100,
    active_only: bool = False,
    store: Store = Depends(get_store_or_404),
    db: Session = Depends(get_db),
):
    return get_pricing_rules(db, store.id, skip=skip, limit=limit, active_only=active_only)


@router.get(
    "/stores/{store_id}/pricing-rules/active",
    response_model=List[PricingRuleResponse],
    dependencies=[Depends(require_auth)],
)
def list_live_rules(
    as_of: Optional[datetime] = None,
    store: Store = Depends(get_store_or_404),
    db: Session = Depends(get_db),
):
    """Rules that would be considered by the engine right now (or at ``as_of``)."""
    return get_live_pricing_rules(db, store.id, to_naive_utc(as_of))


@router.get("/pricing-rules/{rule_id}", response_model=PricingRuleResponse, dependencies=[Depends(require_auth)])
def get_rule(rule_id: int, db: Session = Depends(get_db)):
    rule = get_pricing_rule(db, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


@router.put("/pricing-rules/{rule_id}", response_model=PricingRuleResponse, dependencies=[Depends(require_admin)])
def update_rule(rule_id: int, rule: PricingRuleUpdate, db: Session = Depends(get_db)):
    try:
        updated = update_pricing_rule(db, rule_id, rule)
    except IntegrityError as exc:
        raise _duplicate_code(db) from exc
    if not updated:
        raise HTTPException(status_code=404, detail="Rule not found")
    return updated


@router.delete("/pricing-rules/{rule_id}", response_model=PricingRuleResponse, dependencies=[Depends(require_admin)])
def deactivate_rule(rule_id: int, db: Session = Depends(get_db)):
    rule = deactivate_pricing_rule(db, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


@router.post(
    "/pricing-rules/{rule_id}/activate",
    response_model=PricingRuleResponse,
    dependencies=[Depends(require_admin)],
)
def activate_rule(rule_id: int, db: Session = Depends(get_db)):
    rule = activate_pricing_rule(db, rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule
