import json
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session, selectinload

from erp_pricing.models.pricing_rule import PricingRule, QuantityTier, RuleCondition, RuleTarget
from erp_pricing.schemas.pricing_rule import PricingRuleCreate, PricingRuleUpdate
from erp_pricing.services.pricing_service.models import in_window
from erp_pricing.services.pricing_service.rule_store import invalidate_store

logger = logging.getLogger(__name__)

_CHILDREN = {"conditions", "targets", "quantity_tiers"}


def _dump_list(values) -> Optional[str]:
    if values is None:
        return None
    return json.dumps(list(values))


def _build_children(db_rule: PricingRule, rule: PricingRuleCreate) -> None:
    db_rule.conditions = [
        RuleCondition(
            condition_type=c.condition_type.value,
            operator=c.operator.value,
            value_text=c.value_text,
            value_number=c.value_number,
            value_array=_dump_list(c.value_array),
            value_start=c.value_start,
            value_end=c.value_end,
            logical_operator=c.logical_operator.value,
            condition_group=c.condition_group,
        )
        for c in rule.conditions
    ]
    db_rule.targets = [
        RuleTarget(
            target_type=t.target_type.value,
            target_ids=_dump_list(t.target_ids),
            target_tags=_dump_list(t.target_tags),
        )
        for t in rule.targets
    ]
    db_rule.quantity_tiers = [
        QuantityTier(**tier.model_dump())
        for tier in sorted(rule.quantity_tiers, key=lambda t: t.min_quantity)
    ]


def _scalar_fields(rule: PricingRuleCreate) -> dict:
    data = rule.model_dump(exclude=_CHILDREN)
    data["rule_type"] = rule.rule_type.value
    return data


def create_pricing_rule(db: Session, store_id: int, rule: PricingRuleCreate) -> PricingRule:
    db_rule = PricingRule(store_id=store_id, **_scalar_fields(rule))
    _build_children(db_rule, rule)
    db.add(db_rule)
    db.commit()
    db.refresh(db_rule)
    invalidate_store(store_id)
    logger.info("Created pricing rule %s (%s) for store %s", db_rule.id, db_rule.name, store_id)
    return db_rule


def get_pricing_rules(
    db: Session,
    store_id: int,
    skip: int = 0,
    limit: int = 100,
    active_only: bool = False,
) -> List[PricingRule]:
    query = (
        db.query(PricingRule)
        .options(
            selectinload(PricingRule.conditions),
            selectinload(PricingRule.targets),
            selectinload(PricingRule.quantity_tiers),
        )
        .filter(PricingRule.store_id == store_id)
    )
    if active_only:
        query = query.filter(PricingRule.is_active.is_(True))
    return (
        query.order_by(PricingRule.priority.desc(), PricingRule.name.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_live_pricing_rules(db: Session, store_id: int, as_of: Optional[datetime] = None) -> List[PricingRule]:
    """Active rules whose validity window contains ``as_of`` (default now)."""
    as_of = as_of or datetime.utcnow()
    rules = get_pricing_rules(db, store_id, limit=None, active_only=True)
    return [r for r in rules if in_window(r.start_date, r.end_date, as_of)]


def get_pricing_rule(db: Session, rule_id: int) -> Optional[PricingRule]:
    return db.query(PricingRule).filter(PricingRule.id == rule_id).first()


def update_pricing_rule(db: Session, rule_id: int, rule_update: PricingRuleUpdate) -> Optional[PricingRule]:
    """Replace a rule's fields; conditions, targets and tiers are replaced wholesale."""
    db_rule = get_pricing_rule(db, rule_id)
    if not db_rule:
        return None

    for key, value in _scalar_fields(rule_update).items():
        setattr(db_rule, key, value)
    _build_children(db_rule, rule_update)

    db.commit()
    db.refresh(db_rule)
    invalidate_store(db_rule.store_id)
    return db_rule


def _set_active(db: Session, rule_id: int, active: bool) -> Optional[PricingRule]:
    db_rule = get_pricing_rule(db, rule_id)
    if not db_rule:
        return None
    db_rule.is_active = active
    db.commit()
    db.refresh(db_rule)
    invalidate_store(db_rule.store_id)
    logger.info("Pricing rule %s %s", rule_id, "activated" if active else "deactivated")
    return db_rule


def deactivate_pricing_rule(db: Session, rule_id: int) -> Optional[PricingRule]:
    return _set_active(db, rule_id, False)


def activate_pricing_rule(db: Session, rule_id: int) -> Optional[PricingRule]:
    return _set_active(db, rule_id, True)
