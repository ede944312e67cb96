import logging
from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.orm import Session

from erp_pricing.models.discount_usage import DiscountUsage
from erp_pricing.models.pricing_rule import PricingRule

logger = logging.getLogger(__name__)


def customer_usage_counts(db: Session, rule_ids: Iterable[int], client_id: Optional[str]) -> Dict[int, int]:
    """How many times ``client_id`` has already used each rule."""
    rule_ids = list(rule_ids)
    if client_id is None or not rule_ids:
        return {}
    rows = (
        db.query(DiscountUsage.pricing_rule_id, func.count(DiscountUsage.id))
        .filter(
            DiscountUsage.pricing_rule_id.in_(rule_ids),
            DiscountUsage.client_id == client_id,
        )
        .group_by(DiscountUsage.pricing_rule_id)
        .all()
    )
    return {rule_id: count for rule_id, count in rows}


def claim_rule_usage(
    db: Session,
    rule_id: int,
    client_id: Optional[str] = None,
    as_of: Optional[datetime] = None,
) -> bool:
    """
    Atomically take one use of a rule.

    The limit check and the increment are one UPDATE, so two concurrent
    claims can never both pass the last free slot. Returns False when the
    rule is exhausted (globally or for this client), or no longer live:
    deactivated or outside its window at ``as_of`` since it was loaded.
    """
    as_of = as_of or datetime.utcnow()
    guards = [
        PricingRule.id == rule_id,
        PricingRule.is_active.is_(True),
        or_(PricingRule.start_date.is_(None), PricingRule.start_date <= as_of),
        or_(PricingRule.end_date.is_(None), PricingRule.end_date >= as_of),
        or_(
            PricingRule.usage_limit.is_(None),
            PricingRule.usage_count < PricingRule.usage_limit,
        ),
    ]
    if client_id is not None:
        used = (
            select(func.count(DiscountUsage.id))
            .where(
                DiscountUsage.pricing_rule_id == rule_id,
                DiscountUsage.client_id == client_id,
            )
            .scalar_subquery()
        )
        guards.append(
            or_(
                PricingRule.usage_limit_per_customer.is_(None),
                used < PricingRule.usage_limit_per_customer,
            )
        )

    stmt = (
        update(PricingRule)
        .where(and_(*guards))
        .values(usage_count=PricingRule.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)

    if result.rowcount != 1:
        logger.info("Usage claim lost for pricing rule %s (client=%s)", rule_id, client_id)
        return False
    return True


def record_usage(
    db: Session,
    rule_id: int,
    client_id: Optional[str],
    document_ref: Optional[str],
    original_amount: float,
    final_amount: float,
) -> DiscountUsage:
    usage = DiscountUsage(
        pricing_rule_id=rule_id,
        client_id=client_id,
        document_ref=document_ref,
        original_amount=original_amount,
        final_amount=final_amount,
        discount_amount=original_amount - final_amount,
    )
    db.add(usage)
    return usage
