import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from erp_pricing.core.config import settings
from erp_pricing.core.exceptions import MalformedRuleError, RuleStoreError
from erp_pricing.models.pricing_rule import PricingRule, QuantityTier, RuleCondition, RuleTarget
from erp_pricing.services.pricing_service.models import (
    Condition,
    ConditionValue,
    NumberValue,
    RangeValue,
    Rule,
    SetValue,
    Target,
    TextValue,
    Tier,
    normalize_id,
)

logger = logging.getLogger(__name__)


@dataclass
class LoadedRules:
    rules: List[Rule]
    skipped_rule_ids: List[int] = field(default_factory=list)


# ===================== IN-MEMORY CACHE =====================

# store_id -> (compiled rules, expires_at)
_RULE_CACHE: Dict[int, Tuple[LoadedRules, datetime]] = {}

CACHE_STATS = {"hits": 0, "misses": 0}


def _get_cached(store_id: int) -> Optional[LoadedRules]:
    """Return cached rules if not expired, else None."""
    entry = _RULE_CACHE.get(store_id)
    if not entry:
        return None
    value, expires_at = entry
    if datetime.utcnow() >= expires_at:
        _RULE_CACHE.pop(store_id, None)
        return None
    return value


def _set_cached(store_id: int, value: LoadedRules) -> None:
    ttl = settings.RULE_CACHE_TTL_SECONDS
    if ttl <= 0:
        return
    _RULE_CACHE[store_id] = (value, datetime.utcnow() + timedelta(seconds=ttl))


def invalidate_store(store_id: Optional[int] = None) -> None:
    """Drop cached rules for one store, or for all stores."""
    if store_id is None:
        _RULE_CACHE.clear()
    else:
        _RULE_CACHE.pop(store_id, None)


# ===================== FETCH =====================


def fetch_active_rules(db: Session, store_id: int) -> List[PricingRule]:
    """
    Active rules of a store with their children, priority desc then name asc.

    The validity window is not filtered here; the engine does that against
    the evaluation instant.
    """
    try:
        return (
            db.query(PricingRule)
            .options(
                selectinload(PricingRule.conditions),
                selectinload(PricingRule.targets),
                selectinload(PricingRule.quantity_tiers),
            )
            .filter(PricingRule.store_id == store_id, PricingRule.is_active.is_(True))
            .order_by(PricingRule.priority.desc(), PricingRule.name.asc())
            .all()
        )
    except SQLAlchemyError as exc:
        logger.error("Failed to load pricing rules for store %s: %s", store_id, exc)
        raise RuleStoreError(f"Could not load pricing rules for store {store_id}") from exc


def load_rules(db: Session, store_id: int) -> LoadedRules:
    cached = _get_cached(store_id)
    if cached is not None:
        CACHE_STATS["hits"] += 1
        return cached
    CACHE_STATS["misses"] += 1

    loaded = LoadedRules(rules=[])
    for row in fetch_active_rules(db, store_id):
        try:
            loaded.rules.append(compile_rule(row))
        except MalformedRuleError as exc:
            logger.warning("Skipping pricing rule %s: %s", exc.rule_id, exc.reason)
            loaded.skipped_rule_ids.append(row.id)

    _set_cached(store_id, loaded)
    return loaded


# ===================== COMPILE =====================


def _parse_json_list(raw: Optional[str], rule_id: int, column: str) -> Optional[List[Any]]:
    if raw is None or raw == "":
        return None
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedRuleError(rule_id, f"{column} is not valid JSON") from exc
    if not isinstance(value, list):
        raise MalformedRuleError(rule_id, f"{column} must be a JSON array")
    return value


def _id_set(raw: Optional[str], rule_id: int, column: str) -> FrozenSet[str]:
    values = _parse_json_list(raw, rule_id, column) or []
    return frozenset(normalize_id(v) for v in values if v is not None)


def _condition_value(row: RuleCondition, rule_id: int) -> Optional[ConditionValue]:
    operator = row.operator
    if operator in ("in", "not_in"):
        items = _parse_json_list(row.value_array, rule_id, "value_array")
        if items is None:
            return None
        return SetValue(frozenset(normalize_id(v) for v in items if v is not None))

    if operator == "between":
        if row.value_start is None or row.value_end is None:
            return None
        return RangeValue(float(row.value_start), float(row.value_end))

    if row.value_number is not None:
        return NumberValue(float(row.value_number))
    if row.value_text is not None:
        return TextValue(row.value_text)
    return None


def compile_condition(row: RuleCondition, rule_id: int) -> Condition:
    return Condition(
        condition_type=row.condition_type,
        operator=row.operator,
        value=_condition_value(row, rule_id),
        logical_operator=(row.logical_operator or "AND").upper(),
        group=row.condition_group if row.condition_group is not None else 1,
    )


def compile_target(row: RuleTarget, rule_id: int) -> Target:
    return Target(
        target_type=row.target_type,
        ids=_id_set(row.target_ids, rule_id, "target_ids"),
        tags=_id_set(row.target_tags, rule_id, "target_tags"),
    )


def compile_tier(row: QuantityTier) -> Tier:
    return Tier(
        min_quantity=row.min_quantity,
        max_quantity=row.max_quantity,
        price=row.tier_price,
        discount_percentage=row.tier_discount_percentage,
        discount_amount=row.tier_discount_amount,
    )


def compile_rule(row: PricingRule) -> Rule:
    """Turn an ORM rule into an engine rule. Raises MalformedRuleError."""
    return Rule(
        id=row.id,
        name=row.name,
        rule_type=row.rule_type,
        priority=row.priority or 0,
        discount_percentage=row.discount_percentage or 0.0,
        discount_amount=row.discount_amount or 0.0,
        fixed_price=row.fixed_price or 0.0,
        buy_quantity=row.buy_quantity or 0,
        get_quantity=row.get_quantity or 0,
        get_discount_percentage=row.get_discount_percentage or 0.0,
        is_active=bool(row.is_active),
        start_date=row.start_date,
        end_date=row.end_date,
        usage_limit=row.usage_limit,
        usage_count=row.usage_count or 0,
        usage_limit_per_customer=row.usage_limit_per_customer,
        conditions=tuple(compile_condition(c, row.id) for c in row.conditions),
        targets=tuple(compile_target(t, row.id) for t in row.targets),
        tiers=tuple(compile_tier(t) for t in row.quantity_tiers),
    )
