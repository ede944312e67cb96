from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Set

from erp_pricing.services.pricing_service.models import (
    Condition,
    ConditionValue,
    EvaluationContext,
    NumberValue,
    RangeValue,
    SetValue,
    TextValue,
    normalize_id,
)


def evaluate_conditions(conditions: Iterable[Condition], ctx: EvaluationContext) -> bool:
    """
    Evaluate a rule's condition set.

    Conditions are partitioned by group. Inside a group the first condition
    seeds the result and each following one is folded in with its own
    logical operator. A rule matches if any group matches; no conditions
    at all means the rule always matches.
    """
    groups: Dict[int, List[Condition]] = defaultdict(list)
    for condition in conditions:
        groups[condition.group].append(condition)

    if not groups:
        return True

    return any(_evaluate_group(groups[group_id], ctx) for group_id in sorted(groups))


def _evaluate_group(conditions: List[Condition], ctx: EvaluationContext) -> bool:
    result = evaluate_condition(conditions[0], ctx)
    for condition in conditions[1:]:
        outcome = evaluate_condition(condition, ctx)
        if condition.logical_operator == "OR":
            result = result or outcome
        else:
            result = result and outcome
    return result


def evaluate_condition(condition: Condition, ctx: EvaluationContext) -> bool:
    """Single condition; unknown types and missing values never match."""
    ctype = condition.condition_type

    numeric = _numeric_actual(ctype, ctx)
    if numeric is not None:
        return compare_number(numeric, condition.operator, condition.value)

    if ctype in _COLLECTION_TYPES:
        return compare_collection(_COLLECTION_TYPES[ctype](ctx), condition.operator, condition.value)

    if ctype in ("client_has_any_tags", "product_has_any_tags"):
        actual = _tags(ctx.client.tags if ctype.startswith("client") else ctx.line.tags)
        wanted = _as_set(condition.value)
        if wanted is None:
            return False
        return _negate(condition.operator, bool(actual & wanted))

    if ctype == "client_has_all_tags":
        wanted = _as_set(condition.value)
        if wanted is None:
            return False
        return _negate(condition.operator, wanted <= _tags(ctx.client.tags))

    if ctype == "product_sku":
        return compare_text(ctx.line.sku, condition.operator, condition.value)

    return False


# ---- actual values ----

_NUMERIC_TYPES = {
    "cart_subtotal": lambda ctx: ctx.cart_subtotal,
    "cart_quantity": lambda ctx: ctx.cart_quantity,
    "product_quantity": lambda ctx: ctx.line.quantity,
    "unit_price": lambda ctx: ctx.line.unit_price,
    "customer_total_purchases": lambda ctx: ctx.client.total_purchases,
    "day_of_week": lambda ctx: ctx.as_of.isoweekday() % 7,  # Sunday = 0
    "time_of_day": lambda ctx: ctx.as_of.hour,
}

_COLLECTION_TYPES = {
    "client_has_tag": lambda ctx: _tags(ctx.client.tags),
    "product_has_tag": lambda ctx: _tags(ctx.line.tags),
    "product_category": lambda ctx: _tags([ctx.line.category_id]),
    "document_has_tag": lambda ctx: _tags(ctx.document_tags),
}


def _numeric_actual(ctype: str, ctx: EvaluationContext) -> Optional[float]:
    getter = _NUMERIC_TYPES.get(ctype)
    if getter is None:
        return None
    return float(getter(ctx) or 0)


def _tags(values) -> Set[str]:
    return {normalize_id(v) for v in values or () if v is not None}


def _as_set(value: Optional[ConditionValue]) -> Optional[Set[str]]:
    if isinstance(value, SetValue):
        return set(value.items)
    if isinstance(value, TextValue):
        return {value.text}
    if isinstance(value, NumberValue):
        return {normalize_id(value.number)}
    return None


def _as_number(value: Optional[ConditionValue]) -> Optional[float]:
    if isinstance(value, NumberValue):
        return value.number
    if isinstance(value, TextValue):
        try:
            return float(value.text)
        except ValueError:
            return None
    return None


def _negate(operator: str, result: bool) -> bool:
    if operator in ("not_in", "not_equals"):
        return not result
    return result


# ---- operator semantics ----


def compare_number(actual: float, operator: str, value: Optional[ConditionValue]) -> bool:
    if operator == "between":
        if not isinstance(value, RangeValue):
            return False
        return value.start <= actual <= value.end

    if operator in ("in", "not_in"):
        if not isinstance(value, SetValue):
            return False
        return _negate(operator, normalize_id(actual) in value.items)

    expected = _as_number(value)
    if expected is None:
        return False

    if operator == "equals":
        return actual == expected
    if operator == "not_equals":
        return actual != expected
    if operator == "greater_than":
        return actual > expected
    if operator == "greater_equal":
        return actual >= expected
    if operator == "less_than":
        return actual < expected
    if operator == "less_equal":
        return actual <= expected
    return False


def compare_collection(actual: Set[str], operator: str, value: Optional[ConditionValue]) -> bool:
    if operator in ("equals", "not_equals"):
        if not isinstance(value, (TextValue, NumberValue)):
            return False
        return _negate(operator, _as_set(value) <= actual)

    if operator in ("in", "not_in"):
        if not isinstance(value, SetValue):
            return False
        return _negate(operator, bool(actual & value.items))

    return False


def compare_text(actual: Optional[str], operator: str, value: Optional[ConditionValue]) -> bool:
    if actual is None:
        return False
    if operator in ("equals", "not_equals"):
        if not isinstance(value, (TextValue, NumberValue)):
            return False
        return _negate(operator, actual in _as_set(value))
    if operator in ("in", "not_in"):
        if not isinstance(value, SetValue):
            return False
        return _negate(operator, actual in value.items)
    return False
