import logging
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from erp_pricing.services.pricing_service.conditions import evaluate_conditions
from erp_pricing.services.pricing_service.models import (
    ClientContext,
    EvaluationContext,
    LineItem,
    PricedLine,
    PricingOutcome,
    Rule,
    to_naive_utc,
)
from erp_pricing.services.pricing_service.targets import matches_targets
from erp_pricing.services.pricing_service.tiers import resolve_tier

logger = logging.getLogger(__name__)


# ===================== RULE EFFECTS =====================
# Each returns the new unit price, or None when the rule does not apply.


def _percentage_discount(rule: Rule, unit_price: float, quantity: int) -> Optional[float]:
    return max(unit_price * (1.0 - rule.discount_percentage), 0.0)


def _fixed_amount_discount(rule: Rule, unit_price: float, quantity: int) -> Optional[float]:
    return max(unit_price - rule.discount_amount, 0.0)


def _fixed_price(rule: Rule, unit_price: float, quantity: int) -> Optional[float]:
    return rule.fixed_price


def _quantity_discount(rule: Rule, unit_price: float, quantity: int) -> Optional[float]:
    tier = resolve_tier(quantity, rule.tiers)
    if tier is None:
        return None
    if tier.price is not None:
        return tier.price
    if tier.discount_percentage is not None:
        return max(unit_price * (1.0 - tier.discount_percentage), 0.0)
    if tier.discount_amount is not None:
        return max(unit_price - tier.discount_amount, 0.0)
    return None


def _buy_x_get_y(rule: Rule, unit_price: float, quantity: int) -> Optional[float]:
    """
    Buy X get Y at a discount, spread across the line as a blended unit price.

    Buy 2 get 1 free on 6 units at 10.00: two complete sets, two free units,
    so the line costs 40.00 and the unit price becomes 6.666...
    """
    set_size = rule.buy_quantity + rule.get_quantity
    if set_size <= 0 or quantity <= 0:
        return None
    discounted_units = (quantity // set_size) * rule.get_quantity
    if discounted_units <= 0:
        return None
    discount = discounted_units * unit_price * rule.get_discount_percentage
    return (quantity * unit_price - discount) / quantity


RULE_EFFECTS: Dict[str, Callable[[Rule, float, int], Optional[float]]] = {
    "percentage_discount": _percentage_discount,
    "fixed_amount_discount": _fixed_amount_discount,
    "fixed_price": _fixed_price,
    "quantity_discount": _quantity_discount,
    "buy_x_get_y": _buy_x_get_y,
}


def apply_rule(rule: Rule, unit_price: float, quantity: int) -> Optional[float]:
    effect = RULE_EFFECTS.get(rule.rule_type)
    if effect is None:
        logger.warning("Pricing rule %s has unknown type %r", rule.id, rule.rule_type)
        return None
    return effect(rule, unit_price, quantity)


# ===================== ENGINE =====================


class PricingEngine:
    """Prices line items against a store's compiled rules."""

    def __init__(self, rules: Iterable[Rule]):
        self.rules: List[Rule] = sorted(rules, key=lambda r: (-r.priority, r.name))

    def live_rules(self, as_of: datetime) -> List[Rule]:
        return [rule for rule in self.rules if rule.is_live(as_of)]

    def evaluate(
        self,
        line_items: Sequence[LineItem],
        client: Optional[ClientContext] = None,
        as_of: Optional[datetime] = None,
        document_tags: Iterable[str] = (),
        customer_usage: Optional[Dict[int, int]] = None,
        excluded_rule_ids: Iterable[int] = (),
    ) -> PricingOutcome:
        as_of = to_naive_utc(as_of) or datetime.utcnow()
        client = client or ClientContext()
        customer_usage = customer_usage or {}
        excluded = set(excluded_rule_ids)
        document_tags = tuple(document_tags)
        cart = list(line_items)

        candidates = [rule for rule in self.live_rules(as_of) if rule.id not in excluded]

        lines: List[PricedLine] = []
        applied: List[int] = []
        for index, item in enumerate(cart):
            ctx = EvaluationContext(
                line=item,
                cart=cart,
                client=client,
                as_of=as_of,
                document_tags=document_tags,
            )
            priced = self._price_line(index, ctx, candidates, customer_usage)
            lines.append(priced)
            if priced.applied_rule_id is not None and priced.applied_rule_id not in applied:
                applied.append(priced.applied_rule_id)

        return PricingOutcome(lines=lines, applied_rule_ids=applied)

    def _price_line(
        self,
        index: int,
        ctx: EvaluationContext,
        rules: List[Rule],
        customer_usage: Dict[int, int],
    ) -> PricedLine:
        item = ctx.line
        for rule in rules:
            if not matches_targets(rule.targets, item, ctx.cart, ctx.client):
                continue
            if not evaluate_conditions(rule.conditions, ctx):
                continue
            if not rule.has_capacity(customer_usage.get(rule.id, 0)):
                continue

            new_price = apply_rule(rule, item.unit_price, item.quantity)
            if new_price is None:
                continue

            return PricedLine(
                index=index,
                product_id=item.product_id,
                quantity=item.quantity,
                original_unit_price=item.unit_price,
                final_unit_price=new_price,
                applied_rule_id=rule.id,
                applied_rule_name=rule.name,
            )

        return PricedLine(
            index=index,
            product_id=item.product_id,
            quantity=item.quantity,
            original_unit_price=item.unit_price,
            final_unit_price=item.unit_price,
        )
