"""In-memory types the pricing engine works on.

Rules are compiled from ORM rows once (see ``rule_store``) so evaluation never
touches the database or re-parses JSON columns.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import FrozenSet, List, Optional, Tuple, Union


def normalize_id(value) -> Optional[str]:
    """Ids are compared as strings; ``42``, ``42.0`` and ``"42"`` are the same id."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def in_window(start: Optional[datetime], end: Optional[datetime], as_of: datetime) -> bool:
    """Inclusive validity window; a missing bound is unbounded."""
    if start is not None and as_of < start:
        return False
    if end is not None and as_of > end:
        return False
    return True


# ---- condition values (one variant per operator family) ----


@dataclass(frozen=True)
class TextValue:
    text: str


@dataclass(frozen=True)
class NumberValue:
    number: float


@dataclass(frozen=True)
class SetValue:
    items: FrozenSet[str]


@dataclass(frozen=True)
class RangeValue:
    start: float
    end: float


ConditionValue = Union[TextValue, NumberValue, SetValue, RangeValue]


@dataclass(frozen=True)
class Condition:
    condition_type: str
    operator: str
    value: Optional[ConditionValue] = None
    logical_operator: str = "AND"
    group: int = 1


@dataclass(frozen=True)
class Target:
    target_type: str
    ids: FrozenSet[str] = frozenset()
    tags: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class Tier:
    min_quantity: int
    max_quantity: Optional[int] = None
    price: Optional[float] = None
    discount_percentage: Optional[float] = None
    discount_amount: Optional[float] = None

    def covers(self, quantity: int) -> bool:
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity


@dataclass(frozen=True)
class Rule:
    id: int
    name: str
    rule_type: str
    priority: int = 0
    discount_percentage: float = 0.0
    discount_amount: float = 0.0
    fixed_price: float = 0.0
    buy_quantity: int = 0
    get_quantity: int = 0
    get_discount_percentage: float = 0.0
    is_active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    usage_limit: Optional[int] = None
    usage_count: int = 0
    usage_limit_per_customer: Optional[int] = None
    conditions: Tuple[Condition, ...] = ()
    targets: Tuple[Target, ...] = ()
    tiers: Tuple[Tier, ...] = ()

    def is_live(self, as_of: datetime) -> bool:
        return self.is_active and in_window(self.start_date, self.end_date, as_of)

    def has_capacity(self, customer_uses: int = 0) -> bool:
        if self.usage_limit is not None and self.usage_count >= self.usage_limit:
            return False
        if self.usage_limit_per_customer is not None and customer_uses >= self.usage_limit_per_customer:
            return False
        return True


# ---- evaluation inputs ----


@dataclass
class LineItem:
    product_id: Optional[str]
    quantity: int
    unit_price: float
    sku: Optional[str] = None
    category_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.quantity


@dataclass
class ClientContext:
    client_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    total_purchases: float = 0.0


@dataclass
class EvaluationContext:
    line: LineItem
    cart: List[LineItem]
    client: ClientContext
    as_of: datetime
    document_tags: Tuple[str, ...] = ()

    @property
    def cart_subtotal(self) -> float:
        return sum(item.line_total for item in self.cart)

    @property
    def cart_quantity(self) -> int:
        return sum(item.quantity for item in self.cart)


# ---- evaluation outputs ----


@dataclass
class PricedLine:
    index: int
    product_id: Optional[str]
    quantity: int
    original_unit_price: float
    final_unit_price: float
    applied_rule_id: Optional[int] = None
    applied_rule_name: Optional[str] = None

    @property
    def discount_per_unit(self) -> float:
        return self.original_unit_price - self.final_unit_price

    @property
    def original_total(self) -> float:
        return self.original_unit_price * self.quantity

    @property
    def final_total(self) -> float:
        return self.final_unit_price * self.quantity

    @property
    def discount_total(self) -> float:
        return self.original_total - self.final_total


@dataclass
class PricingOutcome:
    lines: List[PricedLine]
    applied_rule_ids: List[int] = field(default_factory=list)
    skipped_rule_ids: List[int] = field(default_factory=list)
    calculated_in_ms: float = 0.0

    @property
    def original_total(self) -> float:
        return sum(line.original_total for line in self.lines)

    @property
    def final_total(self) -> float:
        return sum(line.final_total for line in self.lines)

    @property
    def discount_total(self) -> float:
        return self.original_total - self.final_total

    def lines_for_rule(self, rule_id: int) -> List[PricedLine]:
        return [line for line in self.lines if line.applied_rule_id == rule_id]
