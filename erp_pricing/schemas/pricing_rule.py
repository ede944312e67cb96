import json
from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from erp_pricing.enums.pricing import (
    ConditionOperator,
    ConditionType,
    LogicalOperator,
    RuleType,
    TargetType,
)
from erp_pricing.services.pricing_service.models import to_naive_utc
from erp_pricing.services.pricing_service.tiers import find_overlap

Identifier = Union[int, str]

_COMPARISONS = {
    ConditionOperator.greater_than,
    ConditionOperator.greater_equal,
    ConditionOperator.less_than,
    ConditionOperator.less_equal,
}


def _load_json_list(value):
    # stored as JSON text; show the raw text if it does not parse
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            return value
    return value


class RuleConditionSchema(BaseModel):
    condition_type: ConditionType
    operator: ConditionOperator
    value_text: Optional[str] = None
    value_number: Optional[float] = None
    value_array: Optional[List[Identifier]] = None
    value_start: Optional[float] = None
    value_end: Optional[float] = None
    logical_operator: LogicalOperator = LogicalOperator.AND
    condition_group: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def check_value_for_operator(self):
        op = self.operator
        if op in (ConditionOperator.in_, ConditionOperator.not_in) and not self.value_array:
            raise ValueError(f"operator '{op.value}' needs value_array")
        if op == ConditionOperator.between:
            if self.value_start is None or self.value_end is None:
                raise ValueError("operator 'between' needs value_start and value_end")
            if self.value_start > self.value_end:
                raise ValueError("value_start must not be greater than value_end")
        if op in _COMPARISONS and self.value_number is None:
            raise ValueError(f"operator '{op.value}' needs value_number")
        if op in (ConditionOperator.equals, ConditionOperator.not_equals):
            if self.value_number is None and self.value_text is None:
                raise ValueError(f"operator '{op.value}' needs value_text or value_number")
        return self


class RuleTargetSchema(BaseModel):
    target_type: TargetType
    target_ids: Optional[List[Identifier]] = None
    target_tags: Optional[List[str]] = None


class QuantityTierSchema(BaseModel):
    min_quantity: int = Field(ge=0)
    max_quantity: Optional[int] = Field(default=None, ge=0)
    tier_price: Optional[float] = Field(default=None, ge=0)
    tier_discount_percentage: Optional[float] = Field(default=None, ge=0, le=1)
    tier_discount_amount: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def check_tier(self):
        if self.max_quantity is not None and self.max_quantity < self.min_quantity:
            raise ValueError("max_quantity must be >= min_quantity")
        outcomes = [
            self.tier_price,
            self.tier_discount_percentage,
            self.tier_discount_amount,
        ]
        if sum(o is not None for o in outcomes) != 1:
            raise ValueError(
                "a tier needs exactly one of tier_price, tier_discount_percentage, tier_discount_amount"
            )
        return self


class PricingRuleBase(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    rule_code: Optional[str] = None
    rule_type: RuleType
    priority: int = 0

    # fractions: 0.10 = 10%
    discount_percentage: float = Field(default=0.0, ge=0, le=1)
    discount_amount: float = Field(default=0.0, ge=0)
    fixed_price: float = Field(default=0.0, ge=0)

    buy_quantity: int = Field(default=0, ge=0)
    get_quantity: int = Field(default=0, ge=0)
    get_discount_percentage: float = Field(default=0.0, ge=0, le=1)

    is_active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    usage_limit: Optional[int] = Field(default=None, ge=1)
    usage_limit_per_customer: Optional[int] = Field(default=None, ge=1)

    @field_validator("start_date", "end_date")
    @classmethod
    def store_as_utc(cls, value):
        # stored naive, in UTC
        return to_naive_utc(value)

    @model_validator(mode="after")
    def check_window(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class PricingRuleCreate(PricingRuleBase):
    conditions: List[RuleConditionSchema] = []
    targets: List[RuleTargetSchema] = []
    quantity_tiers: List[QuantityTierSchema] = []

    @model_validator(mode="after")
    def check_rule_shape(self):
        if self.rule_type == RuleType.quantity_discount and not self.quantity_tiers:
            raise ValueError("quantity_discount rules need at least one quantity tier")
        if self.rule_type == RuleType.buy_x_get_y:
            if self.buy_quantity < 1 or self.get_quantity < 1:
                raise ValueError("buy_x_get_y rules need buy_quantity and get_quantity >= 1")

        overlap = find_overlap([(t.min_quantity, t.max_quantity) for t in self.quantity_tiers])
        if overlap:
            first, second = overlap
            raise ValueError(f"quantity tiers overlap: {first} and {second}")
        return self


class PricingRuleUpdate(PricingRuleCreate):
    pass


class RuleConditionResponse(BaseModel):
    id: int
    condition_type: str
    operator: str
    value_text: Optional[str] = None
    value_number: Optional[float] = None
    value_array: Optional[Union[List[Identifier], str]] = None
    value_start: Optional[float] = None
    value_end: Optional[float] = None
    logical_operator: Optional[str] = "AND"
    condition_group: Optional[int] = 1

    @field_validator("value_array", mode="before")
    @classmethod
    def parse_value_array(cls, value):
        return _load_json_list(value)

    class Config:
        from_attributes = True


class RuleTargetResponse(BaseModel):
    id: int
    target_type: str
    target_ids: Optional[Union[List[Identifier], str]] = None
    target_tags: Optional[Union[List[str], str]] = None

    @field_validator("target_ids", "target_tags", mode="before")
    @classmethod
    def parse_lists(cls, value):
        return _load_json_list(value)

    class Config:
        from_attributes = True


class QuantityTierResponse(BaseModel):
    id: int
    min_quantity: int
    max_quantity: Optional[int] = None
    tier_price: Optional[float] = None
    tier_discount_percentage: Optional[float] = None
    tier_discount_amount: Optional[float] = None

    class Config:
        from_attributes = True


class PricingRuleResponse(PricingRuleBase):
    id: int
    store_id: int
    usage_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    conditions: List[RuleConditionResponse] = []
    targets: List[RuleTargetResponse] = []
    quantity_tiers: List[QuantityTierResponse] = []

    class Config:
        from_attributes = True
