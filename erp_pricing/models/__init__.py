from erp_pricing.models.discount_usage import DiscountUsage
from erp_pricing.models.pricing_rule import PricingRule, QuantityTier, RuleCondition, RuleTarget
from erp_pricing.models.store import Store
from erp_pricing.models.user import User

__all__ = [
    "DiscountUsage",
    "PricingRule",
    "QuantityTier",
    "RuleCondition",
    "RuleTarget",
    "Store",
    "User",
]
