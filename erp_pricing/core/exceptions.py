"""Domain errors raised by the pricing services."""


class PricingError(Exception):
    """Base class for pricing failures."""


class RuleStoreError(PricingError):
    """The rule store could not be read."""


class MalformedRuleError(PricingError):
    """A persisted rule carries data that cannot be parsed."""

    def __init__(self, rule_id, reason: str):
        super().__init__(f"Pricing rule {rule_id} is malformed: {reason}")
        self.rule_id = rule_id
        self.reason = reason


class PricingUnavailableError(PricingError):
    """Prices cannot be computed safely; callers must not discount."""
