import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from erp_pricing.database.connection import Base


class PricingRule(Base):
    __tablename__ = "pricing_rules"

    id = Column(Integer, primary_key=True, index=True)
    store_id = Column(Integer, ForeignKey("stores.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    description = Column(Text)
    rule_code = Column(String, unique=True, index=True)

    rule_type = Column(String, nullable=False)
    priority = Column(Integer, nullable=False, default=0)  # higher = evaluated first

    # fractions: 0.10 = 10%
    discount_percentage = Column(Float, default=0.0)
    discount_amount = Column(Float, default=0.0)
    fixed_price = Column(Float, default=0.0)

    buy_quantity = Column(Integer, default=0)
    get_quantity = Column(Integer, default=0)
    get_discount_percentage = Column(Float, default=0.0)

    is_active = Column(Boolean, nullable=False, default=True, index=True)
    start_date = Column(DateTime)
    end_date = Column(DateTime)

    usage_limit = Column(Integer)
    usage_count = Column(Integer, nullable=False, default=0)
    usage_limit_per_customer = Column(Integer)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    store = relationship("Store", back_populates="pricing_rules")
    conditions = relationship(
        "RuleCondition",
        back_populates="pricing_rule",
        cascade="all, delete-orphan",
        order_by="RuleCondition.id",
    )
    targets = relationship(
        "RuleTarget",
        back_populates="pricing_rule",
        cascade="all, delete-orphan",
        order_by="RuleTarget.id",
    )
    quantity_tiers = relationship(
        "QuantityTier",
        back_populates="pricing_rule",
        cascade="all, delete-orphan",
        order_by="QuantityTier.min_quantity",
    )
    usages = relationship(
        "DiscountUsage",
        back_populates="pricing_rule",
        cascade="all, delete-orphan",
    )


class RuleCondition(Base):
    __tablename__ = "rule_conditions"

    id = Column(Integer, primary_key=True, index=True)
    pricing_rule_id = Column(
        Integer, ForeignKey("pricing_rules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    condition_type = Column(String, nullable=False)
    operator = Column(String, nullable=False)

    value_text = Column(String)
    value_number = Column(Float)
    value_array = Column(Text)  # JSON array, e.g. '["vip", "wholesale"]'
    value_start = Column(Float)
    value_end = Column(Float)

    logical_operator = Column(String, default="AND")
    condition_group = Column(Integer, default=1)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    pricing_rule = relationship("PricingRule", back_populates="conditions")


class RuleTarget(Base):
    __tablename__ = "rule_targets"

    id = Column(Integer, primary_key=True, index=True)
    pricing_rule_id = Column(
        Integer, ForeignKey("pricing_rules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_type = Column(String, nullable=False)
    target_ids = Column(Text)  # JSON array of entity ids
    target_tags = Column(Text)  # JSON array of tag slugs

    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    pricing_rule = relationship("PricingRule", back_populates="targets")


class QuantityTier(Base):
    __tablename__ = "quantity_tiers"

    id = Column(Integer, primary_key=True, index=True)
    pricing_rule_id = Column(
        Integer, ForeignKey("pricing_rules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    min_quantity = Column(Integer, nullable=False)
    max_quantity = Column(Integer)  # NULL = no upper bound

    tier_price = Column(Float)
    tier_discount_percentage = Column(Float)
    tier_discount_amount = Column(Float)

    created_at = Column(DateTime, default=datetime.datetime.utcnow)

    pricing_rule = relationship("PricingRule", back_populates="quantity_tiers")
