from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from erp_pricing.database.connection import Base


class DiscountUsage(Base):
    __tablename__ = "discount_usage"

    id = Column(Integer, primary_key=True, index=True)
    pricing_rule_id = Column(
        Integer, ForeignKey("pricing_rules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id = Column(String, nullable=True, index=True)
    document_ref = Column(String, nullable=True, index=True)  # e.g. INV-0042, QUO-0007

    discount_amount = Column(Float, nullable=False, default=0.0)
    original_amount = Column(Float, nullable=False, default=0.0)
    final_amount = Column(Float, nullable=False, default=0.0)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    pricing_rule = relationship("PricingRule", back_populates="usages")
