from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field

Identifier = Union[int, str]


class LineItemIn(BaseModel):
    product_id: Optional[Identifier] = None
    sku: Optional[str] = None
    category_id: Optional[Identifier] = None
    tags: List[str] = []
    quantity: int = Field(ge=0)
    unit_price: float = Field(ge=0)


class ClientIn(BaseModel):
    client_id: Optional[Identifier] = None
    tags: List[str] = []
    total_purchases: float = 0.0


class PricingRequest(BaseModel):
    line_items: List[LineItemIn] = Field(min_length=1)
    client: Optional[ClientIn] = None
    as_of: Optional[datetime] = None
    document_tags: List[str] = []


class FinalizeRequest(PricingRequest):
    document_ref: str = Field(min_length=1)  # invoice / quote number


class PricedLineOut(BaseModel):
    index: int
    product_id: Optional[str] = None
    quantity: int
    original_unit_price: float
    final_unit_price: float
    discount_per_unit: float
    line_total: float
    discount_total: float
    applied_rule_id: Optional[int] = None
    applied_rule_name: Optional[str] = None


class PricingResponse(BaseModel):
    store_id: int
    document_ref: Optional[str] = None
    lines: List[PricedLineOut]
    applied_rule_ids: List[int]
    skipped_rule_ids: List[int] = []
    original_total: float
    discount_total: float
    final_total: float
    calculated_in_ms: float
