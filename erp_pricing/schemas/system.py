from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime


class HealthCheckResponse(BaseModel):
    status: str
    now: datetime
    uptime_seconds: float
    db_ok: bool
    extra: Optional[Dict[str, Any]] = None


class SystemMetricsResponse(BaseModel):
    uptime_seconds: float
    now: datetime

    # middleware counters
    requests_count: int
    avg_response_ms: Optional[float] = None

    # compiled-rule cache
    rule_cache_hits: int
    rule_cache_misses: int
    rule_cache_hit_rate: Optional[float] = None

    # DB metrics
    stores: int
    active_pricing_rules: int
    rule_usages_today: int
    total_rule_usages: int
    total_discount_given: float

    extra: Optional[Dict[str, Any]] = None
