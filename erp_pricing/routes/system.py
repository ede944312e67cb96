import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from erp_pricing.database.connection import get_db
from erp_pricing.dependencies.auth import require_admin
from erp_pricing.models.discount_usage import DiscountUsage
from erp_pricing.models.pricing_rule import PricingRule
from erp_pricing.models.store import Store
from erp_pricing.schemas.system import HealthCheckResponse, SystemMetricsResponse
from erp_pricing.services.pricing_service.rule_store import CACHE_STATS

logger = logging.getLogger(__name__)

router = APIRouter(tags=["System"])


def _uptime(request: Request, now: datetime) -> float:
    start_time = getattr(request.app.state, "start_time", now)
    return (now - start_time).total_seconds()


@router.get("/health", response_model=HealthCheckResponse)
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Lightweight public health check.
    Returns ok + DB connectivity check (SELECT 1).
    """
    now = datetime.utcnow()
    db_ok = True
    extra = {}
    try:
        db.execute(text("SELECT 1"))
        extra["alembic_version_table_present"] = inspect(db.get_bind()).has_table("alembic_version")
    except SQLAlchemyError as exc:
        logger.error("Health check database probe failed: %s", exc)
        db_ok = False
        extra["db_error"] = str(exc)

    return HealthCheckResponse(
        status="ok" if db_ok else "degraded",
        now=now,
        uptime_seconds=_uptime(request, now),
        db_ok=db_ok,
        extra=extra or None,
    )


@router.get("/metrics", response_model=SystemMetricsResponse, dependencies=[Depends(require_admin)])
def system_metrics(request: Request, db: Session = Depends(get_db)):
    """
    Admin-only system metrics in JSON form.
    In-process request counters from app.state.metrics, rule-cache counters
    and a few DB-derived totals.
    """
    now = datetime.utcnow()

    metrics = getattr(request.app.state, "metrics", None) or {}
    requests_count = int(metrics.get("requests", 0))
    total_response_ms = float(metrics.get("total_response_ms", 0.0))
    avg_response_ms = (total_response_ms / requests_count) if requests_count > 0 else None

    hits, misses = CACHE_STATS["hits"], CACHE_STATS["misses"]
    lookups = hits + misses
    hit_rate = (hits / lookups) * 100.0 if lookups > 0 else None

    start_today = datetime.combine(now.date(), datetime.min.time())
    stores = db.query(func.count(Store.id)).scalar() or 0
    active_rules = (
        db.query(func.count(PricingRule.id)).filter(PricingRule.is_active.is_(True)).scalar()
    ) or 0
    usages_today = (
        db.query(func.count(DiscountUsage.id)).filter(DiscountUsage.created_at >= start_today).scalar()
    ) or 0
    total_usages = db.query(func.count(DiscountUsage.id)).scalar() or 0
    total_discount = db.query(func.sum(DiscountUsage.discount_amount)).scalar() or 0.0

    return SystemMetricsResponse(
        uptime_seconds=_uptime(request, now),
        now=now,
        requests_count=requests_count,
        avg_response_ms=avg_response_ms,
        rule_cache_hits=hits,
        rule_cache_misses=misses,
        rule_cache_hit_rate=hit_rate,
        stores=int(stores),
        active_pricing_rules=int(active_rules),
        rule_usages_today=int(usages_today),
        total_rule_usages=int(total_usages),
        total_discount_given=float(total_discount),
    )
