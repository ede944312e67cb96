import logging
from datetime import datetime
from time import perf_counter
from typing import Iterable, List, Optional, Sequence, Set

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from erp_pricing.core.config import settings
from erp_pricing.core.exceptions import PricingUnavailableError, RuleStoreError
from erp_pricing.services.pricing_service.engine import PricingEngine
from erp_pricing.services.pricing_service.models import (
    ClientContext,
    LineItem,
    PricingOutcome,
    normalize_id,
    to_naive_utc,
)
from erp_pricing.services.pricing_service.rule_store import LoadedRules, invalidate_store, load_rules
from erp_pricing.services.pricing_service.usage import (
    claim_rule_usage,
    customer_usage_counts,
    record_usage,
)

logger = logging.getLogger(__name__)


def _load(db: Session, store_id: int) -> LoadedRules:
    try:
        return load_rules(db, store_id)
    except RuleStoreError as exc:
        raise PricingUnavailableError(str(exc)) from exc


def _limited_rule_ids(loaded: LoadedRules) -> List[int]:
    return [rule.id for rule in loaded.rules if rule.usage_limit_per_customer is not None]


def _log_if_slow(store_id: int, line_count: int, duration_ms: float) -> None:
    if duration_ms > settings.SLOW_PRICING_MS:
        logger.warning(
            "Pricing for store %s took %.2f ms (%d line items)",
            store_id,
            duration_ms,
            line_count,
        )


def evaluate_prices(
    db: Session,
    store_id: int,
    line_items: Sequence[LineItem],
    client: Optional[ClientContext] = None,
    as_of: Optional[datetime] = None,
    document_tags: Iterable[str] = (),
) -> PricingOutcome:
    """
    Preview prices for a document's line items.

    Nothing is written: usage counters are read, never claimed. If the
    rules cannot be read the whole call fails with PricingUnavailableError
    rather than returning undiscounted prices.
    """
    start = perf_counter()
    as_of = to_naive_utc(as_of) or datetime.utcnow()
    client = client or ClientContext()

    loaded = _load(db, store_id)
    try:
        usage = customer_usage_counts(db, _limited_rule_ids(loaded), normalize_id(client.client_id))
    except SQLAlchemyError as exc:
        logger.error("Failed to read usage counts for store %s: %s", store_id, exc)
        raise PricingUnavailableError("Could not read rule usage") from exc

    outcome = PricingEngine(loaded.rules).evaluate(
        line_items,
        client=client,
        as_of=as_of,
        document_tags=document_tags,
        customer_usage=usage,
    )
    outcome.skipped_rule_ids = list(loaded.skipped_rule_ids)

    outcome.calculated_in_ms = (perf_counter() - start) * 1000.0
    _log_if_slow(store_id, len(line_items), outcome.calculated_in_ms)
    return outcome


def finalize_prices(
    db: Session,
    store_id: int,
    line_items: Sequence[LineItem],
    client: Optional[ClientContext] = None,
    as_of: Optional[datetime] = None,
    document_tags: Iterable[str] = (),
    document_ref: Optional[str] = None,
) -> PricingOutcome:
    """
    Price a document for real and record rule usage.

    Every applied rule is claimed with a guarded UPDATE. A rule whose claim
    is lost (limit reached by a concurrent request) is excluded and the
    document is re-priced, so its lines fall through to the next rule.
    Claims and usage rows are committed together.
    """
    start = perf_counter()
    as_of = to_naive_utc(as_of) or datetime.utcnow()
    client = client or ClientContext()
    client_id = normalize_id(client.client_id)
    document_tags = tuple(document_tags)

    loaded = _load(db, store_id)
    engine = PricingEngine(loaded.rules)

    excluded: Set[int] = set()
    claimed: Set[int] = set()
    try:
        usage = customer_usage_counts(db, _limited_rule_ids(loaded), client_id)
        while True:
            outcome = engine.evaluate(
                line_items,
                client=client,
                as_of=as_of,
                document_tags=document_tags,
                customer_usage=usage,
                excluded_rule_ids=excluded,
            )
            lost = []
            for rule_id in outcome.applied_rule_ids:
                if rule_id in claimed:
                    continue
                if claim_rule_usage(db, rule_id, client_id, as_of=as_of):
                    claimed.add(rule_id)
                else:
                    lost.append(rule_id)
            if not lost:
                break
            excluded.update(lost)

        for rule_id in outcome.applied_rule_ids:
            lines = outcome.lines_for_rule(rule_id)
            record_usage(
                db,
                rule_id=rule_id,
                client_id=client_id,
                document_ref=document_ref,
                original_amount=sum(line.original_total for line in lines),
                final_amount=sum(line.final_total for line in lines),
            )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to finalize pricing for store %s: %s", store_id, exc)
        raise PricingUnavailableError("Could not record rule usage") from exc
    finally:
        # usage counts changed (or may have); compiled rules are stale
        invalidate_store(store_id)

    if excluded:
        logger.info("Store %s: rules %s exhausted during finalization", store_id, sorted(excluded))

    outcome.skipped_rule_ids = list(loaded.skipped_rule_ids)
    outcome.calculated_in_ms = (perf_counter() - start) * 1000.0
    _log_if_slow(store_id, len(line_items), outcome.calculated_in_ms)
    return outcome
