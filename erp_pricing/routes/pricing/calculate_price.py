from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from erp_pricing.core.exceptions import PricingUnavailableError
from erp_pricing.database.connection import get_db
from erp_pricing.dependencies.auth import require_auth
from erp_pricing.dependencies.stores import get_store_or_404
from erp_pricing.models.store import Store
from erp_pricing.schemas.pricing import (
    ClientIn,
    FinalizeRequest,
    LineItemIn,
    PricedLineOut,
    PricingRequest,
    PricingResponse,
)
from erp_pricing.services.pricing_service.calculate_price import evaluate_prices, finalize_prices
from erp_pricing.services.pricing_service.models import (
    ClientContext,
    LineItem,
    PricingOutcome,
    normalize_id,
)

router = APIRouter(tags=["Pricing & Calculation"])


def _line_items(items: List[LineItemIn]) -> List[LineItem]:
    return [
        LineItem(
            product_id=normalize_id(item.product_id),
            sku=item.sku,
            category_id=normalize_id(item.category_id),
            tags=list(item.tags),
            quantity=item.quantity,
            unit_price=item.unit_price,
        )
        for item in items
    ]


def _client(client: Optional[ClientIn]) -> ClientContext:
    if client is None:
        return ClientContext()
    return ClientContext(
        client_id=normalize_id(client.client_id),
        tags=list(client.tags),
        total_purchases=client.total_purchases,
    )


def _response(store_id: int, outcome: PricingOutcome, document_ref: Optional[str] = None) -> PricingResponse:
    return PricingResponse(
        store_id=store_id,
        document_ref=document_ref,
        lines=[
            PricedLineOut(
                index=line.index,
                product_id=line.product_id,
                quantity=line.quantity,
                original_unit_price=line.original_unit_price,
                final_unit_price=line.final_unit_price,
                discount_per_unit=line.discount_per_unit,
                line_total=line.final_total,
                discount_total=line.discount_total,
                applied_rule_id=line.applied_rule_id,
                applied_rule_name=line.applied_rule_name,
            )
            for line in outcome.lines
        ],
        applied_rule_ids=outcome.applied_rule_ids,
        skipped_rule_ids=outcome.skipped_rule_ids,
        original_total=outcome.original_total,
        discount_total=outcome.discount_total,
        final_total=outcome.final_total,
        calculated_in_ms=outcome.calculated_in_ms,
    )


@router.post(
    "/stores/{store_id}/pricing/evaluate",
    response_model=PricingResponse,
    dependencies=[Depends(require_auth)],
)
def evaluate(
    payload: PricingRequest,
    store: Store = Depends(get_store_or_404),
    db: Session = Depends(get_db),
):
    """Preview adjusted prices for a quote or invoice draft. Usage is not recorded."""
    try:
        outcome = evaluate_prices(
            db,
            store.id,
            _line_items(payload.line_items),
            client=_client(payload.client),
            as_of=payload.as_of,
            document_tags=payload.document_tags,
        )
    except PricingUnavailableError as exc:
        raise HTTPException(status_code=503, detail=f"Pricing unavailable: {exc}")
    return _response(store.id, outcome)


@router.post(
    "/stores/{store_id}/pricing/finalize",
    response_model=PricingResponse,
    dependencies=[Depends(require_auth)],
)
def finalize(
    payload: FinalizeRequest,
    store: Store = Depends(get_store_or_404),
    db: Session = Depends(get_db),
):
    """
    Price a document for real.

    Applied rules are claimed against their usage limits; a rule that ran
    out in the meantime is skipped and the affected lines fall through to
    the next matching rule.
    """
    try:
        outcome = finalize_prices(
            db,
            store.id,
            _line_items(payload.line_items),
            client=_client(payload.client),
            as_of=payload.as_of,
            document_tags=payload.document_tags,
            document_ref=payload.document_ref,
        )
    except PricingUnavailableError as exc:
        raise HTTPException(status_code=503, detail=f"Pricing unavailable: {exc}")
    return _response(store.id, outcome, payload.document_ref)
