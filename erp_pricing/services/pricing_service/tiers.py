from typing import Iterable, Optional, Sequence, Tuple

from erp_pricing.services.pricing_service.models import Tier


def resolve_tier(quantity: int, tiers: Iterable[Tier]) -> Optional[Tier]:
    """
    Return the tier covering ``quantity`` or None.

    Tiers are scanned by min_quantity ascending; the first covering tier wins,
    so overlapping data still resolves deterministically.
    """
    for tier in sorted(tiers, key=lambda t: t.min_quantity):
        if tier.covers(quantity):
            return tier
    return None


def find_overlap(
    bounds: Sequence[Tuple[int, Optional[int]]],
) -> Optional[Tuple[Tuple[int, Optional[int]], Tuple[int, Optional[int]]]]:
    """Return the first pair of overlapping (min, max) ranges, if any."""
    ordered = sorted(bounds, key=lambda b: b[0])
    for previous, current in zip(ordered, ordered[1:]):
        prev_max = previous[1]
        if prev_max is None or current[0] <= prev_max:
            return previous, current
    return None
