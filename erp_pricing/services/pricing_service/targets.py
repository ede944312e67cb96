from typing import Iterable, List

from erp_pricing.services.pricing_service.models import (
    ClientContext,
    LineItem,
    Target,
    normalize_id,
)


def matches_targets(
    targets: Iterable[Target],
    line: LineItem,
    cart: List[LineItem],
    client: ClientContext,
) -> bool:
    """A rule without targets applies everywhere; otherwise any target may match."""
    targets = list(targets)
    if not targets:
        return True
    return any(matches_target(target, line, cart, client) for target in targets)


def matches_target(target: Target, line: LineItem, cart: List[LineItem], client: ClientContext) -> bool:
    ttype = target.target_type

    if ttype == "all_products":
        return True

    if ttype == "product":
        product_id = normalize_id(line.product_id)
        return product_id is not None and product_id in target.ids

    if ttype == "category":
        category_id = normalize_id(line.category_id)
        return category_id is not None and (category_id in target.ids or category_id in target.tags)

    if ttype == "client":
        client_id = normalize_id(client.client_id)
        if client_id is not None and client_id in target.ids:
            return True
        return bool(target.tags.intersection(client.tags))

    if ttype == "tag":
        return bool(target.tags.intersection(line.tags))

    if ttype == "cheapest_item":
        return bool(cart) and line.unit_price == min(item.unit_price for item in cart)

    if ttype == "most_expensive_item":
        return bool(cart) and line.unit_price == max(item.unit_price for item in cart)

    return False
