from erp_pricing.services.pricing_service.models import ClientContext, LineItem, Target
from erp_pricing.services.pricing_service.targets import matches_target, matches_targets

CHEAP = LineItem(product_id="1", quantity=1, unit_price=5.0, category_id="10", tags=["clearance"])
MID = LineItem(product_id="2", quantity=1, unit_price=20.0, category_id="11")
PRICEY = LineItem(product_id="3", quantity=1, unit_price=90.0, category_id="11", tags=["premium"])
CART = [CHEAP, MID, PRICEY]
CLIENT = ClientContext(client_id="77", tags=["vip"])


def _target(ttype, ids=(), tags=()):
    return Target(target_type=ttype, ids=frozenset(ids), tags=frozenset(tags))


def test_no_targets_is_universal():
    assert all(matches_targets([], line, CART, CLIENT) for line in CART)


def test_product_target_matches_by_id():
    target = _target("product", ids={"2"})
    assert matches_target(target, MID, CART, CLIENT)
    assert not matches_target(target, CHEAP, CART, CLIENT)


def test_product_without_id_never_matches_product_target():
    line = LineItem(product_id=None, quantity=1, unit_price=1.0)
    assert not matches_target(_target("product", ids={"None"}), line, [line], CLIENT)


def test_category_target():
    target = _target("category", ids={"11"})
    assert matches_target(target, PRICEY, CART, CLIENT)
    assert not matches_target(target, CHEAP, CART, CLIENT)


def test_client_target_by_id_or_tag():
    assert matches_target(_target("client", ids={"77"}), CHEAP, CART, CLIENT)
    assert matches_target(_target("client", tags={"vip"}), CHEAP, CART, CLIENT)
    assert not matches_target(_target("client", ids={"5"}, tags={"retail"}), CHEAP, CART, CLIENT)
    assert not matches_target(_target("client", ids={"77"}), CHEAP, CART, ClientContext())


def test_tag_target_uses_product_tags():
    target = _target("tag", tags={"premium", "clearance"})
    assert matches_target(target, PRICEY, CART, CLIENT)
    assert matches_target(target, CHEAP, CART, CLIENT)
    assert not matches_target(target, MID, CART, CLIENT)


def test_all_products():
    assert all(matches_target(_target("all_products"), line, CART, CLIENT) for line in CART)


def test_cheapest_and_most_expensive_items():
    cheapest = _target("cheapest_item")
    priciest = _target("most_expensive_item")
    assert [matches_target(cheapest, line, CART, CLIENT) for line in CART] == [True, False, False]
    assert [matches_target(priciest, line, CART, CLIENT) for line in CART] == [False, False, True]


def test_any_target_is_enough():
    targets = [_target("product", ids={"99"}), _target("category", ids={"10"})]
    assert matches_targets(targets, CHEAP, CART, CLIENT)
    assert not matches_targets(targets, MID, CART, CLIENT)


def test_unknown_target_type_never_matches():
    assert not matches_target(_target("warehouse", ids={"1"}), CHEAP, CART, CLIENT)
