from datetime import datetime

import pytest

from erp_pricing.services.pricing_service.conditions import evaluate_condition, evaluate_conditions
from erp_pricing.services.pricing_service.models import (
    ClientContext,
    Condition,
    EvaluationContext,
    LineItem,
    NumberValue,
    RangeValue,
    SetValue,
    TextValue,
)

# Wednesday
AS_OF = datetime(2026, 10, 14, 15, 30)


def _ctx(line=None, cart=None, client=None, document_tags=(), as_of=AS_OF):
    line = line or LineItem(product_id="42", quantity=3, unit_price=20.0, sku="SKU-42", category_id="7", tags=["sale"])
    cart = cart if cart is not None else [line, LineItem(product_id="43", quantity=2, unit_price=50.0)]
    return EvaluationContext(
        line=line,
        cart=cart,
        client=client or ClientContext(client_id="9", tags=["vip", "wholesale"], total_purchases=1200.0),
        as_of=as_of,
        document_tags=tuple(document_tags),
    )


def _cond(ctype, operator, value=None, logical="AND", group=1):
    return Condition(condition_type=ctype, operator=operator, value=value, logical_operator=logical, group=group)


def test_no_conditions_always_match():
    assert evaluate_conditions([], _ctx()) is True


@pytest.mark.parametrize(
    "operator,value,expected",
    [
        ("greater_than", NumberValue(150.0), True),  # 3*20 + 2*50 = 160
        ("greater_than", NumberValue(160.0), False),
        ("greater_equal", NumberValue(160.0), True),
        ("less_than", NumberValue(160.0), False),
        ("less_equal", NumberValue(160.0), True),
        ("equals", NumberValue(160.0), True),
        ("not_equals", NumberValue(160.0), False),
        ("between", RangeValue(100.0, 200.0), True),
        ("between", RangeValue(161.0, 200.0), False),
    ],
)
def test_cart_subtotal_operators(operator, value, expected):
    assert evaluate_condition(_cond("cart_subtotal", operator, value), _ctx()) is expected


def test_quantities():
    ctx = _ctx()
    assert evaluate_condition(_cond("cart_quantity", "equals", NumberValue(5)), ctx)
    assert evaluate_condition(_cond("product_quantity", "greater_equal", NumberValue(3)), ctx)
    assert not evaluate_condition(_cond("product_quantity", "greater_than", NumberValue(3)), ctx)


def test_missing_value_fails_closed():
    ctx = _ctx()
    assert evaluate_condition(_cond("cart_subtotal", "greater_than"), ctx) is False
    assert evaluate_condition(_cond("cart_subtotal", "between", NumberValue(1)), ctx) is False
    assert evaluate_condition(_cond("client_has_tag", "in"), ctx) is False
    assert evaluate_condition(_cond("client_has_tag", "not_in"), ctx) is False
    assert evaluate_condition(_cond("product_sku", "not_equals"), ctx) is False


def test_unknown_condition_type_fails_closed():
    assert evaluate_condition(_cond("moon_phase", "equals", TextValue("full")), _ctx()) is False


def test_client_tags():
    ctx = _ctx()
    assert evaluate_condition(_cond("client_has_tag", "equals", TextValue("vip")), ctx)
    assert not evaluate_condition(_cond("client_has_tag", "equals", TextValue("retail")), ctx)
    assert evaluate_condition(_cond("client_has_tag", "not_equals", TextValue("retail")), ctx)
    assert evaluate_condition(_cond("client_has_tag", "in", SetValue(frozenset({"retail", "vip"}))), ctx)
    assert not evaluate_condition(_cond("client_has_tag", "not_in", SetValue(frozenset({"vip"}))), ctx)


def test_any_and_all_tags():
    ctx = _ctx()
    both = SetValue(frozenset({"vip", "wholesale"}))
    extra = SetValue(frozenset({"vip", "partner"}))
    assert evaluate_condition(_cond("client_has_any_tags", "in", extra), ctx)
    assert evaluate_condition(_cond("client_has_all_tags", "in", both), ctx)
    assert not evaluate_condition(_cond("client_has_all_tags", "in", extra), ctx)
    assert evaluate_condition(_cond("product_has_any_tags", "in", SetValue(frozenset({"sale"}))), ctx)
    assert not evaluate_condition(_cond("product_has_any_tags", "not_in", SetValue(frozenset({"sale"}))), ctx)


def test_product_attributes():
    ctx = _ctx()
    assert evaluate_condition(_cond("product_category", "equals", NumberValue(7)), ctx)
    assert evaluate_condition(_cond("product_category", "in", SetValue(frozenset({"7", "8"}))), ctx)
    assert evaluate_condition(_cond("product_sku", "equals", TextValue("SKU-42")), ctx)
    assert evaluate_condition(_cond("product_sku", "not_in", SetValue(frozenset({"SKU-1"}))), ctx)
    assert evaluate_condition(_cond("unit_price", "less_than", NumberValue(25)), ctx)


def test_calendar_and_customer():
    ctx = _ctx()
    # 2026-10-14 is a Wednesday
    assert evaluate_condition(_cond("day_of_week", "equals", NumberValue(3)), ctx)
    assert evaluate_condition(_cond("day_of_week", "in", SetValue(frozenset({"5", "6"}))), ctx) is False
    assert evaluate_condition(_cond("time_of_day", "between", RangeValue(9, 17)), ctx)
    assert evaluate_condition(_cond("customer_total_purchases", "greater_equal", NumberValue(1000)), ctx)


@pytest.mark.parametrize(
    "as_of, day",
    [
        (datetime(2026, 10, 18, 10), 0),
        (datetime(2026, 10, 19, 10), 1),
        (datetime(2026, 10, 17, 10), 6),
    ],
)
def test_day_of_week_counts_from_sunday(as_of, day):
    ctx = _ctx(as_of=as_of)
    assert evaluate_condition(_cond("day_of_week", "equals", NumberValue(day)), ctx)


def test_weekend_condition_matches_saturday_and_sunday():
    weekend = _cond("day_of_week", "in", SetValue(frozenset({"0", "6"})))
    assert evaluate_condition(weekend, _ctx(as_of=datetime(2026, 10, 17, 10)))
    assert evaluate_condition(weekend, _ctx(as_of=datetime(2026, 10, 18, 10)))
    assert evaluate_condition(weekend, _ctx(as_of=datetime(2026, 10, 16, 10))) is False


def test_document_tags():
    ctx = _ctx(document_tags=["export"])
    assert evaluate_condition(_cond("document_has_tag", "equals", TextValue("export")), ctx)
    assert not evaluate_condition(_cond("document_has_tag", "equals", TextValue("domestic")), ctx)


def test_and_or_fold_within_group():
    ctx = _ctx()
    true_ = _cond("cart_quantity", "equals", NumberValue(5))
    false_ = _cond("cart_quantity", "equals", NumberValue(99))
    false_or = _cond("cart_quantity", "equals", NumberValue(99), logical="OR")
    true_or = _cond("cart_quantity", "equals", NumberValue(5), logical="OR")

    assert evaluate_conditions([true_, false_], ctx) is False
    assert evaluate_conditions([true_, false_or], ctx) is True
    assert evaluate_conditions([false_, true_or], ctx) is True
    # left fold: (false OR true) AND false
    assert evaluate_conditions([false_, true_or, false_], ctx) is False


def test_groups_are_ored():
    ctx = _ctx()
    failing_group = [
        _cond("client_has_tag", "equals", TextValue("vip"), group=1),
        _cond("cart_subtotal", "greater_than", NumberValue(1000), group=1),
    ]
    passing_group = [_cond("product_quantity", "greater_equal", NumberValue(1), group=2)]

    assert evaluate_conditions(failing_group, ctx) is False
    assert evaluate_conditions(failing_group + passing_group, ctx) is True


def test_ungrouped_conditions_share_default_group():
    ctx = _ctx()
    conditions = [
        _cond("client_has_tag", "equals", TextValue("vip")),
        _cond("cart_subtotal", "greater_than", NumberValue(1000)),
    ]
    assert evaluate_conditions(conditions, ctx) is False
