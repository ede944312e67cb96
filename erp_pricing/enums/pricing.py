from enum import Enum


class RuleType(str, Enum):
    percentage_discount = "percentage_discount"
    fixed_amount_discount = "fixed_amount_discount"
    fixed_price = "fixed_price"
    buy_x_get_y = "buy_x_get_y"
    quantity_discount = "quantity_discount"


class ConditionType(str, Enum):
    cart_subtotal = "cart_subtotal"
    cart_quantity = "cart_quantity"
    product_quantity = "product_quantity"
    unit_price = "unit_price"
    client_has_tag = "client_has_tag"
    client_has_any_tags = "client_has_any_tags"
    client_has_all_tags = "client_has_all_tags"
    product_has_tag = "product_has_tag"
    product_has_any_tags = "product_has_any_tags"
    product_category = "product_category"
    product_sku = "product_sku"
    day_of_week = "day_of_week"
    time_of_day = "time_of_day"
    customer_total_purchases = "customer_total_purchases"
    document_has_tag = "document_has_tag"


class ConditionOperator(str, Enum):
    equals = "equals"
    not_equals = "not_equals"
    greater_than = "greater_than"
    greater_equal = "greater_equal"
    less_than = "less_than"
    less_equal = "less_equal"
    in_ = "in"
    not_in = "not_in"
    between = "between"


class LogicalOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class TargetType(str, Enum):
    product = "product"
    category = "category"
    client = "client"
    tag = "tag"
    all_products = "all_products"
    cheapest_item = "cheapest_item"
    most_expensive_item = "most_expensive_item"
