"""Shared BDD fixtures and step definitions for the Ordering domain."""

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

from ordering.inventory.record import InventoryRecord
from ordering.order.order import Order


@pytest.fixture()
def customer_id():
    return "cust-001"


@pytest.fixture()
def error():
    """Container for the exception a When step was expected to raise."""
    return {"exc": None}


def stock_of(product_id, variant_id=None) -> int:
    records = current_domain.repository_for(InventoryRecord).for_product(product_id)
    return sum(record.quantity for record in records if variant_id is None or record.variant_id == variant_id)


# ---------------------------------------------------------------------------
# Given steps: inventory and cart
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the product "{product_id}" has {quantity:d} units in stock'))
def product_in_stock(stock, product_id, quantity):
    stock(product_id, quantity=quantity)


@given(parsers.cfparse('variant "{variant_id}" of "{product_id}" has {quantity:d} units in stock'))
def variant_in_stock(stock, product_id, variant_id, quantity):
    stock(product_id, variant_id, quantity=quantity)


@given(parsers.cfparse('the customer has {quantity:d} of "{product_id}" in the cart'))
def product_in_cart(add_to_cart, customer_id, product_id, quantity):
    add_to_cart(customer_id, product_id, quantity=quantity)


@given(parsers.cfparse('the customer has {quantity:d} of variant "{variant_id}" of "{product_id}" in the cart'))
def variant_in_cart(add_to_cart, customer_id, product_id, variant_id, quantity):
    add_to_cart(customer_id, product_id, quantity=quantity, variant_id=variant_id)


@given(parsers.cfparse('the customer placed an order paying by "{payment_method}"'), target_fixture="order_id")
def placed_order_paying_by(checkout, customer_id, payment_method):
    return checkout(customer_id, payment_method=payment_method)


# ---------------------------------------------------------------------------
# Then steps: shared assertions
# ---------------------------------------------------------------------------
@then("the action fails with a validation error")
def action_fails(error):
    assert error["exc"] is not None, "Expected a validation error but none was raised"
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order_id, status):
    assert current_domain.repository_for(Order).get(order_id).order_status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def payment_status_is(order_id, status):
    assert current_domain.repository_for(Order).get(order_id).payment_status == status


@then(parsers.cfparse('the stock of variant "{variant_id}" of "{product_id}" is {quantity:d}'))
def variant_stock_is(product_id, variant_id, quantity):
    assert stock_of(product_id, variant_id) == quantity


@then(parsers.cfparse('the stock of "{product_id}" is {quantity:d}'))
def product_stock_is(product_id, quantity):
    assert stock_of(product_id) == quantity
