"""Tests for the Order aggregate: placement snapshot and order numbers."""

import re

import pytest
from protean.exceptions import ValidationError

from ordering.order.events import OrderPlaced
from ordering.order.order import OrderStatus, PaymentStatus, generate_order_number


class TestOrderPlacement:
    def test_place_starts_pending_on_both_machines(self, make_order):
        order = make_order()
        assert order.order_status == OrderStatus.PENDING.value
        assert order.payment_status == PaymentStatus.PENDING.value

    def test_total_is_computed_from_components(self, make_order):
        order = make_order(subtotal=100.0, tax=18.0, shipping=120.0, discount=20.0)
        assert order.total == 218.0

    def test_total_never_negative(self, make_order):
        order = make_order(subtotal=10.0, discount=25.0)
        assert order.total == 0.0

    def test_items_and_addresses_are_snapshotted(self, make_order):
        order = make_order()
        assert len(order.items) == 1
        assert order.items[0].sku == "TEE-M"
        assert order.shipping_address.city == "Bengaluru"
        assert order.billing_address.postal_code == "560001"

    def test_order_without_items_rejected(self, make_order):
        with pytest.raises(ValidationError):
            make_order(items=[])

    def test_unknown_payment_method_rejected(self, make_order):
        with pytest.raises(ValidationError):
            make_order(payment_method="barter")

    def test_place_raises_order_placed(self, make_order):
        order = make_order()
        event = order._events[-1]
        assert isinstance(event, OrderPlaced)
        assert event.order_number == order.order_number
        assert event.total == 100.0

    def test_refund_bookkeeping_starts_empty(self, make_order):
        order = make_order()
        assert order.refunded_total == 0.0
        assert not order.is_paid
        assert not order.is_fully_refunded


class TestOrderNumbers:
    def test_format(self):
        assert re.fullmatch(r"WM\d{11}", generate_order_number())

    def test_numbers_vary(self):
        numbers = {generate_order_number() for _ in range(50)}
        assert len(numbers) > 1
