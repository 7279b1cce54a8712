"""Application tests for staff order operations and cancellation."""

from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.errors import InvalidTransitionError
from ordering.inventory.record import InventoryRecord
from ordering.order.cancellation import CancelOrder
from ordering.order.management import AddTracking, ReviseCharges, UpdateOrderStatus, UpdatePaymentStatus
from ordering.order.order import Order, OrderStatus


def _order(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def _advance(order_id, *statuses):
    for status in statuses:
        current_domain.process(UpdateOrderStatus(order_id=order_id, status=status), asynchronous=False)


def _cancel(order_id, requested_by="cust-001", staff=False, reason="Changed my mind"):
    current_domain.process(
        CancelOrder(order_id=order_id, requested_by=requested_by, requested_by_staff=staff, reason=reason),
        asynchronous=False,
    )


def _tee_stock() -> int:
    records = current_domain.repository_for(InventoryRecord).for_product("prod-tee")
    return sum(record.quantity for record in records)


class TestUpdateOrderStatus:
    def test_walks_forward(self, placed_order):
        _advance(placed_order, "confirmed", "processing", "shipped", "delivered")
        order = _order(placed_order)
        assert order.order_status == OrderStatus.DELIVERED.value
        assert order.actual_delivery is not None

    def test_illegal_jump_is_rejected_and_not_persisted(self, placed_order):
        with pytest.raises(InvalidTransitionError):
            _advance(placed_order, "shipped")
        assert _order(placed_order).order_status == OrderStatus.PENDING.value

    def test_unknown_order(self):
        with pytest.raises(ObjectNotFoundError):
            _advance("missing-order", "confirmed")

    def test_payment_status_override(self, placed_order):
        current_domain.process(
            UpdatePaymentStatus(order_id=placed_order, payment_status="completed"), asynchronous=False
        )
        assert _order(placed_order).is_paid

    def test_add_tracking(self, placed_order):
        current_domain.process(
            AddTracking(order_id=placed_order, tracking_number="TRK1", carrier="Delhivery"), asynchronous=False
        )
        assert _order(placed_order).tracking_number == "TRK1"

    def test_revise_charges(self, placed_order):
        current_domain.process(ReviseCharges(order_id=placed_order, tax=18.0), asynchronous=False)
        assert _order(placed_order).total == 118.0


class TestCancelOrder:
    def test_pending_cancel_restores_stock(self, placed_order):
        assert _tee_stock() == 8
        _cancel(placed_order)

        order = _order(placed_order)
        assert order.order_status == OrderStatus.CANCELLED.value
        assert order.cancellation_reason == "Changed my mind"
        assert order.cancelled_by == "customer"
        assert _tee_stock() == 10

    def test_processing_order_can_be_cancelled_by_staff(self, placed_order):
        _advance(placed_order, "confirmed", "processing")
        _cancel(placed_order, requested_by="staff-1", staff=True)

        order = _order(placed_order)
        assert order.order_status == OrderStatus.CANCELLED.value
        assert order.cancelled_by == "staff"

    def test_shipped_order_cannot_be_cancelled(self, placed_order):
        _advance(placed_order, "confirmed", "processing", "shipped")
        with pytest.raises(ValidationError):
            _cancel(placed_order)
        assert _tee_stock() == 8

    def test_delivered_order_in_window_is_returned(self, placed_order):
        _advance(placed_order, "confirmed", "processing", "shipped", "delivered")
        _cancel(placed_order, reason="Does not fit")

        assert _order(placed_order).order_status == OrderStatus.RETURNED.value
        assert _tee_stock() == 8

    def test_delivered_order_past_window_is_refused(self, placed_order):
        _advance(placed_order, "confirmed", "processing", "shipped", "delivered")
        order = _order(placed_order)
        order.actual_delivery = datetime.now(UTC) - timedelta(days=45)
        current_domain.repository_for(Order).add(order)

        with pytest.raises(ValidationError):
            _cancel(placed_order)

    def test_cancelling_twice_is_refused(self, placed_order):
        _cancel(placed_order)
        with pytest.raises(ValidationError):
            _cancel(placed_order)
        assert _tee_stock() == 10

    def test_other_customers_order_reads_as_missing(self, placed_order):
        with pytest.raises(ObjectNotFoundError):
            _cancel(placed_order, requested_by="cust-999")
        assert _order(placed_order).order_status == OrderStatus.PENDING.value
