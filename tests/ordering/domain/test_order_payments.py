"""Payment recording, refunds, refundability and charge revisions on the Order aggregate."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from ordering.errors import InvalidTransitionError
from ordering.order.events import OrderChargesRevised, OrderRefunded, PaymentCompleted, PaymentIntentCreated
from ordering.order.order import PaymentStatus


def _paid(order, transaction_id="ch_001"):
    order.record_payment(transaction_id=transaction_id)
    return order


class TestRecordPayment:
    def test_record_payment_completes(self, make_order):
        order = make_order()
        assert order.record_payment(transaction_id="ch_001") is True

        assert order.payment_status == PaymentStatus.COMPLETED.value
        assert order.transaction_id == "ch_001"
        assert order.paid_at is not None
        assert isinstance(order._events[-1], PaymentCompleted)

    def test_record_payment_is_idempotent(self, make_order):
        order = _paid(make_order())
        paid_at = order.paid_at
        event_count = len(order._events)

        assert order.record_payment(transaction_id="ch_other") is False
        assert order.paid_at == paid_at
        assert order.transaction_id == "ch_001"
        assert len(order._events) == event_count

    def test_record_payment_after_failure(self, make_order):
        order = make_order()
        order.record_payment_failure("Card declined")
        assert order.record_payment(transaction_id="ch_002") is True
        assert order.payment_failure_reason is None

    def test_failure_recorded_once(self, make_order):
        order = make_order()
        assert order.record_payment_failure("Card declined") is True
        assert order.record_payment_failure("Card declined") is False
        assert order.payment_failure_reason == "Card declined"

    def test_failure_ignored_once_paid(self, make_order):
        order = _paid(make_order())
        assert order.record_payment_failure("late failure") is False
        assert order.payment_status == PaymentStatus.COMPLETED.value


class TestPaymentIntents:
    def test_attach_intent_moves_payment_to_processing(self, make_order):
        order = make_order()
        order.attach_payment_intent("pi_001", 10000)

        assert order.payment_status == PaymentStatus.PROCESSING.value
        assert order.payment_intent_id == "pi_001"
        assert order.payment_attempts == 1
        assert isinstance(order._events[-1], PaymentIntentCreated)

    def test_retry_after_failure_counts_attempts(self, make_order):
        order = make_order()
        order.attach_payment_intent("pi_001", 10000)
        order.record_payment_failure("Card declined")
        order.attach_payment_intent("pi_002", 10000)

        assert order.payment_attempts == 2
        assert order.payment_intent_id == "pi_002"
        assert order.payment_failure_reason is None

    def test_paid_order_is_not_payable(self, make_order):
        order = _paid(make_order())
        with pytest.raises(ValidationError):
            order.attach_payment_intent("pi_003", 10000)

    def test_cancelled_order_is_not_payable(self, make_order):
        order = make_order()
        order.cancel(reason="Changed my mind")
        with pytest.raises(ValidationError):
            order.ensure_payable()


class TestRefunds:
    def test_refund_exceeding_total_rejected(self, make_order):
        order = _paid(make_order(subtotal=200.0))
        assert order.total == 200.0

        with pytest.raises(ValidationError) as exc:
            order.record_refund(250.0, reason="damaged")

        assert "amount" in exc.value.messages
        assert order.payment_status == PaymentStatus.COMPLETED.value
        assert len(order.refunds) == 0

    def test_partial_refund(self, make_order):
        order = _paid(make_order())
        refund = order.record_refund(40.0, reason="damaged", method="fake", external_reference="re_001")

        assert refund.amount == 40.0
        assert order.refunded_total == 40.0
        assert order.payment_status == PaymentStatus.REFUNDED.value
        assert not order.is_fully_refunded
        assert order.has_refund("re_001")
        assert isinstance(order._events[-1], OrderRefunded)
        assert order._events[-1].refunded_total == 40.0

    def test_refunds_accumulate_up_to_total(self, make_order):
        order = _paid(make_order())
        order.record_refund(60.0)
        order.record_refund(40.0)

        assert order.refunded_total == 100.0
        assert order.is_fully_refunded
        with pytest.raises(ValidationError):
            order.record_refund(0.01)

    def test_refund_beyond_remaining_balance_rejected(self, make_order):
        order = _paid(make_order())
        order.record_refund(70.0)
        with pytest.raises(ValidationError) as exc:
            order.record_refund(40.0)
        assert "30.0" in exc.value.messages["amount"][0]
        assert order.refunded_total == 70.0

    def test_non_positive_refund_rejected(self, make_order):
        order = _paid(make_order())
        with pytest.raises(ValidationError):
            order.check_refund(0)

    def test_unpaid_order_cannot_be_refunded(self, make_order):
        with pytest.raises(InvalidTransitionError):
            make_order().record_refund(10.0)


class TestRefundability:
    def _delivered(self, make_order, days_ago):
        order = make_order()
        for status in ("confirmed", "processing", "shipped", "delivered"):
            order.update_status(status)
        order.actual_delivery = datetime.now(UTC) - timedelta(days=days_ago)
        return order

    def test_delivered_31_days_ago_is_not_refundable(self, make_order):
        assert self._delivered(make_order, 31).is_refundable() is False

    def test_delivered_29_days_ago_is_refundable(self, make_order):
        assert self._delivered(make_order, 29).is_refundable() is True

    def test_window_is_configurable(self, make_order):
        order = self._delivered(make_order, 10)
        assert order.is_refundable(window_days=7) is False

    def test_undelivered_order_is_not_refundable(self, make_order):
        assert make_order().is_refundable() is False

    def test_fully_refunded_order_is_not_refundable(self, make_order):
        order = self._delivered(make_order, 1)
        _paid(order)
        order.record_refund(order.total)
        assert order.is_refundable() is False


class TestChargeRevision:
    def test_revise_recomputes_total(self, make_order):
        order = make_order()
        order.revise_charges(tax=18.0, shipping=120.0)

        assert order.total == 238.0
        assert isinstance(order._events[-1], OrderChargesRevised)

    def test_discount_cannot_push_total_below_zero(self, make_order):
        order = make_order()
        order.revise_charges(discount=500.0)
        assert order.total == 0.0

    def test_revision_after_processing_rejected(self, make_order):
        order = make_order()
        order.update_status("confirmed")
        order.update_status("processing")
        with pytest.raises(ValidationError):
            order.revise_charges(tax=5.0)

    def test_revision_after_payment_rejected(self, make_order):
        order = _paid(make_order())
        with pytest.raises(ValidationError):
            order.revise_charges(shipping=10.0)


class TestTracking:
    def test_add_tracking(self, make_order):
        order = make_order()
        order.add_tracking("TRK123", "BlueDart", "https://track.example.com/TRK123")
        assert (order.tracking_number, order.carrier) == ("TRK123", "BlueDart")
