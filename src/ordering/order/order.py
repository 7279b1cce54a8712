"""Order aggregate — the immutable record of a checkout.

Line items, addresses and the checkout totals are snapshotted when the order
is placed and never change afterwards. Two status fields evolve on their own
state machines, each behind a single mutator that consults its transition
table:

    order_status:   pending → confirmed → processing → shipped → delivered
                    pending/confirmed/processing → cancelled
                    shipped/delivered → returned

    payment_status: pending → processing → completed → refunded
                    pending/processing → failed → pending (retry)

Refunds accumulate in an append-only list whose sum never exceeds the total.
"""

import json
import random
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from ordering.domain import ordering
from ordering.errors import InvalidTransitionError
from ordering.order.events import (
    OrderCancelled,
    OrderChargesRevised,
    OrderPlaced,
    OrderRefunded,
    OrderStatusChanged,
    PaymentCompleted,
    PaymentFailed,
    PaymentIntentCreated,
    PaymentStatusChanged,
    TrackingAdded,
)
from ordering.shared.money import Currency, round_money
from ordering.shared.shipping import ShippingMethod, delivery_days

ORDER_NUMBER_PREFIX = "WM"
REFUND_WINDOW_DAYS = 30


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"


class PaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    UPI = "upi"
    NET_BANKING = "net_banking"
    WALLET = "wallet"
    COD = "cod"


_ORDER_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.RETURNED: set(),  # Terminal
}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PROCESSING, PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.PROCESSING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED},
    PaymentStatus.FAILED: {PaymentStatus.PENDING},  # Retry
    PaymentStatus.REFUNDED: set(),  # Terminal
}

# Charges may be revised until fulfilment starts
_REVISABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

_PAID_STATES = {PaymentStatus.COMPLETED, PaymentStatus.REFUNDED}


def generate_order_number(now=None) -> str:
    """``WM`` + low 8 digits of the millisecond timestamp + 3 random digits.

    Not unique by construction; the placing handler retries on collision.
    """
    millis = int((now or datetime.now(UTC)).timestamp() * 1000)
    return f"{ORDER_NUMBER_PREFIX}{str(millis)[-8:]}{random.randint(0, 999):03d}"


def _parse(enum_cls, value, field):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError({field: [f"Unknown {field.replace('_', ' ')}: {value}"]}) from None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class Address:
    """A delivery or billing address as it was at checkout."""

    full_name = String(required=True, max_length=150)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)
    phone = String(max_length=30)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    name = String(required=True, max_length=255)
    sku = String(required=True, max_length=100)
    quantity = Integer(required=True, min_value=1, max_value=99)
    unit_price = Float(required=True, min_value=0.0)
    line_total = Float(required=True, min_value=0.0)
    image = String(max_length=500)


@ordering.entity(part_of="Order")
class RefundRecord:
    amount = Float(required=True, min_value=0.01)
    reason = Text()
    method = String(required=True, max_length=50)
    refunded_at = DateTime(required=True)
    external_reference = String(max_length=255)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=20, unique=True)
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address, required=True)
    billing_address = ValueObject(Address, required=True)

    subtotal = Float(min_value=0.0, default=0.0)
    tax = Float(min_value=0.0, default=0.0)
    shipping = Float(min_value=0.0, default=0.0)
    discount = Float(min_value=0.0, default=0.0)
    total = Float(min_value=0.0, default=0.0)
    currency = String(max_length=3, choices=Currency, default=Currency.INR.value)

    payment_method = String(required=True, choices=PaymentMethod)
    shipping_method = String(choices=ShippingMethod, default=ShippingMethod.STANDARD.value)
    order_status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)

    payment_intent_id = String(max_length=255)
    transaction_id = String(max_length=255)
    paid_at = DateTime()
    payment_failure_reason = Text()
    payment_attempts = Integer(min_value=0, default=0)

    tracking_number = String(max_length=100)
    carrier = String(max_length=100)
    tracking_url = String(max_length=500)
    estimated_delivery = DateTime()
    actual_delivery = DateTime()

    notes = Text()
    admin_notes = Text()
    refunds = HasMany(RefundRecord)

    cancellation_reason = Text()
    cancelled_by = String(max_length=50)
    cancelled_at = DateTime()

    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_match_components(self):
        expected = max(
            0.0,
            round_money(
                (self.subtotal or 0.0) + (self.tax or 0.0) + (self.shipping or 0.0) - (self.discount or 0.0)
            ),
        )
        if round_money(self.total) != expected:
            raise ValidationError({"total": [f"Order total {self.total} does not match its components ({expected})"]})

    @invariant.post
    def refunds_cannot_exceed_total(self):
        if self.refunded_total > round_money(self.total):
            raise ValidationError({"refunds": ["Refunds cannot exceed the order total"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        customer_id,
        items,
        shipping_address,
        billing_address,
        subtotal,
        tax,
        shipping,
        discount,
        currency,
        payment_method,
        shipping_method,
        notes=None,
    ):
        """Create an order from checkout data.

        Args:
            items: list of dicts with product_id, variant_id, name, sku,
                quantity, unit_price, line_total and image.
            shipping_address / billing_address: dicts of Address fields.
        """
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        total = max(0.0, round_money(subtotal + tax + shipping - discount))
        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            items=[OrderItem(**item) for item in items],
            shipping_address=Address(**shipping_address),
            billing_address=Address(**billing_address),
            subtotal=round_money(subtotal),
            tax=round_money(tax),
            shipping=round_money(shipping),
            discount=round_money(discount),
            total=total,
            currency=currency,
            payment_method=_parse(PaymentMethod, payment_method, "payment_method").value,
            shipping_method=_parse(ShippingMethod, shipping_method, "shipping_method").value,
            order_status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            notes=notes,
            created_at=now,
            updated_at=now,
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                customer_id=str(customer_id),
                items=json.dumps(items),
                subtotal=order.subtotal,
                tax=order.tax,
                shipping=order.shipping,
                discount=order.discount,
                total=order.total,
                currency=order.currency,
                payment_method=order.payment_method,
                shipping_method=order.shipping_method,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def refunded_total(self) -> float:
        return round_money(sum(refund.amount for refund in self.refunds))

    @property
    def is_fully_refunded(self) -> bool:
        return bool(self.refunds) and self.refunded_total >= round_money(self.total)

    @property
    def is_paid(self) -> bool:
        return PaymentStatus(self.payment_status) in _PAID_STATES

    def is_refundable(self, now=None, window_days=REFUND_WINDOW_DAYS) -> bool:
        """Delivered, not fully refunded, and still inside the return window."""
        if OrderStatus(self.order_status) != OrderStatus.DELIVERED:
            return False
        if self.is_fully_refunded or self.actual_delivery is None:
            return False
        return (now or datetime.now(UTC)) - self.actual_delivery <= timedelta(days=window_days)

    # -------------------------------------------------------------------
    # Order status machine
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target):
        current = OrderStatus(self.order_status)
        if target not in _ORDER_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(
                {"order_status": [f"Cannot transition order from {current.value} to {target.value}"]}
            )

    def update_status(self, new_status, notes=None):
        target = _parse(OrderStatus, new_status, "order_status")
        self._assert_can_transition(target)

        previous = self.order_status
        now = datetime.now(UTC)
        with atomic_change(self):
            self.order_status = target.value
            if target == OrderStatus.PROCESSING:
                self.estimated_delivery = now + timedelta(days=delivery_days(self.shipping_method))
            elif target == OrderStatus.DELIVERED:
                self.actual_delivery = now
            if notes:
                self._append_admin_note(notes, now)
            self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target.value,
                notes=notes,
                changed_at=now,
            )
        )

    def _append_admin_note(self, note, now):
        entry = f"[{now.isoformat()}] {note}"
        self.admin_notes = f"{self.admin_notes}\n{entry}" if self.admin_notes else entry

    def cancel(self, reason=None, cancelled_by=None):
        self.update_status(OrderStatus.CANCELLED.value, notes=reason)

        now = datetime.now(UTC)
        self.cancellation_reason = reason
        self.cancelled_by = cancelled_by
        self.cancelled_at = now
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=cancelled_by,
                cancelled_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Payment status machine
    # -------------------------------------------------------------------
    def _assert_can_transition_payment(self, target):
        current = PaymentStatus(self.payment_status)
        if target not in _PAYMENT_TRANSITIONS.get(current, set()):
            raise InvalidTransitionError(
                {"payment_status": [f"Cannot transition payment from {current.value} to {target.value}"]}
            )

    def update_payment_status(self, new_status):
        target = _parse(PaymentStatus, new_status, "payment_status")
        self._assert_can_transition_payment(target)

        previous = self.payment_status
        now = datetime.now(UTC)
        self.payment_status = target.value
        if target == PaymentStatus.COMPLETED and self.paid_at is None:
            self.paid_at = now
        self.updated_at = now

        self.raise_(
            PaymentStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target.value,
                changed_at=now,
            )
        )

    def ensure_payable(self):
        if self.is_paid:
            raise ValidationError({"payment_status": ["Order has already been paid"]})
        if OrderStatus(self.order_status) == OrderStatus.CANCELLED:
            raise ValidationError({"order_status": ["Cannot take payment for a cancelled order"]})

    def attach_payment_intent(self, payment_intent_id, amount_minor):
        """Record a freshly created processor intent; the payment is now in flight."""
        self.ensure_payable()

        if PaymentStatus(self.payment_status) == PaymentStatus.FAILED:
            self.update_payment_status(PaymentStatus.PENDING.value)
        if PaymentStatus(self.payment_status) == PaymentStatus.PENDING:
            self.update_payment_status(PaymentStatus.PROCESSING.value)

        self.payment_intent_id = payment_intent_id
        self.payment_attempts = (self.payment_attempts or 0) + 1
        self.payment_failure_reason = None
        self.raise_(
            PaymentIntentCreated(
                order_id=str(self.id),
                payment_intent_id=payment_intent_id,
                amount=amount_minor,
                currency=self.currency,
                attempt=self.payment_attempts,
            )
        )

    def record_payment(self, transaction_id=None, paid_at=None) -> bool:
        """Mark the order paid. Returns False when it already was."""
        if self.is_paid:
            return False

        if PaymentStatus(self.payment_status) == PaymentStatus.FAILED:
            self.update_payment_status(PaymentStatus.PENDING.value)

        self._assert_can_transition_payment(PaymentStatus.COMPLETED)
        if paid_at is not None and self.paid_at is None:
            self.paid_at = paid_at
        self.update_payment_status(PaymentStatus.COMPLETED.value)
        if transaction_id and not self.transaction_id:
            self.transaction_id = transaction_id
        self.payment_failure_reason = None

        self.raise_(
            PaymentCompleted(
                order_id=str(self.id),
                transaction_id=self.transaction_id,
                amount=self.total,
                paid_at=self.paid_at,
            )
        )
        return True

    def record_payment_failure(self, reason=None) -> bool:
        """Mark the payment failed. Returns False when there is nothing to change."""
        current = PaymentStatus(self.payment_status)
        if current == PaymentStatus.FAILED or current in _PAID_STATES:
            return False

        now = datetime.now(UTC)
        self.update_payment_status(PaymentStatus.FAILED.value)
        self.payment_failure_reason = reason
        self.raise_(PaymentFailed(order_id=str(self.id), reason=reason, failed_at=now))
        return True

    # -------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------
    def check_refund(self, amount):
        """Raise unless ``amount`` can be refunded against this order right now."""
        amount = round_money(amount)
        if amount <= 0:
            raise ValidationError({"amount": ["Refund amount must be positive"]})
        if amount > round_money(self.total):
            raise ValidationError({"amount": ["Refund amount cannot exceed the order total"]})
        if self.is_fully_refunded:
            raise ValidationError({"amount": ["Order has already been fully refunded"]})
        if round_money(self.refunded_total + amount) > round_money(self.total):
            remaining = round_money(self.total - self.refunded_total)
            raise ValidationError({"amount": [f"Refund amount exceeds the refundable balance of {remaining}"]})
        if PaymentStatus(self.payment_status) != PaymentStatus.REFUNDED:
            self._assert_can_transition_payment(PaymentStatus.REFUNDED)

    def record_refund(self, amount, reason=None, method="original_payment", external_reference=None):
        """Append a refund and mark the payment refunded."""
        amount = round_money(amount)
        self.check_refund(amount)

        now = datetime.now(UTC)
        refund = RefundRecord(
            amount=amount,
            reason=reason,
            method=method,
            refunded_at=now,
            external_reference=external_reference,
        )
        self.add_refunds(refund)
        if PaymentStatus(self.payment_status) != PaymentStatus.REFUNDED:
            self.update_payment_status(PaymentStatus.REFUNDED.value)

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                refund_id=str(refund.id),
                amount=amount,
                reason=reason,
                method=method,
                external_reference=external_reference,
                refunded_total=self.refunded_total,
                refunded_at=now,
            )
        )
        return refund

    def has_refund(self, external_reference) -> bool:
        return any(refund.external_reference == external_reference for refund in self.refunds)

    # -------------------------------------------------------------------
    # Tracking and charges
    # -------------------------------------------------------------------
    def add_tracking(self, tracking_number, carrier, tracking_url=None):
        self.tracking_number = tracking_number
        self.carrier = carrier
        self.tracking_url = tracking_url
        self.updated_at = datetime.now(UTC)

        self.raise_(
            TrackingAdded(
                order_id=str(self.id),
                tracking_number=tracking_number,
                carrier=carrier,
                tracking_url=tracking_url,
            )
        )

    def revise_charges(self, tax=None, shipping=None, discount=None):
        """Adjust tax, shipping or discount before fulfilment starts; the total follows."""
        if OrderStatus(self.order_status) not in _REVISABLE_STATES:
            raise ValidationError({"order_status": [f"Charges cannot be revised once an order is {self.order_status}"]})
        if self.is_paid:
            raise ValidationError({"payment_status": ["Charges cannot be revised after payment"]})

        with atomic_change(self):
            if tax is not None:
                self.tax = round_money(tax)
            if shipping is not None:
                self.shipping = round_money(shipping)
            if discount is not None:
                self.discount = round_money(discount)
            self.total = max(0.0, round_money(self.subtotal + self.tax + self.shipping - self.discount))
            self.updated_at = datetime.now(UTC)

        self.raise_(
            OrderChargesRevised(
                order_id=str(self.id),
                tax=self.tax,
                shipping=self.shipping,
                discount=self.discount,
                total=self.total,
            )
        )
