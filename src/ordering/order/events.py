"""Domain events for the Order aggregate.

All events are versioned, immutable facts raised from the aggregate's
transition methods.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """A cart was converted into an order at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of line snapshots
    subtotal = Float(required=True)
    tax = Float()
    shipping = Float()
    discount = Float()
    total = Float(required=True)
    currency = String(required=True)
    payment_method = String(required=True)
    shipping_method = String(required=True)
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    notes = Text()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = Text()
    cancelled_by = String()
    cancelled_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderChargesRevised:
    __version__ = 1

    order_id = Identifier(required=True)
    tax = Float(required=True)
    shipping = Float(required=True)
    discount = Float(required=True)
    total = Float(required=True)


@ordering.event(part_of="Order")
class TrackingAdded:
    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    carrier = String(required=True)
    tracking_url = String()


@ordering.event(part_of="Order")
class PaymentIntentCreated:
    __version__ = 1

    order_id = Identifier(required=True)
    payment_intent_id = String(required=True)
    amount = Integer(required=True)  # minor units
    currency = String(required=True)
    attempt = Integer(required=True)


@ordering.event(part_of="Order")
class PaymentStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentCompleted:
    __version__ = 1

    order_id = Identifier(required=True)
    transaction_id = String()
    amount = Float(required=True)
    paid_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentFailed:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = Text()
    failed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderRefunded:
    __version__ = 1

    order_id = Identifier(required=True)
    refund_id = Identifier(required=True)
    amount = Float(required=True)
    reason = Text()
    method = String(required=True)
    external_reference = String()
    refunded_total = Float(required=True)
    refunded_at = DateTime(required=True)
