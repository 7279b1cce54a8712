"""Checkout — turn the customer's cart into an order.

The handler runs in a single unit of work: the order, the inventory draws
and the emptied cart are committed together, or not at all.

    1. Load the cart; it must exist, be non-empty and unexpired.
    2. Check every line against the catalogue and stock, collecting all
       problems before reporting them.
    3. Snapshot the lines and the cart totals into a new Order.
    4. Persist the order under a fresh order number.
    5. Draw stock per line through the ledger's conditional decrement.
    6. Clear the cart.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.cart.validation import cart_violations
from ordering.catalogue import get_catalogue
from ordering.domain import ordering
from ordering.errors import ConflictError
from ordering.inventory.ledger import InventoryLedger
from ordering.order.order import Order, PaymentMethod, generate_order_number
from ordering.shared.money import round_money
from ordering.shared.shipping import ShippingMethod

logger = structlog.get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


@ordering.command(part_of="Order")
class PlaceOrder:
    customer_id = Identifier(required=True)
    shipping_address = Text(required=True)  # JSON: address dict
    billing_address = Text()  # JSON: address dict, defaults to the shipping address
    shipping_method = String(required=True, choices=ShippingMethod)
    payment_method = String(required=True, choices=PaymentMethod)
    notes = Text()


def _fresh_order_number(repo) -> str:
    for _ in range(ORDER_NUMBER_ATTEMPTS):
        candidate = generate_order_number()
        if not repo.number_taken(candidate):
            return candidate
    raise ConflictError("Could not allocate a unique order number")


def _snapshot_lines(cart) -> list[dict]:
    catalogue = get_catalogue()
    lines = []
    for item in cart.items:
        variant_id = str(item.variant_id) if item.variant_id else None
        product = catalogue.get_product(item.product_id)
        variant = product.variant(variant_id) if variant_id else None
        name = f"{product.name} ({variant.name})" if variant is not None and variant.name else product.name
        lines.append(
            {
                "product_id": str(item.product_id),
                "variant_id": variant_id,
                "name": name,
                "sku": product.sku_for(variant_id),
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "line_total": item.line_total,
                "image": product.image,
            }
        )
    return lines


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart_repo = current_domain.repository_for(Cart)
        cart = cart_repo.for_customer(command.customer_id)
        if cart is None or cart.is_empty:
            raise ValidationError({"cart": ["Cart is empty"]})
        if cart.is_expired():
            raise ValidationError({"cart": ["Cart has expired"]})
        if cart.shipping_method and cart.shipping_method != command.shipping_method:
            raise ValidationError(
                {"shipping_method": ["Shipping method differs from the cart's quote; refresh the cart shipping quote"]}
            )

        ledger = InventoryLedger()
        violations = cart_violations(cart, ledger)
        if violations:
            raise ValidationError({"items": [violation["message"] for violation in violations]})

        shipping_address = json.loads(command.shipping_address)
        billing_address = json.loads(command.billing_address) if command.billing_address else shipping_address

        order_repo = current_domain.repository_for(Order)
        order = Order.place(
            order_number=_fresh_order_number(order_repo),
            customer_id=command.customer_id,
            items=_snapshot_lines(cart),
            shipping_address=shipping_address,
            billing_address=billing_address,
            subtotal=cart.subtotal,
            tax=cart.tax,
            shipping=cart.shipping,
            discount=round_money((cart.discount or 0.0) + (cart.coupon_discount or 0.0)),
            currency=cart.currency,
            payment_method=command.payment_method,
            shipping_method=command.shipping_method,
            notes=command.notes,
        )
        order_repo.add(order)

        for item in order.items:
            ledger.decrement(item.product_id, item.variant_id, item.quantity, order_id=order.id, label=item.name)
        ledger.save()

        cart.clear(reason="checkout")
        cart_repo.add(cart)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(command.customer_id),
            total=order.total,
            lines=len(order.items),
        )
        return str(order.id)
