"""Cart lifecycle: opening, clearing, expiry, shipping choice and guest merges."""

import json
from collections import defaultdict

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.cart.validation import ensure_stock, sellable_product
from ordering.config import get_settings
from ordering.domain import ordering
from ordering.inventory.ledger import InventoryLedger
from ordering.shared.shipping import ShippingMethod

logger = structlog.get_logger(__name__)


def cart_for(customer_id) -> Cart:
    """Load the customer's cart, opening one on first use.

    An expired cart is emptied and given a fresh horizon before it is handed
    out, so callers never mutate a stale cart.
    """
    settings = get_settings()
    cart = current_domain.repository_for(Cart).for_customer(customer_id)
    if cart is None:
        return Cart.open(
            customer_id=customer_id,
            currency=settings.default_currency,
            tax_rate=settings.tax_rate,
            expiry_days=settings.cart_expiry_days,
        )

    if cart.reset_if_expired(settings.cart_expiry_days):
        logger.info("Expired cart reset", cart_id=str(cart.id), customer_id=str(customer_id))
    return cart


@ordering.command(part_of="Cart")
class OpenCart:
    customer_id = Identifier(required=True)


@ordering.command(part_of="Cart")
class ClearCart:
    customer_id = Identifier(required=True)


@ordering.command(part_of="Cart")
class ExtendCartExpiry:
    customer_id = Identifier(required=True)
    days = Integer(min_value=1)


@ordering.command(part_of="Cart")
class SelectShippingMethod:
    customer_id = Identifier(required=True)
    shipping_method = String(required=True, choices=ShippingMethod)


@ordering.command(part_of="Cart")
class MergeGuestCart:
    """Fold the lines of a guest session's cart into the customer's cart."""

    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of {product_id, variant_id, quantity}


@ordering.command_handler(part_of=Cart)
class CartManagementHandler:
    @handle(OpenCart)
    def open_cart(self, command):
        cart = cart_for(command.customer_id)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        cart = cart_for(command.customer_id)
        cart.clear()
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(ExtendCartExpiry)
    def extend_cart_expiry(self, command):
        cart = cart_for(command.customer_id)
        cart.extend_expiry(command.days or get_settings().cart_expiry_days)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(SelectShippingMethod)
    def select_shipping_method(self, command):
        cart = cart_for(command.customer_id)
        cart.select_shipping_method(command.shipping_method)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(MergeGuestCart)
    def merge_guest_cart(self, command):
        guest_items = json.loads(command.items)
        if not isinstance(guest_items, list):
            raise ValidationError({"items": ["Guest items must be a list"]})

        cart = cart_for(command.customer_id)
        ledger = InventoryLedger()
        lines = []
        requested = defaultdict(int)  # (product_id, variant_id) -> units across guest lines so far
        for guest_item in guest_items:
            variant_id = guest_item.get("variant_id")
            product = sellable_product(guest_item["product_id"], variant_id)
            quantity = int(guest_item.get("quantity", 1))
            requested[(product.id, variant_id)] += quantity
            wanted = cart.quantity_of(product.id, variant_id) + requested[(product.id, variant_id)]
            ensure_stock(product, variant_id, wanted, ledger)
            lines.append(
                {
                    "product_id": product.id,
                    "variant_id": variant_id,
                    "quantity": quantity,
                    "unit_price": product.price_for(variant_id),
                }
            )

        cart.merge_items(lines)
        current_domain.repository_for(Cart).add(cart)
        logger.info("Guest cart merged", cart_id=str(cart.id), items_merged=len(lines))
        return str(cart.id)
