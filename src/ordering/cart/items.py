"""Cart item management — commands and handler.

Prices come from the catalogue at the moment of each mutation; stock is
checked against the inventory ledger for the quantity the line would hold
afterwards.
"""

from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart, validate_quantity
from ordering.cart.management import cart_for
from ordering.cart.validation import ensure_stock, sellable_product
from ordering.domain import ordering


@ordering.command(part_of="Cart")
class AddToCart:
    customer_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)


@ordering.command(part_of="Cart")
class UpdateCartQuantity:
    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)


@ordering.command(part_of="Cart")
class RemoveFromCart:
    customer_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.command_handler(part_of=Cart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        validate_quantity(command.quantity)
        variant_id = str(command.variant_id) if command.variant_id else None
        product = sellable_product(command.product_id, variant_id)

        cart = cart_for(command.customer_id)
        ensure_stock(product, variant_id, cart.quantity_of(product.id, variant_id) + command.quantity)

        cart.add_item(
            product_id=product.id,
            variant_id=variant_id,
            quantity=command.quantity,
            unit_price=product.price_for(variant_id),
        )
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        validate_quantity(command.quantity)
        cart = cart_for(command.customer_id)
        item = cart.find_item(command.item_id)

        variant_id = str(item.variant_id) if item.variant_id else None
        product = sellable_product(item.product_id, variant_id)
        ensure_stock(product, variant_id, command.quantity)

        cart.update_item_quantity(command.item_id, command.quantity)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        cart = cart_for(command.customer_id)
        cart.remove_item(command.item_id)
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)
