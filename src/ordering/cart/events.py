"""Domain events for the Cart aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from ordering.domain import ordering


@ordering.event(part_of="Cart")
class CartOpened:
    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    expires_at = DateTime(required=True)


@ordering.event(part_of="Cart")
class CartItemAdded:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True)
    unit_price = Float(required=True)


@ordering.event(part_of="Cart")
class CartQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@ordering.event(part_of="Cart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@ordering.event(part_of="Cart")
class CartCleared:
    """All lines and the coupon were dropped (by the customer, at checkout or on expiry)."""

    __version__ = 1

    cart_id = Identifier(required=True)
    reason = String(required=True)


@ordering.event(part_of="Cart")
class CartCouponApplied:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)
    discount = Float(required=True)


@ordering.event(part_of="Cart")
class CartCouponRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    coupon_code = String(required=True)


@ordering.event(part_of="Cart")
class CartShippingMethodSelected:
    __version__ = 1

    cart_id = Identifier(required=True)
    shipping_method = String(required=True)
    shipping = Float(required=True)


@ordering.event(part_of="Cart")
class CartExpiryExtended:
    __version__ = 1

    cart_id = Identifier(required=True)
    expires_at = DateTime(required=True)


@ordering.event(part_of="Cart")
class CartsMerged:
    __version__ = 1

    cart_id = Identifier(required=True)
    items_merged = Integer(required=True)
