"""Cart coupons, resolved through the catalogue's coupon book."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.cart.cart import Cart
from ordering.cart.management import cart_for
from ordering.catalogue import get_catalogue
from ordering.domain import ordering

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Cart")
class ApplyCartCoupon:
    customer_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)


@ordering.command(part_of="Cart")
class RemoveCartCoupon:
    customer_id = Identifier(required=True)


@ordering.command_handler(part_of=Cart)
class CartCouponHandler:
    @handle(ApplyCartCoupon)
    def apply_cart_coupon(self, command):
        coupon = get_catalogue().get_coupon(command.coupon_code)
        if coupon is None or not coupon.is_active:
            raise ValidationError({"coupon_code": [f"Coupon {command.coupon_code} is not valid"]})

        cart = cart_for(command.customer_id)
        cart.apply_coupon(coupon.code, coupon.discount_for(cart.subtotal))
        current_domain.repository_for(Cart).add(cart)
        logger.info("Coupon applied", cart_id=str(cart.id), coupon_code=cart.coupon_code, discount=cart.coupon_discount)
        return str(cart.id)

    @handle(RemoveCartCoupon)
    def remove_cart_coupon(self, command):
        cart = cart_for(command.customer_id)
        cart.remove_coupon()
        current_domain.repository_for(Cart).add(cart)
        return str(cart.id)
