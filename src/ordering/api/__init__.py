"""Ordering API package."""

from ordering.api.payment_routes import payment_router
from ordering.api.routes import cart_router, inventory_router, order_router

__all__ = ["cart_router", "order_router", "inventory_router", "payment_router"]
