"""Ordering bounded context — carts, orders, inventory and payments.

Hosts the cart-to-order transition: the Cart and Order aggregates, the
inventory ledger drawn down at checkout, and the payment coordinator that
reconciles an order's payment status with the external processor.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
