"""Order cancellation — commands and handler.

Before shipment a cancellation voids the order and puts its stock back.
A delivered order still inside the return window is marked returned instead;
everything else is refused.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.config import get_settings
from ordering.domain import ordering
from ordering.inventory.ledger import InventoryLedger
from ordering.order.order import Order, OrderStatus
from ordering.order.repository import order_visible_to

logger = structlog.get_logger(__name__)

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}


@ordering.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    requested_by = Identifier(required=True)
    requested_by_staff = Boolean(default=False)
    reason = Text()
    role = String(max_length=20)


@ordering.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = order_visible_to(command.order_id, command.requested_by, command.requested_by_staff)
        status = OrderStatus(order.order_status)
        actor = command.role or ("staff" if command.requested_by_staff else "customer")

        if status in _CANCELLABLE_STATES:
            order.cancel(reason=command.reason, cancelled_by=actor)

            ledger = InventoryLedger()
            for item in order.items:
                ledger.restore(item.product_id, item.variant_id, item.quantity, order_id=order.id)
            ledger.save()

            if order.is_paid:
                logger.warning(
                    "Paid order cancelled; refund must be issued",
                    order_id=str(order.id),
                    total=order.total,
                )
        elif status == OrderStatus.DELIVERED and order.is_refundable(window_days=get_settings().refund_window_days):
            order.update_status(OrderStatus.RETURNED.value, notes=command.reason)
        else:
            raise ValidationError({"order_status": [f"Order cannot be cancelled once it is {status.value}"]})

        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            order_status=order.order_status,
            cancelled_by=actor,
        )
