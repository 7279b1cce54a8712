"""Staff order operations: status, payment status, tracking and charges."""

import structlog
from protean import handle
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    notes = Text()


@ordering.command(part_of="Order")
class UpdatePaymentStatus:
    order_id = Identifier(required=True)
    payment_status = String(required=True, max_length=20)


@ordering.command(part_of="Order")
class AddTracking:
    order_id = Identifier(required=True)
    tracking_number = String(required=True, max_length=100)
    carrier = String(required=True, max_length=100)
    tracking_url = String(max_length=500)


@ordering.command(part_of="Order")
class ReviseCharges:
    order_id = Identifier(required=True)
    tax = Float(min_value=0.0)
    shipping = Float(min_value=0.0)
    discount = Float(min_value=0.0)


@ordering.command_handler(part_of=Order)
class OrderManagementHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous = order.order_status
        order.update_status(command.status, notes=command.notes)
        repo.add(order)
        logger.info(
            "Order status updated",
            order_id=str(order.id),
            previous_status=previous,
            new_status=order.order_status,
        )

    @handle(UpdatePaymentStatus)
    def update_payment_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.update_payment_status(command.payment_status)
        repo.add(order)
        logger.info("Payment status updated", order_id=str(order.id), payment_status=order.payment_status)

    @handle(AddTracking)
    def add_tracking(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.add_tracking(command.tracking_number, command.carrier, command.tracking_url)
        repo.add(order)

    @handle(ReviseCharges)
    def revise_charges(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.revise_charges(tax=command.tax, shipping=command.shipping, discount=command.discount)
        repo.add(order)
