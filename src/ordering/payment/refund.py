"""Staff refunds, executed at the processor before they are recorded."""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import PaymentGatewayError
from ordering.order.order import Order, PaymentStatus
from ordering.payment.gateway import get_gateway
from ordering.shared.money import round_money, to_minor_units

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class RefundPayment:
    order_id = Identifier(required=True)
    amount = Float(required=True)
    reason = Text()
    requested_by = Identifier()


@ordering.command_handler(part_of=Order)
class RefundPaymentHandler:
    @handle(RefundPayment)
    def refund_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if PaymentStatus(order.payment_status) != PaymentStatus.COMPLETED or not order.transaction_id:
            raise ValidationError(
                {"payment_status": ["Only completed payments with a recorded transaction can be refunded"]}
            )

        amount = round_money(command.amount)
        order.check_refund(amount)

        gateway = get_gateway()
        result = gateway.create_refund(order.transaction_id, to_minor_units(amount), command.reason)
        if not result.success:
            logger.warning("Processor refused refund", order_id=str(order.id), reason=result.failure_reason)
            raise PaymentGatewayError(result.failure_reason or "Refund failed at the payment processor")

        refund = order.record_refund(
            amount,
            reason=command.reason,
            method=gateway.name,
            external_reference=result.refund_id,
        )
        repo.add(order)

        logger.info(
            "Refund processed",
            order_id=str(order.id),
            refund_id=str(refund.id),
            amount=amount,
            processed_by=str(command.requested_by) if command.requested_by else None,
        )
        return {
            "id": str(refund.id),
            "amount": refund.amount,
            "reason": refund.reason,
            "method": refund.method,
            "external_reference": refund.external_reference,
            "refunded_at": refund.refunded_at.isoformat(),
        }
