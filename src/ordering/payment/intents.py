"""Client-initiated payment — create and confirm payment intents.

The order only moves to ``completed`` after the processor reports a
succeeded intent; declines and processor errors leave it as it was, so the
client can simply retry.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import PaymentDeclinedError, PaymentGatewayError
from ordering.order.order import Order, PaymentMethod
from ordering.order.repository import order_visible_to
from ordering.payment.gateway import get_gateway
from ordering.shared.money import to_minor_units

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CreatePaymentIntent:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    payment_method = String(choices=PaymentMethod)


@ordering.command(part_of="Order")
class ConfirmPayment:
    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    payment_intent_id = String(required=True, max_length=255)
    payment_method_id = String(max_length=255)


@ordering.command_handler(part_of=Order)
class PaymentIntentHandler:
    @handle(CreatePaymentIntent)
    def create_payment_intent(self, command):
        order = order_visible_to(command.order_id, command.customer_id)
        order.ensure_payable()
        if PaymentMethod(order.payment_method) == PaymentMethod.COD:
            raise ValidationError({"payment_method": ["Cash on delivery orders are paid at delivery"]})

        amount = to_minor_units(order.total)
        if amount <= 0:
            raise ValidationError({"total": ["Order total must be positive to take payment"]})

        result = get_gateway().create_intent(
            amount=amount,
            currency=order.currency.lower(),
            metadata={"order_id": str(order.id), "order_number": order.order_number},
            idempotency_key=f"{order.id}-intent-{(order.payment_attempts or 0) + 1}",
        )
        if not result.success:
            raise PaymentGatewayError(result.failure_reason or "Could not create payment intent")

        order.attach_payment_intent(result.intent_id, amount)
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Payment intent created",
            order_id=str(order.id),
            payment_intent_id=result.intent_id,
            amount=amount,
            attempt=order.payment_attempts,
        )
        return {
            "client_secret": result.client_secret,
            "payment_intent_id": result.intent_id,
            "amount": amount,
            "currency": order.currency,
        }

    @handle(ConfirmPayment)
    def confirm_payment(self, command):
        order = order_visible_to(command.order_id, command.customer_id)
        if order.payment_intent_id != command.payment_intent_id:
            raise ValidationError({"payment_intent_id": ["Payment intent does not belong to this order"]})

        if order.is_paid:
            return {
                "id": command.payment_intent_id,
                "status": "succeeded",
                "amount": to_minor_units(order.total),
                "currency": order.currency.lower(),
            }

        result = get_gateway().confirm_intent(command.payment_intent_id, command.payment_method_id)
        if not result.success:
            logger.info("Payment declined", order_id=str(order.id), reason=result.failure_reason)
            raise PaymentDeclinedError(result.failure_reason or "Payment was declined")
        if result.status != "succeeded":
            raise PaymentDeclinedError(f"Payment not completed: {result.status}")

        order.record_payment(transaction_id=result.charge_id)
        current_domain.repository_for(Order).add(order)

        logger.info("Payment confirmed", order_id=str(order.id), transaction_id=order.transaction_id)
        return {
            "id": result.intent_id,
            "status": result.status,
            "amount": result.amount,
            "currency": result.currency,
        }
