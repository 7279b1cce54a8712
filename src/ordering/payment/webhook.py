"""Processor webhooks: reconcile asynchronous payment events with orders.

Deliveries may repeat, so every branch is idempotent: replaying an event
leaves the order exactly as the first delivery did. The handler returns a
disposition string (``processed``, ``duplicate`` or ``ignored``) for logging.

    payment_intent.succeeded       → payment completed (paid_at set once)
    payment_intent.payment_failed  → payment failed (reason recorded)
    charge.refunded                → refund appended for the newly refunded amount
    anything else                  → acknowledged and ignored
"""

import json

import structlog
from protean import handle
from protean.fields import String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import Order, OrderStatus
from ordering.payment.gateway import get_gateway
from ordering.shared.money import from_minor_units, round_money

logger = structlog.get_logger(__name__)

PROCESSED = "processed"
DUPLICATE = "duplicate"
IGNORED = "ignored"


@ordering.command(part_of="Order")
class ProcessPaymentWebhook:
    event_id = String(max_length=255)
    event_type = String(required=True, max_length=100)
    event_object = Text(required=True)  # JSON: the event's data.object


def _locate_by_intent(repo, intent_id, metadata) -> Order | None:
    order = repo.by_payment_intent(intent_id) if intent_id else None
    if order is None and metadata.get("order_id"):
        # Raises ObjectNotFoundError when the referenced order is gone
        order = repo.get(metadata["order_id"])
    return order


@ordering.command_handler(part_of=Order)
class PaymentWebhookHandler:
    @handle(ProcessPaymentWebhook)
    def process_payment_webhook(self, command):
        handlers = {
            "payment_intent.succeeded": self._payment_succeeded,
            "payment_intent.payment_failed": self._payment_failed,
            "charge.refunded": self._charge_refunded,
        }
        handler = handlers.get(command.event_type)
        if handler is None:
            logger.info("Unhandled webhook event type", event_type=command.event_type, event_id=command.event_id)
            return IGNORED

        disposition = handler(json.loads(command.event_object), command.event_id)
        logger.info(
            "Webhook processed",
            event_type=command.event_type,
            event_id=command.event_id,
            disposition=disposition,
        )
        return disposition

    def _payment_succeeded(self, intent, event_id):
        repo = current_domain.repository_for(Order)
        order = _locate_by_intent(repo, intent.get("id"), intent.get("metadata") or {})
        if order is None:
            logger.warning("Payment succeeded for an unknown intent", payment_intent_id=intent.get("id"))
            return IGNORED

        if not order.record_payment(transaction_id=intent.get("latest_charge")):
            return DUPLICATE
        if not order.payment_intent_id:
            order.payment_intent_id = intent.get("id")

        repo.add(order)
        if OrderStatus(order.order_status) == OrderStatus.CANCELLED:
            logger.warning("Payment captured for a cancelled order", order_id=str(order.id), event_id=event_id)
        return PROCESSED

    def _payment_failed(self, intent, event_id):
        repo = current_domain.repository_for(Order)
        order = _locate_by_intent(repo, intent.get("id"), intent.get("metadata") or {})
        if order is None:
            logger.warning("Payment failure for an unknown intent", payment_intent_id=intent.get("id"))
            return IGNORED

        if order.is_paid:
            logger.warning(
                "Payment failure reported for a paid order",
                order_id=str(order.id),
                payment_intent_id=intent.get("id"),
                event_id=event_id,
            )
            return IGNORED

        reason = (intent.get("last_payment_error") or {}).get("message") or "Payment failed"
        if not order.record_payment_failure(reason):
            return DUPLICATE

        repo.add(order)
        return PROCESSED

    def _charge_refunded(self, charge, event_id):
        repo = current_domain.repository_for(Order)
        order = repo.by_transaction(charge.get("id")) if charge.get("id") else None
        if order is None and charge.get("payment_intent"):
            order = repo.by_payment_intent(charge["payment_intent"])
        if order is None:
            logger.warning("Refund for an unknown charge", charge_id=charge.get("id"), event_id=event_id)
            return IGNORED

        refunds = (charge.get("refunds") or {}).get("data") or []
        refund_id = refunds[0].get("id") if refunds else None
        if refund_id and order.has_refund(refund_id):
            return DUPLICATE

        refunded = from_minor_units(charge.get("amount_refunded", 0))
        delta = round_money(refunded - order.refunded_total)
        if delta <= 0:
            return DUPLICATE

        order.record_refund(
            delta,
            reason="Refunded at the payment processor",
            method=get_gateway().name,
            external_reference=refund_id,
        )
        repo.add(order)
        return PROCESSED
