"""Stripe payment gateway adapter, built on the stripe-python SDK.

Card declines come back as unsuccessful results; any other Stripe failure
(network, authentication, rate limiting) is raised as PaymentGatewayError so
the caller can surface it without touching the order.
"""

import stripe
import structlog

from ordering.errors import PaymentGatewayError
from ordering.payment.gateway.port import IntentResult, PaymentGateway, RefundResult

logger = structlog.get_logger(__name__)


def _intent_result(intent) -> IntentResult:
    return IntentResult(
        success=True,
        intent_id=intent.id,
        client_secret=getattr(intent, "client_secret", None),
        status=intent.status,
        amount=intent.amount,
        currency=intent.currency,
        charge_id=getattr(intent, "latest_charge", None),
    )


class StripeGateway(PaymentGateway):
    name = "stripe"

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def create_intent(self, amount: int, currency: str, metadata: dict, idempotency_key: str) -> IntentResult:
        try:
            intent = stripe.PaymentIntent.create(
                api_key=self.api_key,
                amount=amount,
                currency=currency.lower(),
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                idempotency_key=idempotency_key,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe intent creation failed", error=str(exc), code=getattr(exc, "code", None))
            raise PaymentGatewayError(exc.user_message or str(exc), processor_code=exc.code) from exc
        return _intent_result(intent)

    def confirm_intent(self, intent_id: str, payment_method_id: str | None = None) -> IntentResult:
        params = {"payment_method": payment_method_id} if payment_method_id else {}
        try:
            intent = stripe.PaymentIntent.confirm(intent_id, api_key=self.api_key, **params)
        except stripe.CardError as exc:
            return IntentResult(
                success=False,
                intent_id=intent_id,
                status="requires_payment_method",
                failure_reason=exc.user_message or str(exc),
            )
        except stripe.StripeError as exc:
            logger.error("Stripe intent confirmation failed", intent_id=intent_id, error=str(exc))
            raise PaymentGatewayError(exc.user_message or str(exc), processor_code=exc.code) from exc
        return _intent_result(intent)

    def create_refund(self, charge_id: str, amount: int, reason: str | None = None) -> RefundResult:
        try:
            refund = stripe.Refund.create(
                api_key=self.api_key,
                charge=charge_id,
                amount=amount,
                metadata={"reason": reason or ""},
            )
        except stripe.InvalidRequestError as exc:
            return RefundResult(success=False, status="failed", failure_reason=exc.user_message or str(exc))
        except stripe.StripeError as exc:
            logger.error("Stripe refund failed", charge_id=charge_id, error=str(exc))
            raise PaymentGatewayError(exc.user_message or str(exc), processor_code=exc.code) from exc

        if refund.status == "failed":
            return RefundResult(
                success=False,
                refund_id=refund.id,
                status=refund.status,
                failure_reason=getattr(refund, "failure_reason", None),
            )
        return RefundResult(success=True, refund_id=refund.id, status=refund.status)

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        body = payload.decode("utf-8") if isinstance(payload, bytes) else payload
        try:
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret)
        except stripe.SignatureVerificationError:
            return False
        return True
