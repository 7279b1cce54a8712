"""Configurable fake payment gateway for development and testing.

No external calls are made. Behaviour can be switched at runtime (through
``/payments/gateway/configure`` or directly in tests) to approve, decline or
fail outright. Webhooks are signed with HMAC-SHA256 over the raw body using
the shared secret; ``sign()`` produces the matching header value.
"""

import hashlib
import hmac
from uuid import uuid4

from ordering.errors import PaymentGatewayError
from ordering.payment.gateway.port import IntentResult, PaymentGateway, RefundResult


class FakeGateway(PaymentGateway):
    name = "fake"

    def __init__(self, webhook_secret: str = "whsec_development") -> None:
        self.webhook_secret = webhook_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.unavailable: bool = False
        self.confirm_status: str = "succeeded"
        self.intents: dict[str, dict] = {}
        self.calls: list[dict] = []

    def configure(
        self,
        should_succeed: bool,
        failure_reason: str = "Card declined",
        unavailable: bool = False,
        confirm_status: str = "succeeded",
    ) -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.unavailable = unavailable
        self.confirm_status = confirm_status

    def _guard(self) -> None:
        if self.unavailable:
            raise PaymentGatewayError("Payment processor unavailable")

    def create_intent(self, amount: int, currency: str, metadata: dict, idempotency_key: str) -> IntentResult:
        self.calls.append(
            {
                "method": "create_intent",
                "amount": amount,
                "currency": currency,
                "metadata": dict(metadata),
                "idempotency_key": idempotency_key,
            }
        )
        self._guard()

        if not self.should_succeed:
            return IntentResult(success=False, status="failed", failure_reason=self.failure_reason)

        intent_id = f"pi_fake_{uuid4().hex[:16]}"
        self.intents[intent_id] = {"amount": amount, "currency": currency, "metadata": dict(metadata)}
        return IntentResult(
            success=True,
            intent_id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:8]}",
            status="requires_payment_method",
            amount=amount,
            currency=currency,
        )

    def confirm_intent(self, intent_id: str, payment_method_id: str | None = None) -> IntentResult:
        self.calls.append({"method": "confirm_intent", "intent_id": intent_id, "payment_method_id": payment_method_id})
        self._guard()

        intent = self.intents.get(intent_id, {})
        if not self.should_succeed:
            return IntentResult(
                success=False,
                intent_id=intent_id,
                status="requires_payment_method",
                amount=intent.get("amount"),
                currency=intent.get("currency"),
                failure_reason=self.failure_reason,
            )

        return IntentResult(
            success=True,
            intent_id=intent_id,
            status=self.confirm_status,
            amount=intent.get("amount"),
            currency=intent.get("currency"),
            charge_id=f"ch_fake_{uuid4().hex[:16]}" if self.confirm_status == "succeeded" else None,
        )

    def create_refund(self, charge_id: str, amount: int, reason: str | None = None) -> RefundResult:
        self.calls.append({"method": "create_refund", "charge_id": charge_id, "amount": amount, "reason": reason})
        self._guard()

        if not self.should_succeed:
            return RefundResult(success=False, status="failed", failure_reason=self.failure_reason)
        return RefundResult(success=True, refund_id=f"re_fake_{uuid4().hex[:16]}", status="succeeded")

    def sign(self, payload: bytes | str) -> str:
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        return hmac.new(self.webhook_secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()

    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        return hmac.compare_digest(self.sign(payload), signature or "")
