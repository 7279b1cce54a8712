"""Payment gateway port (abstract interface).

The payment coordinator talks to the external processor only through this
contract, so the fake adapter (development and tests) and the Stripe adapter
(production) are interchangeable. Amounts cross the port in integer minor
units.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from ordering.errors import InvalidSignatureError


@dataclass(frozen=True)
class IntentResult:
    """Outcome of creating or confirming a payment intent."""

    success: bool
    intent_id: str | None = None
    client_secret: str | None = None
    status: str | None = None
    amount: int | None = None
    currency: str | None = None
    charge_id: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class RefundResult:
    success: bool
    refund_id: str | None = None
    status: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class WebhookEvent:
    id: str
    type: str
    data: dict = field(default_factory=dict)

    @property
    def object(self) -> dict:
        return self.data.get("object", {})


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name = "gateway"

    @abstractmethod
    def create_intent(self, amount: int, currency: str, metadata: dict, idempotency_key: str) -> IntentResult:
        """Open a payment intent for ``amount`` minor units."""
        ...

    @abstractmethod
    def confirm_intent(self, intent_id: str, payment_method_id: str | None = None) -> IntentResult:
        ...

    @abstractmethod
    def create_refund(self, charge_id: str, amount: int, reason: str | None = None) -> RefundResult:
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: bytes, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...

    def parse_webhook_event(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify, then decode a webhook delivery. Unverified payloads are never parsed."""
        if not signature or not self.verify_webhook_signature(payload, signature):
            raise InvalidSignatureError("Invalid webhook signature")

        try:
            body = json.loads(payload)
        except ValueError as exc:
            raise InvalidSignatureError("Webhook payload is not valid JSON") from exc

        if not isinstance(body, dict) or "type" not in body:
            raise InvalidSignatureError("Webhook payload is not an event")
        return WebhookEvent(id=str(body.get("id", "")), type=body["type"], data=body.get("data") or {})
