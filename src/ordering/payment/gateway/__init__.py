"""Payment gateway factory.

``get_gateway()`` builds the adapter named by ``PAYMENT_GATEWAY`` on first
use; ``set_gateway()`` / ``reset_gateway()`` swap it out in tests.
"""

from ordering.config import get_settings
from ordering.payment.gateway.fake_adapter import FakeGateway
from ordering.payment.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def _build_gateway() -> PaymentGateway:
    settings = get_settings()
    if settings.payment_gateway == "fake":
        return FakeGateway(webhook_secret=settings.payment_webhook_secret)
    if settings.payment_gateway == "stripe":
        if not settings.stripe_secret_key or not settings.stripe_webhook_secret:
            raise ValueError("STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET must be set for the stripe gateway")
        from ordering.payment.gateway.stripe_adapter import StripeGateway

        return StripeGateway(api_key=settings.stripe_secret_key, webhook_secret=settings.stripe_webhook_secret)
    raise ValueError(f"Unknown payment gateway: {settings.payment_gateway}")


def get_gateway() -> PaymentGateway:
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = _build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    global _current_gateway
    _current_gateway = None
