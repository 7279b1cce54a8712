"""FastAPI routes for payment intents, confirmation, webhooks and refunds."""

import json

import structlog
from fastapi import APIRouter, Depends, Header, Request
from protean.utils.globals import current_domain

from ordering.api.auth import Principal, current_principal, staff_principal
from ordering.api.errors import error_response
from ordering.api.schemas import (
    ApiResponse,
    ConfigureGatewayRequest,
    ConfirmPaymentRequest,
    ConfirmPayload,
    CreateIntentRequest,
    GatewayConfigPayload,
    IntentPayload,
    OrderView,
    PaymentIntentEcho,
    PaymentMethodsPayload,
    PaymentStatusPayload,
    RefundPayload,
    RefundRequest,
    RefundView,
    WebhookAck,
)
from ordering.config import get_settings
from ordering.errors import ForbiddenError
from ordering.order.order import Order, PaymentMethod
from ordering.order.repository import order_visible_to
from ordering.payment.gateway import get_gateway
from ordering.payment.gateway.fake_adapter import FakeGateway
from ordering.payment.intents import ConfirmPayment, CreatePaymentIntent
from ordering.payment.refund import RefundPayment
from ordering.payment.webhook import ProcessPaymentWebhook

logger = structlog.get_logger(__name__)

payment_router = APIRouter(prefix="/payments", tags=["payments"])


@payment_router.post("/create-intent", response_model=ApiResponse[IntentPayload])
async def create_payment_intent(body: CreateIntentRequest, principal: Principal = Depends(current_principal)):
    """Open a processor payment intent for one of the caller's orders."""
    command = CreatePaymentIntent(
        order_id=body.order_id,
        customer_id=principal.id,
        payment_method=body.payment_method.value if body.payment_method else None,
    )
    result = current_domain.process(command, asynchronous=False)
    return ApiResponse[IntentPayload](message="Payment intent created", data=IntentPayload(**result))


@payment_router.post("/confirm", response_model=ApiResponse[ConfirmPayload])
async def confirm_payment(body: ConfirmPaymentRequest, principal: Principal = Depends(current_principal)):
    command = ConfirmPayment(
        order_id=body.order_id,
        customer_id=principal.id,
        payment_intent_id=body.payment_intent_id,
        payment_method_id=body.payment_method_id,
    )
    intent = current_domain.process(command, asynchronous=False)
    order = current_domain.repository_for(Order).get(body.order_id)
    return ApiResponse[ConfirmPayload](
        message="Payment confirmed successfully",
        data=ConfirmPayload(
            order=OrderView.from_aggregate(order, refund_window_days=get_settings().refund_window_days),
            payment_intent=PaymentIntentEcho(**intent),
        ),
    )


@payment_router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    x_gateway_signature: str | None = Header(default=None),
):
    """Receive a processor webhook.

    The signature is checked against the raw body before anything is parsed.
    A delivery that fails while being applied answers 500 so the processor
    redelivers it.
    """
    payload = await request.body()
    event = get_gateway().parse_webhook_event(payload, stripe_signature or x_gateway_signature or "")

    command = ProcessPaymentWebhook(
        event_id=event.id,
        event_type=event.type,
        event_object=json.dumps(event.object),
    )
    try:
        disposition = current_domain.process(command, asynchronous=False)
    except Exception as exc:
        logger.exception("Webhook processing failed", event_id=event.id, event_type=event.type)
        return error_response(500, "WEBHOOK_PROCESSING_FAILED", "Webhook processing failed", exc=exc)

    return WebhookAck(received=True, disposition=disposition)


@payment_router.post("/{order_id}/refund", response_model=ApiResponse[RefundPayload])
async def refund_payment(order_id: str, body: RefundRequest, principal: Principal = Depends(staff_principal)):
    command = RefundPayment(order_id=order_id, amount=body.amount, reason=body.reason, requested_by=principal.id)
    refund = current_domain.process(command, asynchronous=False)
    return ApiResponse[RefundPayload](
        message="Refund processed successfully",
        data=RefundPayload(refund=RefundView(**refund)),
    )


@payment_router.get("/{order_id}/status", response_model=ApiResponse[PaymentStatusPayload])
async def get_payment_status(order_id: str, principal: Principal = Depends(current_principal)):
    order = order_visible_to(order_id, principal.id, principal.is_staff)
    return ApiResponse[PaymentStatusPayload](
        message="Payment status retrieved",
        data=PaymentStatusPayload(
            order_id=str(order.id),
            order_number=order.order_number,
            payment_status=order.payment_status,
            payment_method=order.payment_method,
            payment_intent_id=order.payment_intent_id,
            transaction_id=order.transaction_id,
            paid_at=order.paid_at,
            total=order.total,
            refunded_total=order.refunded_total,
            currency=order.currency,
        ),
    )


@payment_router.get("/methods", response_model=ApiResponse[PaymentMethodsPayload])
async def list_payment_methods():
    return ApiResponse[PaymentMethodsPayload](
        message="Payment methods retrieved",
        data=PaymentMethodsPayload(payment_methods=[method.value for method in PaymentMethod]),
    )


@payment_router.post("/gateway/configure", response_model=ApiResponse[GatewayConfigPayload])
async def configure_gateway(body: ConfigureGatewayRequest):
    """Toggle the fake gateway's behaviour for manual testing. Unavailable in production."""
    if get_settings().is_production:
        raise ForbiddenError("Gateway configuration not available in production")

    gateway = get_gateway()
    if not isinstance(gateway, FakeGateway):
        raise ForbiddenError("Gateway configuration only available for the fake gateway")

    gateway.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
        unavailable=body.unavailable,
        confirm_status=body.confirm_status,
    )
    return ApiResponse[GatewayConfigPayload](
        message="Gateway configured",
        data=GatewayConfigPayload(
            should_succeed=gateway.should_succeed,
            failure_reason=gateway.failure_reason,
            unavailable=gateway.unavailable,
            confirm_status=gateway.confirm_status,
        ),
    )
