"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands and aggregates. Every response is wrapped in
``ApiResponse``: ``{"success": true, "message": "...", "data": {...}}``.
"""

from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

from ordering.order.order import PaymentMethod, PaymentStatus
from ordering.shared.shipping import ShippingMethod

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: str = ""
    data: T


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str = Field(min_length=1, max_length=150)
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str | None = None
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=100)
    phone: str | None = None


# ---------------------------------------------------------------------------
# Cart requests
# ---------------------------------------------------------------------------
class AddToCartRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(default=1, ge=1, le=99)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "variant_id": "var-001-m",
                    "quantity": 2,
                }
            ]
        }
    }


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=1, le=99)


class ApplyCouponRequest(BaseModel):
    coupon_code: str = Field(min_length=1, max_length=50)


class SelectShippingRequest(BaseModel):
    shipping_method: ShippingMethod


class GuestCartItem(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(default=1, ge=1, le=99)


class MergeCartRequest(BaseModel):
    items: list[GuestCartItem]


class ExtendCartRequest(BaseModel):
    days: int | None = Field(default=None, ge=1, le=365)


# ---------------------------------------------------------------------------
# Order requests
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    payment_method: PaymentMethod
    notes: str | None = Field(default=None, max_length=1000)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "shipping_address": {
                        "full_name": "Asha Rao",
                        "street": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "KA",
                        "postal_code": "560001",
                        "country": "IN",
                    },
                    "shipping_method": "standard",
                    "payment_method": "credit_card",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str
    notes: str | None = None


class UpdatePaymentStatusRequest(BaseModel):
    payment_status: PaymentStatus


class AddTrackingRequest(BaseModel):
    tracking_number: str = Field(min_length=1, max_length=100)
    carrier: str = Field(min_length=1, max_length=100)
    tracking_url: str | None = None


class ReviseChargesRequest(BaseModel):
    tax: float | None = Field(default=None, ge=0)
    shipping: float | None = Field(default=None, ge=0)
    discount: float | None = Field(default=None, ge=0)


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Payment requests
# ---------------------------------------------------------------------------
class CreateIntentRequest(BaseModel):
    order_id: str
    payment_method: PaymentMethod | None = None


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str
    order_id: str
    payment_method_id: str | None = None


class RefundRequest(BaseModel):
    amount: float = Field(gt=0)
    reason: str | None = Field(default=None, max_length=500)


class ConfigureGatewayRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Card declined"
    unavailable: bool = False
    confirm_status: str = "succeeded"


# ---------------------------------------------------------------------------
# Inventory requests
# ---------------------------------------------------------------------------
class InitializeStockRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    sku: str = Field(min_length=1, max_length=100)
    quantity: int = Field(ge=0)
    low_stock_threshold: int | None = Field(default=None, ge=0)


class ReceiveStockRequest(BaseModel):
    quantity: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------
class CartItemView(BaseModel):
    id: str
    product_id: str
    variant_id: str | None = None
    quantity: int
    unit_price: float
    line_total: float
    added_at: datetime | None = None


class CartView(BaseModel):
    id: str
    customer_id: str
    items: list[CartItemView]
    item_count: int
    subtotal: float
    tax: float
    shipping: float
    discount: float
    coupon_code: str | None = None
    coupon_discount: float
    total: float
    currency: str
    tax_rate: float
    shipping_method: str | None = None
    expires_at: datetime | None = None
    is_expired: bool
    updated_at: datetime | None = None

    @classmethod
    def from_aggregate(cls, cart) -> "CartView":
        return cls(
            id=str(cart.id),
            customer_id=str(cart.customer_id),
            items=[
                CartItemView(
                    id=str(item.id),
                    product_id=str(item.product_id),
                    variant_id=str(item.variant_id) if item.variant_id else None,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total,
                    added_at=item.added_at,
                )
                for item in cart.items
            ],
            item_count=cart.item_count,
            subtotal=cart.subtotal or 0.0,
            tax=cart.tax or 0.0,
            shipping=cart.shipping or 0.0,
            discount=cart.discount or 0.0,
            coupon_code=cart.coupon_code,
            coupon_discount=cart.coupon_discount or 0.0,
            total=cart.total or 0.0,
            currency=cart.currency,
            tax_rate=cart.tax_rate or 0.0,
            shipping_method=cart.shipping_method,
            expires_at=cart.expires_at,
            is_expired=cart.is_expired(),
            updated_at=cart.updated_at,
        )


class CartSummary(BaseModel):
    item_count: int = 0
    subtotal: float = 0.0
    tax: float = 0.0
    shipping: float = 0.0
    discount: float = 0.0
    total: float = 0.0


class CartViolation(BaseModel):
    item_id: str
    product_id: str
    variant_id: str | None = None
    message: str


class OrderItemView(BaseModel):
    id: str
    product_id: str
    variant_id: str | None = None
    name: str
    sku: str
    quantity: int
    unit_price: float
    line_total: float
    image: str | None = None


class RefundView(BaseModel):
    id: str
    amount: float
    reason: str | None = None
    method: str
    external_reference: str | None = None
    refunded_at: datetime

    @classmethod
    def from_entity(cls, refund) -> "RefundView":
        return cls(
            id=str(refund.id),
            amount=refund.amount,
            reason=refund.reason,
            method=refund.method,
            external_reference=refund.external_reference,
            refunded_at=refund.refunded_at,
        )


class OrderView(BaseModel):
    id: str
    order_number: str
    customer_id: str
    items: list[OrderItemView]
    shipping_address: AddressSchema
    billing_address: AddressSchema
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    currency: str
    payment_method: str
    shipping_method: str
    order_status: str
    payment_status: str
    payment_intent_id: str | None = None
    transaction_id: str | None = None
    paid_at: datetime | None = None
    payment_failure_reason: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    tracking_url: str | None = None
    estimated_delivery: datetime | None = None
    actual_delivery: datetime | None = None
    notes: str | None = None
    refunds: list[RefundView]
    refunded_total: float
    is_refundable: bool
    cancellation_reason: str | None = None
    cancelled_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_aggregate(cls, order, refund_window_days: int = 30) -> "OrderView":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            customer_id=str(order.customer_id),
            items=[
                OrderItemView(
                    id=str(item.id),
                    product_id=str(item.product_id),
                    variant_id=str(item.variant_id) if item.variant_id else None,
                    name=item.name,
                    sku=item.sku,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total,
                    image=item.image,
                )
                for item in order.items
            ],
            shipping_address=AddressSchema(**order.shipping_address.to_dict()),
            billing_address=AddressSchema(**order.billing_address.to_dict()),
            subtotal=order.subtotal,
            tax=order.tax,
            shipping=order.shipping,
            discount=order.discount,
            total=order.total,
            currency=order.currency,
            payment_method=order.payment_method,
            shipping_method=order.shipping_method,
            order_status=order.order_status,
            payment_status=order.payment_status,
            payment_intent_id=order.payment_intent_id,
            transaction_id=order.transaction_id,
            paid_at=order.paid_at,
            payment_failure_reason=order.payment_failure_reason,
            tracking_number=order.tracking_number,
            carrier=order.carrier,
            tracking_url=order.tracking_url,
            estimated_delivery=order.estimated_delivery,
            actual_delivery=order.actual_delivery,
            notes=order.notes,
            refunds=[RefundView.from_entity(refund) for refund in order.refunds],
            refunded_total=order.refunded_total,
            is_refundable=order.is_refundable(window_days=refund_window_days),
            cancellation_reason=order.cancellation_reason,
            cancelled_at=order.cancelled_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class InvoiceView(BaseModel):
    """A billing view of an order, rendered from its placement snapshot."""

    invoice_number: str
    order_number: str
    customer_id: str
    billing_address: AddressSchema
    items: list[OrderItemView]
    subtotal: float
    tax: float
    shipping: float
    discount: float
    total: float
    refunded_total: float
    currency: str
    payment_method: str
    payment_status: str
    order_date: datetime | None = None
    due_date: datetime | None = None

    @classmethod
    def from_aggregate(cls, order) -> "InvoiceView":
        view = OrderView.from_aggregate(order)
        return cls(
            invoice_number=f"INV-{order.order_number}",
            order_number=order.order_number,
            customer_id=view.customer_id,
            billing_address=view.billing_address,
            items=view.items,
            subtotal=order.subtotal,
            tax=order.tax,
            shipping=order.shipping,
            discount=order.discount,
            total=order.total,
            refunded_total=order.refunded_total,
            currency=order.currency,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            order_date=order.created_at,
            # Payment is due on placement
            due_date=order.created_at,
        )


class InventoryRecordView(BaseModel):
    id: str
    product_id: str
    variant_id: str | None = None
    sku: str
    quantity: int
    reserved: int
    available: int
    low_stock_threshold: int
    is_low_stock: bool
    is_out_of_stock: bool

    @classmethod
    def from_aggregate(cls, record) -> "InventoryRecordView":
        return cls(
            id=str(record.id),
            product_id=str(record.product_id),
            variant_id=str(record.variant_id) if record.variant_id else None,
            sku=record.sku,
            quantity=record.quantity,
            reserved=record.reserved or 0,
            available=record.available,
            low_stock_threshold=record.low_stock_threshold or 0,
            is_low_stock=record.is_low_stock,
            is_out_of_stock=record.is_out_of_stock,
        )


class PaymentIntentEcho(BaseModel):
    id: str | None = None
    status: str | None = None
    amount: int | None = None
    currency: str | None = None


# ---------------------------------------------------------------------------
# Response payloads
# ---------------------------------------------------------------------------
class CartPayload(BaseModel):
    cart: CartView


class CartSummaryPayload(BaseModel):
    summary: CartSummary


class CartValidationPayload(BaseModel):
    valid: bool
    errors: list[CartViolation]


class CartExpiryPayload(BaseModel):
    is_expired: bool
    expires_at: datetime | None = None


class OrderPayload(BaseModel):
    order: OrderView


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class OrderListPayload(BaseModel):
    orders: list[OrderView]
    count: int
    pagination: Pagination


class InvoicePayload(BaseModel):
    invoice: InvoiceView


class IntentPayload(BaseModel):
    client_secret: str | None = None
    payment_intent_id: str
    amount: int
    currency: str


class ConfirmPayload(BaseModel):
    order: OrderView
    payment_intent: PaymentIntentEcho


class RefundPayload(BaseModel):
    refund: RefundView


class PaymentStatusPayload(BaseModel):
    order_id: str
    order_number: str
    payment_status: str
    payment_method: str
    payment_intent_id: str | None = None
    transaction_id: str | None = None
    paid_at: datetime | None = None
    total: float
    refunded_total: float
    currency: str


class PaymentMethodsPayload(BaseModel):
    payment_methods: list[str]


class WebhookAck(BaseModel):
    received: bool = True
    disposition: str


class GatewayConfigPayload(BaseModel):
    should_succeed: bool
    failure_reason: str
    unavailable: bool
    confirm_status: str


class InventoryPayload(BaseModel):
    record: InventoryRecordView


class InventoryListPayload(BaseModel):
    records: list[InventoryRecordView]
