"""FastAPI routes for carts, orders and inventory."""

import json
import math
from typing import Literal

from fastapi import APIRouter, Depends, Query
from protean.utils.globals import current_domain

from ordering.api.auth import Principal, current_principal, staff_principal
from ordering.api.schemas import (
    AddToCartRequest,
    AddTrackingRequest,
    ApiResponse,
    ApplyCouponRequest,
    CancelOrderRequest,
    CartExpiryPayload,
    CartPayload,
    CartSummary,
    CartSummaryPayload,
    CartValidationPayload,
    CartView,
    CartViolation,
    ExtendCartRequest,
    InitializeStockRequest,
    InventoryListPayload,
    InventoryPayload,
    InventoryRecordView,
    InvoicePayload,
    InvoiceView,
    MergeCartRequest,
    OrderListPayload,
    OrderPayload,
    OrderView,
    Pagination,
    PlaceOrderRequest,
    ReceiveStockRequest,
    ReviseChargesRequest,
    SelectShippingRequest,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
    UpdatePaymentStatusRequest,
)
from ordering.cart.cart import Cart
from ordering.cart.coupons import ApplyCartCoupon, RemoveCartCoupon
from ordering.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from ordering.cart.management import ClearCart, ExtendCartExpiry, MergeGuestCart, OpenCart, SelectShippingMethod
from ordering.cart.validation import cart_violations
from ordering.checkout.placement import PlaceOrder
from ordering.config import get_settings
from ordering.inventory.record import InventoryRecord
from ordering.inventory.stock import InitializeStock, ReceiveStock
from ordering.order.cancellation import CancelOrder
from ordering.order.management import AddTracking, ReviseCharges, UpdateOrderStatus, UpdatePaymentStatus
from ordering.order.order import Order, OrderStatus
from ordering.order.repository import order_visible_to
from ordering.shared.money import round_money


def _cart_response(cart_id: str, message: str) -> ApiResponse[CartPayload]:
    cart = current_domain.repository_for(Cart).get(cart_id)
    return ApiResponse[CartPayload](message=message, data=CartPayload(cart=CartView.from_aggregate(cart)))


def _order_view(order) -> OrderView:
    return OrderView.from_aggregate(order, refund_window_days=get_settings().refund_window_days)


def _order_response(order_id: str, message: str) -> ApiResponse[OrderPayload]:
    order = current_domain.repository_for(Order).get(order_id)
    return ApiResponse[OrderPayload](message=message, data=OrderPayload(order=_order_view(order)))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=ApiResponse[CartPayload])
async def get_cart(principal: Principal = Depends(current_principal)) -> ApiResponse[CartPayload]:
    cart_id = current_domain.process(OpenCart(customer_id=principal.id), asynchronous=False)
    return _cart_response(cart_id, "Cart retrieved successfully")


@cart_router.get("/summary", response_model=ApiResponse[CartSummaryPayload])
async def get_cart_summary(principal: Principal = Depends(current_principal)) -> ApiResponse[CartSummaryPayload]:
    cart = current_domain.repository_for(Cart).for_customer(principal.id)
    summary = CartSummary()
    if cart is not None and not cart.is_expired():
        summary = CartSummary(
            item_count=cart.item_count,
            subtotal=cart.subtotal,
            tax=cart.tax,
            shipping=cart.shipping,
            discount=round_money((cart.discount or 0.0) + (cart.coupon_discount or 0.0)),
            total=cart.total,
        )
    return ApiResponse[CartSummaryPayload](
        message="Cart summary retrieved successfully",
        data=CartSummaryPayload(summary=summary),
    )


@cart_router.post("/add", response_model=ApiResponse[CartPayload])
async def add_to_cart(body: AddToCartRequest, principal: Principal = Depends(current_principal)):
    command = AddToCart(
        customer_id=principal.id,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
    )
    cart_id = current_domain.process(command, asynchronous=False)
    return _cart_response(cart_id, "Item added to cart")


@cart_router.put("/items/{item_id}", response_model=ApiResponse[CartPayload])
async def update_cart_item(
    item_id: str,
    body: UpdateCartItemRequest,
    principal: Principal = Depends(current_principal),
):
    command = UpdateCartQuantity(customer_id=principal.id, item_id=item_id, quantity=body.quantity)
    cart_id = current_domain.process(command, asynchronous=False)
    return _cart_response(cart_id, "Cart item updated")


@cart_router.delete("/items/{item_id}", response_model=ApiResponse[CartPayload])
async def remove_cart_item(item_id: str, principal: Principal = Depends(current_principal)):
    cart_id = current_domain.process(RemoveFromCart(customer_id=principal.id, item_id=item_id), asynchronous=False)
    return _cart_response(cart_id, "Item removed from cart")


@cart_router.post("/clear", response_model=ApiResponse[CartPayload])
async def clear_cart(principal: Principal = Depends(current_principal)):
    cart_id = current_domain.process(ClearCart(customer_id=principal.id), asynchronous=False)
    return _cart_response(cart_id, "Cart cleared")


@cart_router.post("/coupon/apply", response_model=ApiResponse[CartPayload])
async def apply_coupon(body: ApplyCouponRequest, principal: Principal = Depends(current_principal)):
    command = ApplyCartCoupon(customer_id=principal.id, coupon_code=body.coupon_code)
    cart_id = current_domain.process(command, asynchronous=False)
    return _cart_response(cart_id, "Coupon applied successfully")


@cart_router.delete("/coupon", response_model=ApiResponse[CartPayload])
async def remove_coupon(principal: Principal = Depends(current_principal)):
    cart_id = current_domain.process(RemoveCartCoupon(customer_id=principal.id), asynchronous=False)
    return _cart_response(cart_id, "Coupon removed successfully")


@cart_router.post("/shipping", response_model=ApiResponse[CartPayload])
async def select_shipping(body: SelectShippingRequest, principal: Principal = Depends(current_principal)):
    command = SelectShippingMethod(customer_id=principal.id, shipping_method=body.shipping_method.value)
    cart_id = current_domain.process(command, asynchronous=False)
    return _cart_response(cart_id, "Shipping method selected")


@cart_router.post("/validate", response_model=ApiResponse[CartValidationPayload])
async def validate_cart(principal: Principal = Depends(current_principal)):
    """Pre-flight the checkout checks without changing anything."""
    cart = current_domain.repository_for(Cart).for_customer(principal.id)
    if cart is None or cart.is_empty:
        errors = [CartViolation(item_id="", product_id="", message="Cart is empty")]
    else:
        errors = [CartViolation(**violation) for violation in cart_violations(cart)]
    return ApiResponse[CartValidationPayload](
        success=not errors,
        message="Cart is valid" if not errors else "Cart validation failed",
        data=CartValidationPayload(valid=not errors, errors=errors),
    )


@cart_router.post("/merge", response_model=ApiResponse[CartPayload])
async def merge_guest_cart(body: MergeCartRequest, principal: Principal = Depends(current_principal)):
    command = MergeGuestCart(
        customer_id=principal.id,
        items=json.dumps([item.model_dump() for item in body.items]),
    )
    cart_id = current_domain.process(command, asynchronous=False)
    return _cart_response(cart_id, "Guest cart merged")


@cart_router.get("/expiry", response_model=ApiResponse[CartExpiryPayload])
async def check_cart_expiry(principal: Principal = Depends(current_principal)):
    cart = current_domain.repository_for(Cart).for_customer(principal.id)
    if cart is None:
        return ApiResponse[CartExpiryPayload](message="No cart found", data=CartExpiryPayload(is_expired=False))

    is_expired = cart.is_expired()
    if is_expired:
        # Resets the expired cart
        cart_id = current_domain.process(OpenCart(customer_id=principal.id), asynchronous=False)
        cart = current_domain.repository_for(Cart).get(cart_id)
    return ApiResponse[CartExpiryPayload](
        message="Cart expiry checked",
        data=CartExpiryPayload(is_expired=is_expired, expires_at=cart.expires_at),
    )


@cart_router.post("/extend", response_model=ApiResponse[CartPayload])
async def extend_cart(body: ExtendCartRequest | None = None, principal: Principal = Depends(current_principal)):
    days = body.days if body is not None else None
    cart_id = current_domain.process(ExtendCartExpiry(customer_id=principal.id, days=days), asynchronous=False)
    return _cart_response(cart_id, "Cart expiry extended")


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=ApiResponse[OrderPayload])
async def place_order(body: PlaceOrderRequest, principal: Principal = Depends(current_principal)):
    """Check out the caller's cart into a new order."""
    command = PlaceOrder(
        customer_id=principal.id,
        shipping_address=json.dumps(body.shipping_address.model_dump()),
        billing_address=json.dumps(body.billing_address.model_dump()) if body.billing_address else None,
        shipping_method=body.shipping_method.value,
        payment_method=body.payment_method.value,
        notes=body.notes,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return _order_response(order_id, "Order placed successfully")


@order_router.get("", response_model=ApiResponse[OrderListPayload])
async def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: OrderStatus | None = Query(None),
    sort_by: Literal["created_at", "total", "order_number"] = Query("created_at"),
    sort_order: Literal["asc", "desc"] = Query("desc"),
    principal: Principal = Depends(current_principal),
):
    """Orders visible to the caller, one page at a time. Staff see every customer's orders."""
    orders, total = current_domain.repository_for(Order).page(
        customer_id=None if principal.is_staff else principal.id,
        status=status.value if status else None,
        sort_by=sort_by,
        descending=sort_order == "desc",
        page=page,
        limit=limit,
    )
    views = [_order_view(order) for order in orders]
    return ApiResponse[OrderListPayload](
        message="Orders retrieved successfully",
        data=OrderListPayload(
            orders=views,
            count=len(views),
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
        ),
    )


@order_router.get("/{order_id}", response_model=ApiResponse[OrderPayload])
async def get_order(order_id: str, principal: Principal = Depends(current_principal)):
    order = order_visible_to(order_id, principal.id, principal.is_staff)
    return ApiResponse[OrderPayload](
        message="Order retrieved successfully",
        data=OrderPayload(order=_order_view(order)),
    )


@order_router.get("/{order_id}/invoice", response_model=ApiResponse[InvoicePayload])
async def get_invoice(order_id: str, principal: Principal = Depends(current_principal)):
    order = order_visible_to(order_id, principal.id, principal.is_staff)
    return ApiResponse[InvoicePayload](
        message="Invoice generated successfully",
        data=InvoicePayload(invoice=InvoiceView.from_aggregate(order)),
    )


@order_router.post("/{order_id}/status", response_model=ApiResponse[OrderPayload])
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    principal: Principal = Depends(staff_principal),
):
    command = UpdateOrderStatus(order_id=order_id, status=body.status, notes=body.notes)
    current_domain.process(command, asynchronous=False)
    return _order_response(order_id, "Order status updated")


@order_router.post("/{order_id}/payment-status", response_model=ApiResponse[OrderPayload])
async def update_payment_status(
    order_id: str,
    body: UpdatePaymentStatusRequest,
    principal: Principal = Depends(staff_principal),
):
    command = UpdatePaymentStatus(order_id=order_id, payment_status=body.payment_status.value)
    current_domain.process(command, asynchronous=False)
    return _order_response(order_id, "Payment status updated")


@order_router.post("/{order_id}/tracking", response_model=ApiResponse[OrderPayload])
async def add_tracking(order_id: str, body: AddTrackingRequest, principal: Principal = Depends(staff_principal)):
    command = AddTracking(
        order_id=order_id,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
        tracking_url=body.tracking_url,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(order_id, "Tracking information added")


@order_router.put("/{order_id}/charges", response_model=ApiResponse[OrderPayload])
async def revise_charges(order_id: str, body: ReviseChargesRequest, principal: Principal = Depends(staff_principal)):
    command = ReviseCharges(order_id=order_id, tax=body.tax, shipping=body.shipping, discount=body.discount)
    current_domain.process(command, asynchronous=False)
    return _order_response(order_id, "Order charges revised")


@order_router.post("/{order_id}/cancel", response_model=ApiResponse[OrderPayload])
async def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    principal: Principal = Depends(current_principal),
):
    command = CancelOrder(
        order_id=order_id,
        requested_by=principal.id,
        requested_by_staff=principal.is_staff,
        role=principal.role.value,
        reason=body.reason if body is not None else None,
    )
    current_domain.process(command, asynchronous=False)
    return _order_response(order_id, "Order cancelled successfully")


# ---------------------------------------------------------------------------
# Inventory Router
# ---------------------------------------------------------------------------
inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


@inventory_router.post("", status_code=201, response_model=ApiResponse[InventoryPayload])
async def initialize_stock(body: InitializeStockRequest, principal: Principal = Depends(staff_principal)):
    threshold = body.low_stock_threshold
    command = InitializeStock(
        product_id=body.product_id,
        variant_id=body.variant_id,
        sku=body.sku,
        quantity=body.quantity,
        low_stock_threshold=threshold if threshold is not None else get_settings().low_stock_threshold,
    )
    record_id = current_domain.process(command, asynchronous=False)
    record = current_domain.repository_for(InventoryRecord).get(record_id)
    return ApiResponse[InventoryPayload](
        message="Inventory initialized",
        data=InventoryPayload(record=InventoryRecordView.from_aggregate(record)),
    )


@inventory_router.post("/{record_id}/receive", response_model=ApiResponse[InventoryPayload])
async def receive_stock(record_id: str, body: ReceiveStockRequest, principal: Principal = Depends(staff_principal)):
    current_domain.process(ReceiveStock(record_id=record_id, quantity=body.quantity), asynchronous=False)
    record = current_domain.repository_for(InventoryRecord).get(record_id)
    return ApiResponse[InventoryPayload](
        message="Stock received",
        data=InventoryPayload(record=InventoryRecordView.from_aggregate(record)),
    )


@inventory_router.get("", response_model=ApiResponse[InventoryListPayload])
async def list_inventory(product_id: str = Query(...), principal: Principal = Depends(staff_principal)):
    records = current_domain.repository_for(InventoryRecord).for_product(product_id)
    return ApiResponse[InventoryListPayload](
        message="Inventory retrieved",
        data=InventoryListPayload(records=[InventoryRecordView.from_aggregate(record) for record in records]),
    )
