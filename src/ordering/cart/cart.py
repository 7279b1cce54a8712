"""Cart aggregate — the customer's mutable pre-order basket.

One cart per customer, opened lazily on first use. Every mutation recomputes
the derived money fields server-side:

    line_total = unit_price * quantity
    subtotal   = sum(line_total)
    tax        = subtotal * tax_rate / 100
    shipping   = quote for the selected shipping method (0 when empty)
    total      = max(0, subtotal + tax + shipping - discount - coupon_discount)

Stock and catalogue checks happen in the command handlers before the
aggregate is touched; the aggregate guards its own shape.
"""

from datetime import UTC, datetime, timedelta

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from ordering.cart.events import (
    CartCleared,
    CartCouponApplied,
    CartCouponRemoved,
    CartExpiryExtended,
    CartItemAdded,
    CartItemRemoved,
    CartOpened,
    CartQuantityUpdated,
    CartsMerged,
    CartShippingMethodSelected,
)
from ordering.domain import ordering
from ordering.shared.money import Currency, round_money
from ordering.shared.shipping import ShippingMethod, shipping_cost

MIN_QUANTITY = 1
MAX_QUANTITY = 99
DEFAULT_EXPIRY_DAYS = 30


def validate_quantity(quantity, field="quantity"):
    if quantity is None or quantity < MIN_QUANTITY or quantity > MAX_QUANTITY:
        raise ValidationError({field: [f"Quantity must be between {MIN_QUANTITY} and {MAX_QUANTITY}"]})


@ordering.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=MIN_QUANTITY, max_value=MAX_QUANTITY)
    unit_price = Float(required=True, min_value=0.0)
    line_total = Float(required=True, min_value=0.0)
    added_at = DateTime()

    def is_for(self, product_id, variant_id=None) -> bool:
        if str(self.product_id) != str(product_id):
            return False
        if variant_id is None or self.variant_id is None:
            return variant_id is None and self.variant_id is None
        return str(self.variant_id) == str(variant_id)


@ordering.aggregate
class Cart:
    customer_id = Identifier(required=True, unique=True)
    items = HasMany(CartItem)
    subtotal = Float(min_value=0.0, default=0.0)
    tax = Float(min_value=0.0, default=0.0)
    shipping = Float(min_value=0.0, default=0.0)
    discount = Float(min_value=0.0, default=0.0)
    coupon_code = String(max_length=50)
    coupon_discount = Float(min_value=0.0, default=0.0)
    total = Float(min_value=0.0, default=0.0)
    currency = String(max_length=3, choices=Currency, default=Currency.INR.value)
    tax_rate = Float(min_value=0.0, max_value=100.0, default=0.0)
    shipping_method = String(choices=ShippingMethod)
    expires_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def total_must_match_components(self):
        deductions = (self.discount or 0.0) + (self.coupon_discount or 0.0)
        charges = (self.subtotal or 0.0) + (self.tax or 0.0) + (self.shipping or 0.0)
        expected = max(0.0, round_money(charges - deductions))
        if round_money(self.total) != expected:
            raise ValidationError({"total": [f"Cart total {self.total} does not match its components ({expected})"]})

    @invariant.post
    def line_totals_must_match_quantities(self):
        for item in self.items:
            if round_money(item.line_total) != round_money(item.unit_price * item.quantity):
                raise ValidationError({"items": [f"Line total out of date for item {item.id}"]})

    @invariant.post
    def one_line_per_product_variant(self):
        keys = [(str(item.product_id), str(item.variant_id)) for item in self.items]
        if len(keys) != len(set(keys)):
            raise ValidationError({"items": ["A product variant may appear only once in the cart"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def open(cls, customer_id, currency=Currency.INR.value, tax_rate=0.0, expiry_days=DEFAULT_EXPIRY_DAYS):
        now = datetime.now(UTC)
        cart = cls(
            customer_id=customer_id,
            currency=currency,
            tax_rate=tax_rate,
            expires_at=now + timedelta(days=expiry_days),
            created_at=now,
            updated_at=now,
        )
        cart.raise_(CartOpened(cart_id=str(cart.id), customer_id=str(customer_id), expires_at=cart.expires_at))
        return cart

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def find_item(self, item_id) -> CartItem:
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ObjectNotFoundError(f"Item {item_id} not found in cart")
        return item

    def find_line(self, product_id, variant_id=None) -> CartItem | None:
        return next((i for i in self.items if i.is_for(product_id, variant_id)), None)

    def quantity_of(self, product_id, variant_id=None) -> int:
        line = self.find_line(product_id, variant_id)
        return line.quantity if line is not None else 0

    def is_expired(self, now=None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(UTC)) > self.expires_at

    def _recalculate(self):
        """Recompute every derived money field. Caller holds ``atomic_change``."""
        for item in self.items:
            item.line_total = round_money(item.unit_price * item.quantity)

        if not self.items:
            self.coupon_code = None
            self.coupon_discount = 0.0
            self.discount = 0.0

        self.subtotal = round_money(sum(item.line_total for item in self.items))
        self.tax = round_money(self.subtotal * (self.tax_rate or 0.0) / 100)
        self.shipping = round_money(shipping_cost(self.shipping_method, self.item_count))
        deductions = (self.discount or 0.0) + (self.coupon_discount or 0.0)
        self.total = max(0.0, round_money(self.subtotal + self.tax + self.shipping - deductions))
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, product_id, quantity, unit_price, variant_id=None):
        """Add a line, or grow the existing line for the same product variant.

        Merging refreshes the line's unit price to ``unit_price``.
        """
        validate_quantity(quantity)

        existing = self.find_line(product_id, variant_id)
        if existing is not None:
            validate_quantity(existing.quantity + quantity)

        with atomic_change(self):
            if existing is not None:
                existing.quantity += quantity
                existing.unit_price = round_money(unit_price)
                existing.line_total = round_money(existing.unit_price * existing.quantity)
                item = existing
            else:
                item = CartItem(
                    product_id=product_id,
                    variant_id=variant_id,
                    quantity=quantity,
                    unit_price=round_money(unit_price),
                    line_total=round_money(unit_price * quantity),
                    added_at=datetime.now(UTC),
                )
                self.add_items(item)
            self._recalculate()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                unit_price=item.unit_price,
            )
        )
        return item

    def update_item_quantity(self, item_id, quantity):
        validate_quantity(quantity)
        item = self.find_item(item_id)

        previous_quantity = item.quantity
        with atomic_change(self):
            item.quantity = quantity
            item.line_total = round_money(item.unit_price * quantity)
            self._recalculate()

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item.id),
                previous_quantity=previous_quantity,
                new_quantity=quantity,
            )
        )
        return item

    def remove_item(self, item_id):
        item = self.find_item(item_id)

        with atomic_change(self):
            self.remove_items(item)
            self._recalculate()

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def clear(self, reason="customer"):
        """Drop every line and the coupon; all totals return to zero."""
        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            self.coupon_code = None
            self.coupon_discount = 0.0
            self.discount = 0.0
            self._recalculate()

        self.raise_(CartCleared(cart_id=str(self.id), reason=reason))

    def merge_items(self, lines):
        """Fold guest-cart lines into this cart.

        Args:
            lines: iterable of dicts with product_id, variant_id, quantity and
                unit_price; quantities are capped at the per-line maximum.
        """
        merged = 0
        with atomic_change(self):
            for line in lines:
                existing = self.find_line(line["product_id"], line.get("variant_id"))
                if existing is not None:
                    existing.quantity = min(existing.quantity + line["quantity"], MAX_QUANTITY)
                    existing.unit_price = round_money(line["unit_price"])
                else:
                    quantity = min(line["quantity"], MAX_QUANTITY)
                    self.add_items(
                        CartItem(
                            product_id=line["product_id"],
                            variant_id=line.get("variant_id"),
                            quantity=quantity,
                            unit_price=round_money(line["unit_price"]),
                            line_total=round_money(line["unit_price"] * quantity),
                            added_at=datetime.now(UTC),
                        )
                    )
                merged += 1
            self._recalculate()

        self.raise_(CartsMerged(cart_id=str(self.id), items_merged=merged))

    # -------------------------------------------------------------------
    # Coupons, tax and shipping
    # -------------------------------------------------------------------
    def apply_coupon(self, coupon_code, discount_amount):
        if self.is_empty:
            raise ValidationError({"coupon_code": ["Cannot apply a coupon to an empty cart"]})
        if discount_amount is None or discount_amount < 0:
            raise ValidationError({"discount": ["Discount must be zero or positive"]})
        if round_money(discount_amount) > self.subtotal:
            raise ValidationError({"discount": ["Discount cannot exceed the cart subtotal"]})

        with atomic_change(self):
            self.coupon_code = coupon_code.upper()
            self.coupon_discount = round_money(discount_amount)
            self._recalculate()

        self.raise_(
            CartCouponApplied(cart_id=str(self.id), coupon_code=self.coupon_code, discount=self.coupon_discount)
        )

    def remove_coupon(self):
        if not self.coupon_code:
            return

        code = self.coupon_code
        with atomic_change(self):
            self.coupon_code = None
            self.coupon_discount = 0.0
            self._recalculate()

        self.raise_(CartCouponRemoved(cart_id=str(self.id), coupon_code=code))

    def select_shipping_method(self, shipping_method):
        with atomic_change(self):
            self.shipping_method = ShippingMethod(shipping_method).value
            self._recalculate()

        self.raise_(
            CartShippingMethodSelected(
                cart_id=str(self.id),
                shipping_method=self.shipping_method,
                shipping=self.shipping,
            )
        )

    def set_tax_rate(self, rate):
        if rate is None or rate < 0 or rate > 100:
            raise ValidationError({"tax_rate": ["Tax rate must be between 0 and 100"]})

        with atomic_change(self):
            self.tax_rate = rate
            self._recalculate()

    # -------------------------------------------------------------------
    # Expiry
    # -------------------------------------------------------------------
    def extend_expiry(self, days=DEFAULT_EXPIRY_DAYS):
        if days is None or days <= 0:
            raise ValidationError({"days": ["Expiry extension must be at least one day"]})

        now = datetime.now(UTC)
        self.expires_at = now + timedelta(days=days)
        self.updated_at = now
        self.raise_(CartExpiryExtended(cart_id=str(self.id), expires_at=self.expires_at))

    def reset_if_expired(self, days=DEFAULT_EXPIRY_DAYS) -> bool:
        """Empty an expired cart and start a fresh horizon. Returns True if it was expired."""
        if not self.is_expired():
            return False
        self.clear(reason="expired")
        self.extend_expiry(days)
        return True
