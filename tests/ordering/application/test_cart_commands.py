"""Application tests for cart commands."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

from ordering.cart.cart import Cart
from ordering.cart.coupons import ApplyCartCoupon, RemoveCartCoupon
from ordering.cart.items import RemoveFromCart, UpdateCartQuantity
from ordering.cart.management import ClearCart, ExtendCartExpiry, MergeGuestCart, OpenCart, SelectShippingMethod
from ordering.errors import InsufficientStockError


def _cart(customer_id="cust-001"):
    return current_domain.repository_for(Cart).for_customer(customer_id)


class TestOpenCart:
    def test_cart_opened_lazily_once(self):
        first = current_domain.process(OpenCart(customer_id="cust-001"), asynchronous=False)
        second = current_domain.process(OpenCart(customer_id="cust-001"), asynchronous=False)
        assert first == second

    def test_cart_uses_configured_defaults(self, monkeypatch):
        from ordering.config import get_settings

        monkeypatch.setenv("TAX_RATE", "18")
        monkeypatch.setenv("DEFAULT_CURRENCY", "usd")
        get_settings.cache_clear()

        current_domain.process(OpenCart(customer_id="cust-001"), asynchronous=False)
        cart = _cart()
        assert cart.tax_rate == 18.0
        assert cart.currency == "USD"

    def test_expired_cart_is_reset_on_access(self, stock, add_to_cart):
        stock("prod-mug")
        add_to_cart("cust-001", "prod-mug", 2)

        cart = _cart()
        cart.expires_at = datetime.now(UTC) - timedelta(minutes=1)
        current_domain.repository_for(Cart).add(cart)

        current_domain.process(OpenCart(customer_id="cust-001"), asynchronous=False)
        cart = _cart()
        assert cart.is_empty
        assert not cart.is_expired()


class TestAddToCart:
    def test_add_uses_catalogue_price(self, stock, add_to_cart):
        stock("prod-tee", "var-tee-xl")
        add_to_cart("cust-001", "prod-tee", 2, variant_id="var-tee-xl")

        cart = _cart()
        assert cart.items[0].unit_price == 55.0
        assert cart.subtotal == 110.0

    def test_sequential_adds_merge_into_one_line(self, stock, add_to_cart):
        stock("prod-tee", "var-tee-m")
        add_to_cart("cust-001", "prod-tee", 1, variant_id="var-tee-m")
        add_to_cart("cust-001", "prod-tee", 1, variant_id="var-tee-m")

        cart = _cart()
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2

    def test_unknown_product_not_found(self, add_to_cart):
        with pytest.raises(ObjectNotFoundError):
            add_to_cart("cust-001", "prod-ghost")

    def test_unknown_variant_not_found(self, stock, add_to_cart):
        stock("prod-tee", "var-tee-m")
        with pytest.raises(ObjectNotFoundError):
            add_to_cart("cust-001", "prod-tee", variant_id="var-tee-xxs")

    def test_inactive_product_rejected(self, stock, add_to_cart):
        stock("prod-retired")
        with pytest.raises(ValidationError):
            add_to_cart("cust-001", "prod-retired")

    def test_quantity_above_stock_rejected(self, stock, add_to_cart):
        stock("prod-mug", quantity=3)
        with pytest.raises(InsufficientStockError):
            add_to_cart("cust-001", "prod-mug", 4)
        assert _cart() is None

    def test_cumulative_quantity_checked_against_stock(self, stock, add_to_cart):
        stock("prod-mug", quantity=3)
        add_to_cart("cust-001", "prod-mug", 2)
        with pytest.raises(InsufficientStockError):
            add_to_cart("cust-001", "prod-mug", 2)
        assert _cart().items[0].quantity == 2

    def test_product_stock_summed_across_variants(self, stock, add_to_cart):
        stock("prod-tee", "var-tee-m", quantity=2)
        stock("prod-tee", "var-tee-xl", quantity=2)
        add_to_cart("cust-001", "prod-tee", 4)
        assert _cart().items[0].quantity == 4

    @pytest.mark.parametrize("quantity", [0, 100])
    def test_quantity_bounds(self, stock, add_to_cart, quantity):
        stock("prod-mug", quantity=500)
        with pytest.raises(ValidationError):
            add_to_cart("cust-001", "prod-mug", quantity)


class TestChangingLines:
    def test_update_quantity(self, stock, add_to_cart):
        stock("prod-mug", quantity=10)
        add_to_cart("cust-001", "prod-mug", 1)
        item_id = str(_cart().items[0].id)

        current_domain.process(
            UpdateCartQuantity(customer_id="cust-001", item_id=item_id, quantity=5), asynchronous=False
        )
        assert _cart().items[0].quantity == 5

    def test_update_beyond_stock_rejected(self, stock, add_to_cart):
        stock("prod-mug", quantity=4)
        add_to_cart("cust-001", "prod-mug", 1)
        item_id = str(_cart().items[0].id)

        with pytest.raises(InsufficientStockError):
            current_domain.process(
                UpdateCartQuantity(customer_id="cust-001", item_id=item_id, quantity=5), asynchronous=False
            )

    def test_remove_line(self, stock, add_to_cart):
        stock("prod-mug")
        add_to_cart("cust-001", "prod-mug", 1)
        item_id = str(_cart().items[0].id)

        current_domain.process(RemoveFromCart(customer_id="cust-001", item_id=item_id), asynchronous=False)
        assert _cart().is_empty

    def test_remove_unknown_line(self, stock, add_to_cart):
        stock("prod-mug")
        add_to_cart("cust-001", "prod-mug", 1)
        with pytest.raises(ObjectNotFoundError):
            current_domain.process(RemoveFromCart(customer_id="cust-001", item_id="nope"), asynchronous=False)

    def test_clear(self, stock, add_to_cart):
        stock("prod-mug")
        add_to_cart("cust-001", "prod-mug", 3)
        current_domain.process(ClearCart(customer_id="cust-001"), asynchronous=False)
        assert _cart().total == 0.0


class TestCouponsAndShipping:
    def test_apply_percent_coupon(self, stock, add_to_cart):
        stock("prod-tee", "var-tee-m")
        add_to_cart("cust-001", "prod-tee", 2, variant_id="var-tee-m")

        current_domain.process(ApplyCartCoupon(customer_id="cust-001", coupon_code="save10"), asynchronous=False)
        cart = _cart()
        assert cart.coupon_code == "SAVE10"
        assert cart.total == 90.0

    def test_inactive_coupon_rejected(self, stock, add_to_cart):
        stock("prod-mug")
        add_to_cart("cust-001", "prod-mug", 1)
        with pytest.raises(ValidationError):
            current_domain.process(ApplyCartCoupon(customer_id="cust-001", coupon_code="OLD5"), asynchronous=False)

    def test_unknown_coupon_rejected(self, stock, add_to_cart):
        stock("prod-mug")
        add_to_cart("cust-001", "prod-mug", 1)
        with pytest.raises(ValidationError):
            current_domain.process(ApplyCartCoupon(customer_id="cust-001", coupon_code="NOPE"), asynchronous=False)

    def test_remove_coupon(self, stock, add_to_cart):
        stock("prod-tee")
        add_to_cart("cust-001", "prod-tee", 1)
        current_domain.process(ApplyCartCoupon(customer_id="cust-001", coupon_code="FLAT20"), asynchronous=False)
        current_domain.process(RemoveCartCoupon(customer_id="cust-001"), asynchronous=False)
        assert _cart().total == 50.0

    def test_select_shipping(self, stock, add_to_cart):
        stock("prod-mug")
        add_to_cart("cust-001", "prod-mug", 2)
        current_domain.process(
            SelectShippingMethod(customer_id="cust-001", shipping_method="standard"), asynchronous=False
        )
        cart = _cart()
        assert cart.shipping == 120.0
        assert cart.total == 170.0


class TestExpiryAndMerge:
    def test_extend_uses_configured_default(self):
        current_domain.process(ExtendCartExpiry(customer_id="cust-001"), asynchronous=False)
        assert _cart().expires_at > datetime.now(UTC) + timedelta(days=29)

    def test_extend_by_days(self):
        current_domain.process(ExtendCartExpiry(customer_id="cust-001", days=60), asynchronous=False)
        assert _cart().expires_at > datetime.now(UTC) + timedelta(days=59)

    def test_merge_guest_cart(self, stock, add_to_cart):
        stock("prod-mug", quantity=10)
        stock("prod-tee", "var-tee-m", quantity=10)
        add_to_cart("cust-001", "prod-mug", 1)

        guest_items = [
            {"product_id": "prod-mug", "quantity": 2},
            {"product_id": "prod-tee", "variant_id": "var-tee-m", "quantity": 1},
        ]
        current_domain.process(
            MergeGuestCart(customer_id="cust-001", items=json.dumps(guest_items)), asynchronous=False
        )

        cart = _cart()
        assert cart.quantity_of("prod-mug") == 3
        assert cart.quantity_of("prod-tee", "var-tee-m") == 1
        assert cart.subtotal == 125.0

    def test_merge_respects_stock(self, stock, add_to_cart):
        stock("prod-mug", quantity=2)
        add_to_cart("cust-001", "prod-mug", 1)
        with pytest.raises(InsufficientStockError):
            current_domain.process(
                MergeGuestCart(customer_id="cust-001", items=json.dumps([{"product_id": "prod-mug", "quantity": 2}])),
                asynchronous=False,
            )
        assert _cart().quantity_of("prod-mug") == 1

    def test_merge_counts_repeated_guest_lines_together(self, stock, add_to_cart):
        stock("prod-mug", quantity=4)
        add_to_cart("cust-001", "prod-mug", 1)
        guest_items = [{"product_id": "prod-mug", "quantity": 2}, {"product_id": "prod-mug", "quantity": 2}]
        with pytest.raises(InsufficientStockError):
            current_domain.process(
                MergeGuestCart(customer_id="cust-001", items=json.dumps(guest_items)), asynchronous=False
            )
        assert _cart().quantity_of("prod-mug") == 1
