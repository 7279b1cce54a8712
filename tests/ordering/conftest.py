import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from ordering.catalogue import set_catalogue
from ordering.catalogue.memory_adapter import InMemoryCatalogue
from ordering.catalogue.port import Coupon, Product, ProductVariant
from ordering.payment.gateway import set_gateway
from ordering.payment.gateway.fake_adapter import FakeGateway

WEBHOOK_SECRET = "whsec_test"

ADDRESS = {
    "full_name": "Asha Rao",
    "street": "12 MG Road",
    "city": "Bengaluru",
    "state": "KA",
    "postal_code": "560001",
    "country": "IN",
    "phone": "+91-9800000000",
}


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def catalogue():
    """A small catalogue: a t-shirt with sizes, a mug, a retired product and three coupons."""
    book = InMemoryCatalogue()
    book.add_product(
        Product(
            id="prod-tee",
            name="Organic Tee",
            sku="TEE",
            price=50.0,
            image="https://cdn.example.com/tee.png",
            variants=(
                ProductVariant(id="var-tee-m", sku="TEE-M", price=50.0, name="M"),
                ProductVariant(id="var-tee-xl", sku="TEE-XL", price=55.0, name="XL"),
            ),
        )
    )
    book.add_product(Product(id="prod-mug", name="Stoneware Mug", sku="MUG", price=25.0))
    book.add_product(Product(id="prod-retired", name="Retired Cap", sku="CAP", price=15.0, is_active=False))
    book.add_coupon(Coupon(code="SAVE10", percent_off=10))
    book.add_coupon(Coupon(code="FLAT20", amount_off=20))
    book.add_coupon(Coupon(code="OLD5", percent_off=5, is_active=False))
    set_catalogue(book)
    return book


@pytest.fixture(autouse=True)
def gateway():
    fake = FakeGateway(webhook_secret=WEBHOOK_SECRET)
    set_gateway(fake)
    return fake


@pytest.fixture()
def stock():
    """Initialize inventory for a product (variant) and return the record id."""
    from ordering.inventory.stock import InitializeStock

    def _stock(product_id, variant_id=None, quantity=100, sku=None, low_stock_threshold=10):
        return current_domain.process(
            InitializeStock(
                product_id=product_id,
                variant_id=variant_id,
                sku=sku or f"SKU-{variant_id or product_id}",
                quantity=quantity,
                low_stock_threshold=low_stock_threshold,
            ),
            asynchronous=False,
        )

    return _stock


@pytest.fixture()
def add_to_cart():
    from ordering.cart.items import AddToCart

    def _add(customer_id, product_id, quantity=1, variant_id=None):
        return current_domain.process(
            AddToCart(customer_id=customer_id, product_id=product_id, variant_id=variant_id, quantity=quantity),
            asynchronous=False,
        )

    return _add


@pytest.fixture()
def checkout():
    from ordering.checkout.placement import PlaceOrder

    def _checkout(customer_id, payment_method="credit_card", shipping_method="standard", billing_address=None):
        return current_domain.process(
            PlaceOrder(
                customer_id=customer_id,
                shipping_address=json.dumps(ADDRESS),
                billing_address=json.dumps(billing_address) if billing_address else None,
                shipping_method=shipping_method,
                payment_method=payment_method,
            ),
            asynchronous=False,
        )

    return _checkout


@pytest.fixture()
def placed_order(stock, add_to_cart, checkout):
    """A pending order for two tees (100.00) placed by ``cust-001``."""
    stock("prod-tee", "var-tee-m", quantity=10)
    add_to_cart("cust-001", "prod-tee", quantity=2, variant_id="var-tee-m")
    return checkout("cust-001")


@pytest.fixture()
def make_order():
    """Build an unsaved order for two tees; keyword overrides replace the defaults."""
    from ordering.order.order import Order, generate_order_number

    def _make(subtotal=100.0, tax=0.0, shipping=0.0, discount=0.0, payment_method="credit_card", **overrides):
        lines = overrides.pop(
            "items",
            [
                {
                    "product_id": "prod-tee",
                    "variant_id": "var-tee-m",
                    "name": "Organic Tee (M)",
                    "sku": "TEE-M",
                    "quantity": 2,
                    "unit_price": 50.0,
                    "line_total": 100.0,
                    "image": None,
                }
            ],
        )
        return Order.place(
            order_number=overrides.pop("order_number", generate_order_number()),
            customer_id=overrides.pop("customer_id", "cust-001"),
            items=lines,
            shipping_address=ADDRESS,
            billing_address=ADDRESS,
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            discount=discount,
            currency="INR",
            payment_method=payment_method,
            shipping_method=overrides.pop("shipping_method", "standard"),
            notes=overrides.pop("notes", None),
        )

    return _make


@pytest.fixture()
def address():
    return dict(ADDRESS)
