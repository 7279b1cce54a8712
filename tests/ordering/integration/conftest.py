import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from ordering.api import cart_router, inventory_router, order_router, payment_router
from ordering.api.errors import register_exception_handlers

CUSTOMER = {"X-Principal-Id": "cust-001", "X-Principal-Role": "customer"}
OTHER_CUSTOMER = {"X-Principal-Id": "cust-002", "X-Principal-Role": "customer"}
STAFF = {"X-Principal-Id": "staff-001", "X-Principal-Role": "staff"}


@pytest.fixture()
def app():
    app = FastAPI()
    register_exception_handlers(app)
    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(payment_router)
    app.include_router(inventory_router)
    return app


@pytest.fixture()
def client(app):
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture()
def customer():
    return dict(CUSTOMER)


@pytest.fixture()
def other_customer():
    return dict(OTHER_CUSTOMER)


@pytest.fixture()
def staff():
    return dict(STAFF)


@pytest.fixture()
def api_order(client, customer, stock, address):
    """Place an order for two medium tees through the API and return its JSON."""
    stock("prod-tee", "var-tee-m", quantity=10)
    response = client.post(
        "/cart/add",
        json={"product_id": "prod-tee", "variant_id": "var-tee-m", "quantity": 2},
        headers=customer,
    )
    assert response.status_code == 200
    response = client.post(
        "/orders",
        json={"shipping_address": address, "payment_method": "credit_card"},
        headers=customer,
    )
    assert response.status_code == 201
    return response.json()["data"]["order"]
