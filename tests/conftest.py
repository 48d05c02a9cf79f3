# WMS Test Suite - Shared Configuration and Fixtures
#
# This module provides:
# - App factory fixtures (in-memory store, snapshot in a per-test tmp dir)
# - Seeded catalog/contact fixtures
# - Flask test client
# - httpx mock transport for the exchange-rate lookup

import httpx
import pytest

from wms import create_app
from wms.extensions import db
from wms.services import catalog_service, contacts_service


RATES_URL = "https://rates.test/v4/latest/AED"


@pytest.fixture
def app_config(tmp_path):
    """Config overrides shared by every app built in one test."""
    return {
        "TESTING": True,
        "SNAPSHOT_DIR": str(tmp_path / "snapshots"),
        "SNAPSHOT_KEY": "wms_test.db",
        "SEED_DEMO_DATA": False,
        # Fast hashing for tests
        "BCRYPT_ROUNDS": 4,
        "EXCHANGE_RATE_URL": RATES_URL,
        "EXCHANGE_RATE_TIMEOUT": 1.0,
    }


@pytest.fixture
def app_factory(app_config):
    """Build another app against the same snapshot directory (simulated restart)."""
    def _make(**overrides):
        return create_app({**app_config, **overrides})
    return _make


@pytest.fixture
def app(app_factory):
    app = app_factory()
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def db_session(app):
    yield db.session
    db.session.rollback()


@pytest.fixture
def product(app):
    """Product P: stock 100, price 5, no category."""
    return catalog_service.create_product({"name": "Product P", "price": 5.0, "cost": 2.0, "stock": 100})


@pytest.fixture
def second_product(app):
    return catalog_service.create_product(
        {"name": "Cable", "price": 12.0, "cost": 3.0, "stock": 40, "category": "Accessories", "unit": "box"}
    )


@pytest.fixture
def customer(app):
    return contacts_service.create_contact({"name": "John Doe", "type": "customer"})


@pytest.fixture
def distributor(app):
    return contacts_service.create_contact({"name": "Global Tech Supply", "type": "distributor"})


@pytest.fixture
def sales_rep(app):
    return contacts_service.create_contact({"name": "Alice Sales", "type": "sales_rep"})


def rates_transport(rates: dict | None = None, status_code: int = 200):
    """MockTransport answering the rate endpoint with the given table."""
    def handler(request: httpx.Request) -> httpx.Response:
        if status_code != 200:
            return httpx.Response(status_code, json={"error": "unavailable"})
        return httpx.Response(200, json={"base": "AED", "rates": rates or {}})
    return httpx.MockTransport(handler)


@pytest.fixture
def rates_client():
    """httpx client whose rate table answers USD and CNY."""
    with httpx.Client(transport=rates_transport({"AED": 1, "USD": 0.2723, "CNY": 1.96})) as client:
        yield client
