import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PAYMENT_PROVIDER", "fake")
os.environ.setdefault("ADMIN_API_TOKEN", "admin-secret")

from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.api import deps
from storefront.data.database import Base, get_db
from storefront.data.models import (
    AddressModel,
    CustomerModel,
    ProductModel,
    VariantModel,
    VariantPriceModel,
)
from storefront.main import create_app
from storefront.services.cart_service import CartService
from storefront.services.order_service import OrderService
from storefront.services.payment_providers import FakeProvider
from storefront.services.payment_service import PaymentService


class FakeLock:
    """In-memory stand-in for the Redis lock."""

    def __init__(self):
        self.held = {}

    def acquire(self, key, owner, ttl):
        if key in self.held:
            return False
        self.held[key] = owner
        return True

    def release(self, key, owner):
        if self.held.get(key) == owner:
            del self.held[key]
            return True
        return False


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def send_order_confirmation(self, customer_id, order_id, order_no):
        self.sent.append((customer_id, order_id, order_no))


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


def _address(customer, first_name="Mona"):
    return AddressModel(
        customer=customer,
        first_name=first_name,
        last_name="Hassan",
        phone="+201000000000",
        line1="12 Nile St",
        city="Cairo",
        country="EG",
        postal_code="11511",
    )


def _variant(product, sku, price, stock=None, currency="EGP"):
    variant = VariantModel(product=product, sku=sku, stock_on_hand=stock)
    variant.prices.append(VariantPriceModel(currency=currency, amount=Decimal(price)))
    return variant


@pytest.fixture()
def seed(db):
    """Two customers with addresses and a small catalog priced in EGP."""
    customer = CustomerModel(name="Mona", email="mona@example.com")
    other = CustomerModel(name="Karim", email="karim@example.com")
    billing = _address(customer)
    shipping = _address(customer, first_name="Omar")
    other_address = _address(other, first_name="Karim")

    shirt = ProductModel(name="Shirt")
    mug = ProductModel(name="Mug")
    retired = ProductModel(name="Retired", is_active=False)

    variant_a = _variant(shirt, "SHIRT-M", "50.00", stock=10)
    variant_b = _variant(mug, "MUG-1", "30.00")
    variant_usd = _variant(mug, "MUG-USD", "9.99", currency="USD")
    variant_retired = _variant(retired, "OLD-1", "5.00")

    db.add_all(
        [customer, other, billing, shipping, other_address, shirt, mug, retired,
         variant_a, variant_b, variant_usd, variant_retired]
    )
    db.commit()

    return SimpleNamespace(
        customer=customer,
        other=other,
        billing=billing,
        shipping=shipping,
        other_address=other_address,
        variant_a=variant_a,
        variant_b=variant_b,
        variant_usd=variant_usd,
        variant_retired=variant_retired,
    )


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture()
def lock():
    return FakeLock()


@pytest.fixture()
def notifier():
    return FakeNotifier()


@pytest.fixture()
def cart_service(db):
    return CartService(db)


@pytest.fixture()
def order_service(db, notifier):
    return OrderService(db, notification_service=notifier)


@pytest.fixture()
def payment_service(db, provider, lock, order_service):
    return PaymentService(db, provider, lock, order_service=order_service)


@pytest.fixture()
def filled_cart(seed, cart_service):
    """Cart with 2 x SHIRT-M (50.00) and 1 x MUG-1 (30.00)."""
    cart = cart_service.ensure_cart(seed.customer.id)
    cart_service.add_item(seed.customer.id, cart.id, seed.variant_a.id, 2)
    cart_service.add_item(seed.customer.id, cart.id, seed.variant_b.id, 1)
    return cart


@pytest.fixture()
def placed_order(seed, filled_cart, order_service):
    return order_service.checkout(
        customer_id=seed.customer.id,
        cart_id=filled_cart.id,
        billing_address_id=seed.billing.id,
        shipping_address_id=seed.shipping.id,
    )


@pytest.fixture()
def client(session_factory, provider, lock, notifier):
    app = create_app(create_tables=False)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[deps.get_payment_provider] = lambda: provider
    app.dependency_overrides[deps.get_lock_service] = lambda: lock
    app.dependency_overrides[deps.get_notification_service] = lambda: notifier
    return TestClient(app)


@pytest.fixture()
def make_webhook():
    """Builds a normalised gateway payload for the fake provider."""

    def _make(order, transaction_id="txn-1", status="PAID", amount=None):
        return {
            "order_id": order.id,
            "transaction_id": transaction_id,
            "amount": str(amount if amount is not None else order.total),
            "currency": order.currency,
            "status": status,
            "method": "CARD",
        }

    return _make
