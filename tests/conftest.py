"""Pytest fixtures for storefront tests."""

import json
import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from storefront.celery_worker import celery_app
from storefront.data.database import Database
from storefront.data.models import AddressModel, CartItemModel, ProductModel, UserModel
from storefront.main import create_app
from storefront.services.checkout_service import CheckoutService
from storefront.services.inventory_ledger import InventoryLedger
from storefront.services.order_service import OrderService
from storefront.services.payment_gateway import RazorpayClient, hmac_sha256_hex
from storefront.services.payment_service import PaymentService

KEY_ID = "rzp_test_key"
KEY_SECRET = "test_key_secret"
WEBHOOK_SECRET = "test_webhook_secret"

# w przeszlosci, zeby task sweep z prawdziwym zegarem widzial rezerwacje jako wygasle
T0 = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

# bez brokera w testach
celery_app.conf.task_always_eager = True


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class FakeLockService:
    """Locki produktow w pamieci, ten sam kontrakt co LockService."""

    def __init__(self):
        self.locks = {}
        self.acquired = []
        self.refused = []
        self._mutex = threading.Lock()

    def acquire_product_lock(self, product_id: int, token: str, ttl: int) -> bool:
        with self._mutex:
            holder = self.locks.get(product_id)
            if holder is not None and holder != token:
                self.refused.append(product_id)
                return False
            self.locks[product_id] = token
            self.acquired.append(product_id)
            return True

    def release_product_lock(self, product_id: int, token: str) -> bool:
        with self._mutex:
            if self.locks.get(product_id) == token:
                del self.locks[product_id]
                return True
            return False


class FakeRazorpayClient(RazorpayClient):
    """HTTP zastapione odpowiedziami z pamieci, podpisy liczone naprawde."""

    def __init__(self):
        super().__init__(
            key_id=KEY_ID,
            key_secret=KEY_SECRET,
            webhook_secret=WEBHOOK_SECRET,
            base_url="https://gateway.test/v1",
        )
        self.calls = []
        self.fail_with = None
        self._seq = 0

    def _post(self, path, payload):
        self.calls.append((path, payload))
        if self.fail_with is not None:
            raise self.fail_with
        self._seq += 1
        if path == "/orders":
            return {
                "id": f"order_test_{self._seq}",
                "entity": "order",
                "amount": payload["amount"],
                "currency": payload["currency"],
                "receipt": payload["receipt"],
                "status": "created",
            }
        return {
            "id": f"rfnd_test_{self._seq}",
            "entity": "refund",
            "amount": payload["amount"],
            "status": "processed",
        }


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def lock_service():
    return FakeLockService()


@pytest.fixture
def gateway():
    return FakeRazorpayClient()


@pytest.fixture
def database():
    """In-memory SQLite, osobna baza na kazdy test."""
    database = Database("sqlite://")
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def seeded(db):
    """Dwoch uzytkownikow z adresami i trzy produkty."""
    alice = UserModel(id=1, name="Alice", email="alice@example.com", phone="9000000001")
    bob = UserModel(id=2, name="Bob", email="bob@example.com", phone="9000000002")
    db.add_all([alice, bob])
    db.flush()

    alice_home = AddressModel(
        user_id=1, full_name="Alice", line1="1 Main St", city="Pune",
        state="MH", pincode="411001", country="India", phone="9000000001",
    )
    bob_home = AddressModel(
        user_id=2, full_name="Bob", line1="2 Side St", city="Mumbai",
        state="MH", pincode="400001", country="India", phone="9000000002",
    )
    widget = ProductModel(name="Widget", sku="W-1", price=Decimal("100.00"), stock_quantity=10)
    gadget = ProductModel(name="Gadget", sku="G-1", price=Decimal("250.00"), stock_quantity=1)
    gizmo = ProductModel(name="Gizmo", sku="Z-1", price=Decimal("1200.00"), stock_quantity=5)
    db.add_all([alice_home, bob_home, widget, gadget, gizmo])
    db.commit()

    return SimpleNamespace(
        alice=alice.id,
        bob=bob.id,
        alice_address=alice_home.id,
        bob_address=bob_home.id,
        widget=widget.id,
        gadget=gadget.id,
        gizmo=gizmo.id,
    )


@pytest.fixture
def ledger(db, lock_service, clock):
    return InventoryLedger(db, lock_service=lock_service, clock=clock)


@pytest.fixture
def order_service(db, ledger, clock):
    return OrderService(db, ledger=ledger, clock=clock)


@pytest.fixture
def payment_service(db, gateway, clock):
    return PaymentService(db, gateway, clock=clock)


@pytest.fixture
def checkout_service(db, ledger, order_service, payment_service):
    return CheckoutService(db, ledger=ledger, orders=order_service, payments=payment_service)


@pytest.fixture
def place_order(order_service, seeded):
    """Zamowienie PENDING dla Alice, bez rezerwacji."""

    def _place(items, user_id=None, address_id=None):
        user_id = user_id or seeded.alice
        address_id = address_id or seeded.alice_address
        result = order_service.create(user_id, items, address_id, address_id)
        assert result.ok, result
        return result.value

    return _place


@pytest.fixture
def fill_cart(db):
    def _fill(user_id, items):
        db.add_all([CartItemModel(user_id=user_id, product_id=pid, quantity=qty) for pid, qty in items])
        db.commit()

    return _fill


@pytest.fixture
def make_webhook():
    """Zwraca (raw_body, signature) podpisane sekretem webhooka."""

    def _make(gateway_order_id, payment_id="pay_test_1", event="payment.captured", amount=None, secret=WEBHOOK_SECRET):
        body = json.dumps({
            "entity": "event",
            "event": event,
            "payload": {
                "payment": {
                    "entity": {
                        "id": payment_id,
                        "order_id": gateway_order_id,
                        "amount": amount,
                        "currency": "INR",
                        "status": "captured",
                    }
                }
            },
        }).encode("utf-8")
        return body, hmac_sha256_hex(secret, body)

    return _make


@pytest.fixture
def app(database, gateway, lock_service, clock):
    return create_app(database=database, gateway=gateway, lock_service=lock_service, clock=clock)


@pytest.fixture
def client(app):
    return TestClient(app)
