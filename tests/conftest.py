"""Shared fixtures: in-memory SQLite store, recording notifier, order payloads."""
import copy

import pytest
from sqlalchemy.pool import StaticPool

from order_service.config import Settings
from order_service.database import build_engine, build_session_factory, init_db
from order_service.errors import NotificationError
from order_service.service import OrderLifecycleService
from order_service.store import OrderStore

TEST_JWT_SECRET = "test-secret"

VALID_ORDER = {
    "customerName": "Ayesha Khan",
    "customerEmail": "Ayesha.Khan@Example.com",
    "customerPhone": "+92 300 1234567",
    "shippingAddress": {
        "street": "12 Mall Road",
        "city": "Lahore",
        "postalCode": "54000",
    },
    "orderItems": [
        {
            "productId": "665f1c2e9b1e8a0012ab34cd",
            "title": "Linen Summer Shirt",
            "price": 2500.0,
            "quantity": 2,
            "image": "/uploads/photos/linen-shirt.jpg",
            "selectedSize": "M",
        },
        {
            "productId": "665f1c2e9b1e8a0012ab34ce",
            "title": "Denim Jacket",
            "price": 4999.5,
            "quantity": 1,
            "selectedSize": "L",
            "selectedColor": "Indigo",
        },
    ],
    "totalPrice": 9999.5,
}


def order_payload(**overrides):
    payload = copy.deepcopy(VALID_ORDER)
    payload.update(overrides)
    return payload


class RecordingNotifier:
    """Stands in for EventNotifier; records calls and can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []
        self.events = []

    async def send(self, recipient, subject, body, order_id=None):
        if self.fail:
            raise NotificationError(recipient, "broker unreachable")
        self.sent.append({"recipient": recipient, "subject": subject, "body": body, "order_id": order_id})

    async def publish_order_event(self, event_type, routing_key, order_id, **data):
        if self.fail:
            raise NotificationError("order_exchange", "broker unreachable")
        self.events.append({"event_type": event_type, "routing_key": routing_key, "order_id": order_id, **data})


@pytest.fixture
def settings():
    return Settings(database_url="sqlite+aiosqlite://", jwt_secret=TEST_JWT_SECRET)


@pytest.fixture
async def engine():
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def store(engine):
    return OrderStore(build_session_factory(engine))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(store, notifier, settings):
    return OrderLifecycleService(store, notifier, settings)
