# backend/tests/conftest.py

import os
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient

# Load the test environment before any djula import so the settings object
# is built from it (production settings refuse to start without credentials).
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), "..", ".env.test"))

from djula.main import app  # noqa: E402
from djula.models.conversation import OutboundMessage  # noqa: E402
from djula.models.domain import (  # noqa: E402
    CustomerPreferences, Order, OrderItem, OrderStatus, PaymentMethod,
    PaymentTransaction, Product, SupportTicket,
)


# --- Record factories ---

def make_product(product_id: str = "42", **overrides) -> Product:
    data = {
        "id": product_id,
        "name": f"Boubou {product_id}",
        "description": "Boubou brodé en bazin riche",
        "price": 12500,
        "currency": "FCFA",
        "category": "Mode",
        "stock": 4,
    }
    data.update(overrides)
    return Product(**data)


def make_order(order_id: str = "ORD1", **overrides) -> Order:
    data = {
        "id": order_id,
        "customer_id": "+2250701020304",
        "items": [OrderItem(product_id="42", quantity=2, price=12500, name="Boubou 42")],
        "status": OrderStatus.PENDING,
        "total_amount": 25000,
    }
    data.update(overrides)
    return Order(**data)


def make_method(method_id: str, method_type: str, name: Optional[str] = None, **overrides) -> PaymentMethod:
    return PaymentMethod(id=method_id, type=method_type, name=name or method_id.title(), **overrides)


@pytest.fixture
def product_factory():
    return make_product


@pytest.fixture
def order_factory():
    return make_order


@pytest.fixture
def method_factory():
    return make_method


# --- In-memory collaborators ---

class FakeCatalog:
    def __init__(self, products: Optional[List[Product]] = None):
        self.products = {p.id: p for p in (products or [])}
        self.similar_products: Dict[str, List[Product]] = {}
        self.recommendations: List[Product] = []
        self.calls: List[tuple] = []

    async def search(self, term=None, category=None, price_range=None, limit=5):
        self.calls.append(("search", term, category))
        found = [
            p for p in self.products.values()
            if (not term or term.lower() in p.name.lower()) and (not category or p.category == category)
        ]
        return found[:limit]

    async def get(self, product_id):
        self.calls.append(("get", product_id))
        return self.products.get(product_id)

    async def similar(self, product_id, limit=3):
        self.calls.append(("similar", product_id))
        return self.similar_products.get(product_id, [])[:limit]

    async def recommended(self, customer_id, limit=3):
        self.calls.append(("recommended", customer_id))
        return self.recommendations[:limit]


class FakeOrders:
    def __init__(self):
        self.orders: Dict[str, Order] = {}
        self.created: List[tuple] = []

    async def create(self, customer_id, seller_id, items, shipping_address=None, payment_method=None):
        order = make_order(f"ORD{len(self.orders) + 1}", customer_id=customer_id, items=items)
        self.orders[order.id] = order
        self.created.append((customer_id, items))
        return order

    async def get(self, order_id):
        return self.orders.get(order_id)

    async def update_status(self, order_id, status):
        order = self.orders[order_id].model_copy(update={"status": status})
        self.orders[order_id] = order
        return order

    async def list_for_customer(self, customer_id, limit=5):
        return [o for o in self.orders.values() if o.customer_id == customer_id][:limit]


class FakePayments:
    def __init__(self, methods: Optional[List[PaymentMethod]] = None):
        self.methods = methods or []
        self.initiated: List[tuple] = []

    async def list_methods(self, customer_id):
        return list(self.methods)

    async def initiate(self, order_id, method):
        self.initiated.append((order_id, method.id))
        return PaymentTransaction(
            order_id=order_id, method_id=method.id, method_type=method.type, method_name=method.name,
            amount=25000, reference=f"DJ-{order_id}", merchant_number=method.merchant_number,
        )


class FakeSupport:
    async def create_ticket(self, customer_id, issue, priority=None):
        return SupportTicket(id="TCK1", customer_id=customer_id, issue=issue)


class FakeCustomers:
    def __init__(self, language: str = "fr"):
        self.language = language

    async def get_preferences(self, customer_id):
        return CustomerPreferences(preferred_language=self.language)


class FakeStore:
    """Dictionary-backed stand-in for DatabaseService."""

    def __init__(self):
        self.messages: Dict[str, List[Dict[str, Any]]] = {}
        self.intents: Dict[str, List[Dict[str, Any]]] = {}
        self.states: Dict[str, Dict[str, Any]] = {}
        self.logged: List[Dict[str, Any]] = []
        self.reads = 0

    async def get_recent_messages(self, customer_id, limit):
        self.reads += 1
        return list(self.messages.get(customer_id, []))[-limit:]

    async def append_messages(self, customer_id, messages):
        self.messages.setdefault(customer_id, []).extend(messages)

    async def search_messages(self, customer_id, query, limit=10, offset=0):
        found = [m for m in self.messages.get(customer_id, []) if query.lower() in m["content"].lower()]
        return found[offset:offset + limit]

    async def get_message_stats(self, customer_id):
        messages = self.messages.get(customer_id, [])
        if not messages:
            return 0, None, None
        return len(messages), messages[0]["timestamp"], messages[-1]["timestamp"]

    async def append_intent(self, customer_id, intent):
        self.intents.setdefault(customer_id, []).append(intent)

    async def get_last_intent(self, customer_id):
        intents = self.intents.get(customer_id)
        return intents[-1] if intents else None

    async def get_intent_counts(self, customer_id, top=3):
        counts: Dict[str, int] = {}
        for intent in self.intents.get(customer_id, []):
            counts[intent["type"]] = counts.get(intent["type"], 0) + 1
        return sorted(counts.items(), key=lambda kv: -kv[1])[:top]

    async def get_session_state(self, customer_id):
        return self.states.get(customer_id)

    async def save_session_state(self, customer_id, state):
        self.states[customer_id] = state

    async def delete_conversation(self, customer_id):
        self.messages.pop(customer_id, None)
        self.intents.pop(customer_id, None)

    async def log_message(self, message_data):
        self.logged.append(message_data)


class FakeChannel:
    """Records every outbound message instead of calling WhatsApp."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.fail = False

    async def send(self, customer_id: str, message: OutboundMessage) -> bool:
        if self.fail:
            return False
        self.sent.append((customer_id, message))
        return True


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_channel():
    return FakeChannel()


@pytest.fixture
def fake_catalog():
    return FakeCatalog()


@pytest.fixture
def fake_orders():
    return FakeOrders()


@pytest.fixture
def fake_payments():
    return FakePayments()


@pytest.fixture
def fake_support():
    return FakeSupport()


@pytest.fixture
def fake_customers():
    return FakeCustomers()


# --- API client ---

@pytest.fixture(scope="function")
def test_client(mocker):
    """
    Provides a TestClient for API integration tests without touching MongoDB
    or Redis during startup.
    """
    mocker.patch("djula.utils.lifecycle.db_service.create_indexes", new_callable=AsyncMock)
    mocker.patch("djula.utils.lifecycle.cache_service.close", new_callable=AsyncMock)

    with TestClient(app) as client:
        yield client
