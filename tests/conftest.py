"""Pytest fixtures for plantNet tests."""

from datetime import datetime, timezone

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import notifications
import payments
from database import get_db
from main import app

ADMIN = "admin@plantnet.dev"
SELLER = "seller@plantnet.dev"
CUSTOMER = "customer@plantnet.dev"


@pytest.fixture
def db():
    """In-memory database seeded with one user per role."""
    database = mongomock.MongoClient()["plantnet-test"]
    now = datetime.now(timezone.utc)
    database["users"].insert_many([
        {"email": ADMIN, "name": "Ada Admin", "role": "admin", "created_at": now},
        {"email": SELLER, "name": "Sam Seller", "image": "sam.png", "role": "seller",
         "status": "Verified", "created_at": now},
        {"email": CUSTOMER, "name": "Cleo Customer", "image": "cleo.png", "role": "customer",
         "created_at": now},
    ])
    return database


@pytest.fixture
def plant_id(db):
    """A seller-owned plant with 5 units at 10.0 each."""
    res = db["plants"].insert_one({
        "name": "Monstera",
        "category": "Indoor",
        "description": "Swiss cheese plant",
        "price": 10.0,
        "quantity": 5,
        "image": "monstera.png",
        "seller": {"name": "Sam Seller", "email": SELLER, "image": "sam.png"},
    })
    return str(res.inserted_id)


@pytest.fixture
def sent_emails(monkeypatch):
    """Capture outgoing mail instead of calling Resend."""
    sent = []

    def fake_send(to, subject, text, html=None):
        sent.append({"to": to, "subject": subject, "text": text})
        return True

    monkeypatch.setattr(notifications, "send_email", fake_send)
    return sent


@pytest.fixture
def paid(monkeypatch):
    """Treat every transaction id as a succeeded payment."""
    checked = []
    monkeypatch.setattr(payments, "ensure_succeeded",
                        lambda transaction_id, amount, plant_id: checked.append((transaction_id, amount, plant_id)))
    return checked


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def login(client, email):
    response = client.post("/jwt", json={"email": email})
    assert response.status_code == 200
    return client


@pytest.fixture
def customer_client(client):
    return login(client, CUSTOMER)


@pytest.fixture
def seller_client(client):
    return login(client, SELLER)


@pytest.fixture
def admin_client(client):
    return login(client, ADMIN)


@pytest.fixture
def login_as(client):
    return lambda email: login(client, email)


@pytest.fixture
def joinable_orders(db, monkeypatch):
    """Run the order listing join under mongomock.

    mongomock has no $toObjectId, so the string-to-ObjectId step is replaced
    by an identity stage and orders are seeded with ObjectId plant ids. The
    conversion itself runs against a real server in test_read_models_mongo.py
    (set MONGODB_TEST_URL, e.g. a mongo:7 service container in CI).
    """
    import orders

    monkeypatch.setattr(orders, "COERCE_PLANT_ID", {"$addFields": {"plantId": "$plantId"}})

    def add(plant_id, customer=CUSTOMER, seller=SELLER, quantity=1, price=10.0, created_at=None):
        res = db["orders"].insert_one({
            "plantId": ObjectId(plant_id),
            "customer": {"name": "Someone", "email": customer},
            "seller": seller,
            "quantity": quantity,
            "price": price,
            "address": "1 Leaf Road",
            "status": "Pending",
            "created_at": created_at or datetime.now(timezone.utc),
        })
        return str(res.inserted_id)

    return add
