from types import SimpleNamespace

import mongomock
import pytest
import stripe
from fastapi.testclient import TestClient

from config import Settings
from database import Database
from errors import Unauthenticated
from main import create_app

USER_EMAIL = "a@x.com"
CHEF_EMAIL = "chef@x.com"
ADMIN_EMAIL = "admin@x.com"

TOKENS = {
    "user-token": USER_EMAIL,
    "chef-token": CHEF_EMAIL,
    "admin-token": ADMIN_EMAIL,
}


class FakeVerifier:
    """Maps known tokens to emails; counts calls to check there is no caching."""

    def __init__(self, tokens):
        self.tokens = tokens
        self.calls = 0

    def verify(self, token):
        self.calls += 1
        if not token:
            raise Unauthenticated("Unauthorized Access!")
        if token not in self.tokens:
            raise Unauthenticated("Unauthorized Access!", error="Invalid token")
        return self.tokens[token]


def auth(token="user-token"):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_NAME="mealsDB",
        STRIPE_SECRET_KEY="sk_test_123",
        CLIENT_URL="http://client.test",
    )


@pytest.fixture
def db():
    database = Database(mongomock.MongoClient()["mealsDB"])
    database.ensure_indexes()
    return database


@pytest.fixture
def verifier():
    return FakeVerifier(TOKENS)


@pytest.fixture
def app(settings, db, verifier):
    return create_app(settings=settings, db=db, verifier=verifier)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def fake_stripe(monkeypatch):
    """Replace the checkout session API with an in-memory provider."""
    provider = SimpleNamespace(created=[], sessions={})

    def create(**kwargs):
        session_id = f"cs_test_{len(provider.created) + 1}"
        provider.created.append(kwargs)
        return SimpleNamespace(id=session_id, url=f"https://checkout.stripe.test/{session_id}")

    def retrieve(session_id, **kwargs):
        if session_id not in provider.sessions:
            raise stripe.InvalidRequestError(f"No such checkout.session: '{session_id}'", "id")
        return provider.sessions[session_id]

    def add_session(session_id, order_id, payment_status="paid", amount_total=2500,
                    currency="usd", user_email=USER_EMAIL, payment_intent="pi_test_1"):
        provider.sessions[session_id] = SimpleNamespace(
            id=session_id,
            payment_status=payment_status,
            amount_total=amount_total,
            currency=currency,
            payment_intent=payment_intent,
            metadata={"orderId": order_id, "userEmail": user_email},
        )

    provider.add_session = add_session
    monkeypatch.setattr(stripe.checkout.Session, "create", create)
    monkeypatch.setattr(stripe.checkout.Session, "retrieve", retrieve)
    return provider


@pytest.fixture
def make_order(client):
    def _make(price=12.5, quantity=2, meal_name="Chicken Biryani", chef_id="chef-1234"):
        resp = client.post(
            "/orders",
            json={"chefId": chef_id, "mealName": meal_name, "price": price, "quantity": quantity},
            headers=auth(),
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["id"]

    return _make
