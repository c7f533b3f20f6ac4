import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")

import hashlib
import hmac
import json
import time

import pytest
from billsync import create_app
from billsync.extensions import db
from billsync.models import User
from billsync.services.stripe_provider import StripeProvider

WEBHOOK_SECRET = "whsec_test_x"
PRO_PRICE = "price_pro_monthly"
PREMIUM_PRICE = "price_premium_monthly"

# 2026-01-01T00:00:00Z .. 2026-02-01T00:00:00Z
PERIOD_START = 1767225600
PERIOD_END = 1769904000


class FakeProvider(StripeProvider):
    """Records calls instead of talking to Stripe; signature checks stay real."""

    def __init__(self, webhook_secret=WEBHOOK_SECRET):
        super().__init__("sk_test_fake", webhook_secret=webhook_secret, client=object())
        self.customers = []
        self.sessions = []
        self.cancelled = []

    def create_customer(self, *, email, user_id):
        customer_id = f"cus_{len(self.customers) + 1}"
        self.customers.append({"id": customer_id, "email": email, "user_id": user_id})
        return customer_id

    def create_checkout_session(self, **kwargs):
        self.sessions.append(kwargs)
        n = len(self.sessions)
        return {"session_id": f"cs_test_{n}", "url": f"https://checkout.stripe.test/cs_test_{n}"}

    def cancel_at_period_end(self, subscription_id):
        self.cancelled.append(subscription_id)


def sign(body: bytes, secret: str = WEBHOOK_SECRET, timestamp=None) -> str:
    ts = int(timestamp or time.time())
    mac = hmac.new(secret.encode("utf-8"), f"{ts}.".encode("utf-8") + body, hashlib.sha256).hexdigest()
    return f"t={ts},v1={mac}"


def subscription_event(event_id, kind, *, sub_id="sub_123", customer="cus_1", price=PRO_PRICE,
                       status="active", metadata=None, cancel_at_period_end=False):
    return {
        "id": event_id,
        "type": f"customer.subscription.{kind}",
        "data": {"object": {
            "id": sub_id,
            "object": "subscription",
            "customer": customer,
            "status": status,
            "metadata": metadata or {},
            "current_period_start": PERIOD_START,
            "current_period_end": PERIOD_END,
            "cancel_at_period_end": cancel_at_period_end,
            "items": {"data": [{"quantity": 1, "price": {"id": price, "product": "prod_x"}}]},
        }},
    }


def invoice_event(event_id, kind, *, invoice_id="in_1", sub_id="sub_123", amount_paid=0, amount_due=1500):
    return {
        "id": event_id,
        "type": f"invoice.{kind}",
        "data": {"object": {
            "id": invoice_id,
            "object": "invoice",
            "subscription": sub_id,
            "amount_paid": amount_paid,
            "amount_due": amount_due,
            "currency": "usd",
            "status": "paid" if kind == "payment_succeeded" else "open",
            "hosted_invoice_url": f"https://invoice.stripe.test/{invoice_id}",
            "invoice_pdf": f"https://invoice.stripe.test/{invoice_id}.pdf",
        }},
    }


def encode(event) -> bytes:
    return json.dumps(event).encode("utf-8")


@pytest.fixture(scope="session")
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
        "APP_BASE_URL": "http://example.test",
        "STRIPE_SECRET_KEY": "sk_test_x",
        "STRIPE_WEBHOOK_SECRET": WEBHOOK_SECRET,
        "STRIPE_PRICE_ID_PRO": PRO_PRICE,
        "STRIPE_PRICE_ID_PREMIUM": PREMIUM_PRICE,
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()

@pytest.fixture()
def client(app):
    return app.test_client()

@pytest.fixture()
def ctx(app):
    with app.app_context():
        yield

@pytest.fixture()
def provider():
    return FakeProvider()

@pytest.fixture()
def make_user(app):
    def _make(email="buyer@example.com"):
        u = User(email=email)
        u.set_password("x")
        db.session.add(u)
        db.session.commit()
        return u.id
    return _make

@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
