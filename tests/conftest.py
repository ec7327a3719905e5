"""
Shared fixtures for the payment webhooks test suite.

Each app gets its own in-memory SQLite database, so tests never share rows.
"""
import hashlib
import hmac
import json
import os

# Must be set before config.py is imported (it resolves the URI at import time)
os.environ["DATABASE_URL"] = "sqlite://"

import pytest

from app import create_app
from config import Config
from models import db
from models.subscription import Subscription
from models.transaction import PaymentTransaction

PAYSTACK_SECRET = "whsec_test_secret"


class WebhookTestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    PAYSTACK_WEBHOOK_SECRET = PAYSTACK_SECRET
    PAYSTACK_SECRET_KEY = "sk_test_key"
    PAYSTACK_API_URL = "https://paystack.test"
    MOBILE_APP_SCHEME = "myapp://"
    MAIL_SERVER = None
    ALERT_EMAILS = []


@pytest.fixture
def make_app():
    """Build an app with config overrides; yields inside its app context."""
    contexts = []

    def _make(**overrides):
        config = type("OverriddenConfig", (WebhookTestConfig,), overrides)
        app = create_app(config)
        ctx = app.app_context()
        ctx.push()
        contexts.append(ctx)
        return app

    yield _make

    for ctx in reversed(contexts):
        db.session.remove()
        db.drop_all()
        ctx.pop()


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def seed_payment(app):
    """Create a subscription with one transaction for a provider."""

    def _seed(subscription_id, provider="paystack", status="pending",
              subscription_status="pending", payment_details=None, with_subscription=True):
        subscription_id = str(subscription_id)
        if with_subscription and db.session.get(Subscription, subscription_id) is None:
            db.session.add(Subscription(
                id=subscription_id,
                user_id=f"user-{subscription_id}",
                status=subscription_status,
                payment_details=payment_details,
            ))
        transaction = PaymentTransaction(
            subscription_id=subscription_id,
            provider=provider,
            status=status,
            provider_response={"initialize": {"status": True}},
        )
        db.session.add(transaction)
        db.session.commit()
        return transaction

    return _seed


def sign(body, secret=PAYSTACK_SECRET):
    return hmac.new(secret.encode(), body, hashlib.sha512).hexdigest()


@pytest.fixture
def paystack_signature():
    return sign


@pytest.fixture
def post_paystack(client):
    """POST a Paystack webhook, signed unless a signature is given explicitly."""

    def _post(payload, signature=None, secret=PAYSTACK_SECRET):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        headers = {}
        if signature is None:
            headers["X-Paystack-Signature"] = sign(body, secret)
        elif signature:
            headers["X-Paystack-Signature"] = signature
        return client.post(
            "/paystack-webhook", data=body, headers=headers, content_type="application/json"
        )

    return _post


@pytest.fixture
def post_intasend(client):
    def _post(payload):
        return client.post("/intasend-webhook", json=payload)

    return _post
