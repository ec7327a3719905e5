"""
Tests for the webhook HTTP routes.

Tests cover:
- End-to-end Paystack and IntaSend deliveries
- Signature rejection before any store access
- Audit log of authenticated deliveries
- Redirect bounce, preflight and unsupported methods
- Error bodies
"""
import json
import logging
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from models import db
from models.subscription import Subscription
from models.transaction import PaymentTransaction
from models.webhook import PaymentWebhook
from utils.payment_errors import ReconciliationInconsistency
from utils.payment_store import PaymentStore

SCENARIO_ONE = {
    "event": "charge.success",
    "data": {
        "reference": "sub-42-171",
        "amount": 500000,
        "currency": "KES",
        "metadata": {"subscription_id": "42"},
    },
}

SCENARIO_TWO = {"invoice": "INV1", "state": "FAILED", "metadata": {"subscription_id": "7"}}


def load(subscription_id, provider="paystack"):
    db.session.expire_all()
    transaction = PaymentTransaction.query.filter_by(
        subscription_id=subscription_id, provider=provider
    ).first()
    return transaction, db.session.get(Subscription, subscription_id)


# =============================================================================
# Paystack POST
# =============================================================================


class TestPaystackWebhook:
    def test_charge_success_activates_subscription(self, seed_payment, post_paystack):
        seed_payment("42")

        response = post_paystack(SCENARIO_ONE)

        transaction, subscription = load("42")
        assert response.status_code == 200
        assert response.get_json() == {"status": "success", "message": "Payment successful"}
        assert transaction.status == "successful"
        assert subscription.status == "active"
        assert subscription.end_date - subscription.start_date == timedelta(days=30)
        assert subscription.payment_details["amount"] == 5000
        assert subscription.payment_details["currency"] == "KES"

    def test_redelivery_is_acknowledged_without_changes(self, seed_payment, post_paystack):
        seed_payment("42")
        post_paystack(SCENARIO_ONE)
        end_date = load("42")[1].end_date

        responses = [post_paystack(SCENARIO_ONE) for _ in range(3)]

        assert [r.status_code for r in responses] == [200, 200, 200]
        assert load("42")[1].end_date == end_date

    def test_conflicting_failure_after_success_is_ignored(self, seed_payment, post_paystack):
        seed_payment("42")
        post_paystack(SCENARIO_ONE)

        response = post_paystack({**SCENARIO_ONE, "event": "charge.failed"})

        assert response.status_code == 200
        assert response.get_json()["message"] == "Payment successful"
        assert load("42")[0].status == "successful"

    def test_unrecognized_event_is_acknowledged(self, seed_payment, post_paystack):
        seed_payment("42")

        response = post_paystack({**SCENARIO_ONE, "event": "charge.dispute.create"})

        assert response.status_code == 200
        assert response.get_json()["message"] == "Payment pending"
        assert load("42")[0].status == "pending"

    def test_missing_subscription_id_returns_400(self, seed_payment, post_paystack):
        seed_payment("42")
        payload = json.loads(json.dumps(SCENARIO_ONE))
        del payload["data"]["metadata"]["subscription_id"]

        response = post_paystack(payload)

        transaction, subscription = load("42")
        assert response.status_code == 400
        assert response.get_json()["error"] == "Invalid webhook payload"
        assert response.get_json()["message"] == "No subscription ID in metadata"
        assert transaction.status == "pending"
        assert subscription.status == "pending"

    def test_non_string_event_returns_400(self, seed_payment, post_paystack):
        seed_payment("42")

        response = post_paystack({**SCENARIO_ONE, "event": ["charge.success"]})

        assert response.status_code == 400
        assert response.get_json()["message"] == "Event name must be a string"
        assert load("42")[0].status == "pending"

    def test_invalid_json_returns_400(self, post_paystack):
        response = post_paystack(b"{not json")
        assert response.status_code == 400

    def test_empty_body_returns_400(self, post_paystack):
        response = post_paystack(b"")
        assert response.status_code == 400

    def test_unknown_transaction_returns_404(self, post_paystack):
        response = post_paystack(SCENARIO_ONE)

        assert response.status_code == 404
        assert response.get_json() == {"error": "Transaction not found"}

    def test_inconsistency_returns_500(self, seed_payment, post_paystack):
        seed_payment("42")

        with patch("routes.webhooks.reconcile", side_effect=ReconciliationInconsistency("partial")):
            response = post_paystack(SCENARIO_ONE)

        assert response.status_code == 500
        assert response.get_json()["error"] == "Reconciliation incomplete"

    def test_unexpected_error_hides_details(self, seed_payment, post_paystack):
        seed_payment("42")

        with patch("routes.webhooks.reconcile", side_effect=RuntimeError("secret connection string")):
            response = post_paystack(SCENARIO_ONE)

        assert response.status_code == 500
        assert response.get_json() == {"error": "Server error"}
        assert b"secret connection string" not in response.data


# =============================================================================
# Signatures
# =============================================================================


class TestPaystackSignature:
    def test_missing_signature_rejected_before_store_read(self, seed_payment, post_paystack):
        seed_payment("42")

        with patch.object(PaymentStore, "get_transaction") as get_transaction:
            response = post_paystack(SCENARIO_ONE, signature="")

        assert response.status_code == 401
        assert response.get_json() == {"error": "Missing signature"}
        get_transaction.assert_not_called()
        assert load("42")[0].status == "pending"

    def test_invalid_signature_rejected_before_store_read(self, seed_payment, post_paystack):
        seed_payment("42")

        with patch.object(PaymentStore, "get_transaction") as get_transaction:
            response = post_paystack(SCENARIO_ONE, signature="00" * 64)

        assert response.status_code == 401
        assert response.get_json() == {"error": "Invalid signature"}
        get_transaction.assert_not_called()

    def test_signature_for_other_secret_rejected(self, post_paystack):
        response = post_paystack(SCENARIO_ONE, secret="someone-else")
        assert response.status_code == 401

    def test_signature_checked_against_raw_bytes(self, seed_payment, client, paystack_signature):
        """Whitespace in the body is part of what was signed."""
        seed_payment("42")
        body = json.dumps(SCENARIO_ONE, indent=4).encode()

        response = client.post(
            "/paystack-webhook",
            data=body,
            headers={"X-Paystack-Signature": paystack_signature(body)},
            content_type="application/json",
        )

        assert response.status_code == 200

    def test_no_secret_configured_accepts_and_warns(self, make_app, caplog):
        app = make_app(PAYSTACK_WEBHOOK_SECRET="")
        db.session.add(Subscription(id="42", status="pending"))
        db.session.add(PaymentTransaction(subscription_id="42", provider="paystack", status="pending"))
        db.session.commit()

        with caplog.at_level(logging.WARNING):
            response = app.test_client().post("/paystack-webhook", json=SCENARIO_ONE)

        assert response.status_code == 200
        assert "without signature check" in caplog.text


# =============================================================================
# IntaSend POST
# =============================================================================


class TestIntasendWebhook:
    def test_failed_state_fails_subscription(self, seed_payment, post_intasend):
        seed_payment("7", provider="intasend")

        response = post_intasend(SCENARIO_TWO)

        transaction, subscription = load("7", "intasend")
        assert response.status_code == 200
        assert response.get_json() == {"status": "success", "message": "Payment failed"}
        assert transaction.status == "failed"
        assert subscription.status == "failed"

    def test_complete_state_activates_with_unscaled_amount(self, seed_payment, post_intasend):
        seed_payment("7", provider="intasend")

        response = post_intasend({
            "invoice": "INV2", "state": "COMPLETE", "value": 2500, "currency": "KES",
            "metadata": {"subscription_id": "7"},
        })

        _, subscription = load("7", "intasend")
        assert response.status_code == 200
        assert subscription.status == "active"
        assert subscription.payment_details["amount"] == 2500
        assert subscription.payment_details["reference"] == "INV2"

    def test_requires_invoice_and_state(self, seed_payment, post_intasend):
        seed_payment("7", provider="intasend")

        response = post_intasend({"state": "COMPLETE", "metadata": {"subscription_id": "7"}})

        assert response.status_code == 400
        assert load("7", "intasend")[0].status == "pending"

    def test_no_signature_needed(self, seed_payment, post_intasend):
        seed_payment("7", provider="intasend")
        assert post_intasend(SCENARIO_TWO).status_code == 200

    def test_get_is_not_supported(self, client):
        response = client.get("/intasend-webhook?reference=abc")

        assert response.status_code == 405
        assert response.get_json() == {"error": "Unsupported request method"}


# =============================================================================
# Audit log
# =============================================================================


class TestWebhookAuditLog:
    def test_processed_delivery_is_recorded(self, seed_payment, post_paystack):
        seed_payment("42")

        post_paystack(SCENARIO_ONE)

        webhook = PaymentWebhook.query.one()
        assert webhook.provider == "paystack"
        assert webhook.event_type == "charge.success"
        assert webhook.payload == SCENARIO_ONE
        assert webhook.raw_body is None
        assert webhook.received_at is not None

    def test_unmatched_delivery_is_recorded(self, post_paystack):
        response = post_paystack(SCENARIO_ONE)

        assert response.status_code == 404
        assert PaymentWebhook.query.count() == 1

    def test_redeliveries_are_each_recorded(self, seed_payment, post_paystack):
        seed_payment("42")

        for _ in range(3):
            post_paystack(SCENARIO_ONE)

        assert PaymentWebhook.query.count() == 3

    def test_unparseable_body_is_kept_raw(self, post_paystack):
        response = post_paystack(b"{not json")

        webhook = PaymentWebhook.query.one()
        assert response.status_code == 400
        assert webhook.payload is None
        assert webhook.event_type is None
        assert webhook.raw_body == "{not json"

    def test_intasend_state_is_the_event_type(self, seed_payment, post_intasend):
        seed_payment("7", provider="intasend")

        post_intasend(SCENARIO_TWO)

        webhook = PaymentWebhook.query.one()
        assert webhook.provider == "intasend"
        assert webhook.event_type == "FAILED"

    @pytest.mark.parametrize("signature", ["", "00" * 64])
    def test_rejected_signature_is_not_recorded(self, post_paystack, signature):
        response = post_paystack(SCENARIO_ONE, signature=signature)

        assert response.status_code == 401
        assert PaymentWebhook.query.count() == 0

    def test_storage_failure_does_not_block_processing(self, seed_payment, post_paystack, caplog):
        seed_payment("42")
        error = OperationalError("INSERT INTO payment_webhooks", {}, Exception("disk full"))

        with patch("utils.webhook_log.PaymentWebhook", side_effect=error):
            response = post_paystack(SCENARIO_ONE)

        assert response.status_code == 200
        assert load("42")[0].status == "successful"
        assert PaymentWebhook.query.count() == 0
        assert "Failed to store paystack webhook" in caplog.text


# =============================================================================
# Redirect, preflight, methods
# =============================================================================


class TestPaystackRedirect:
    def test_success_redirect(self, client):
        response = client.get("/paystack-webhook?reference=abc")

        assert response.status_code == 302
        assert response.headers["Location"] == "myapp://payment/success?reference=abc"
        assert response.mimetype == "text/html"
        assert b'http-equiv="refresh"' in response.data
        assert b"myapp://payment/success?reference=abc" in response.data

    def test_trxref_is_accepted(self, client):
        response = client.get("/paystack-webhook?trxref=xyz")
        assert response.headers["Location"] == "myapp://payment/success?reference=xyz"

    def test_cancelled_redirect(self, client):
        response = client.get("/paystack-webhook?reference=abc&cancelled=1")

        assert response.status_code == 302
        assert response.headers["Location"] == "myapp://payment/cancel?reference=abc"

    def test_reference_is_url_encoded(self, client):
        response = client.get("/paystack-webhook?reference=a%26b%20c")
        assert response.headers["Location"] == "myapp://payment/success?reference=a%26b+c"

    def test_missing_reference_returns_400(self, client):
        assert client.get("/paystack-webhook").status_code == 400

    def test_redirect_does_not_touch_store(self, client):
        with patch.object(PaymentStore, "get_transaction") as get_transaction:
            client.get("/paystack-webhook?reference=abc")
        get_transaction.assert_not_called()

    def test_custom_scheme(self, make_app):
        app = make_app(MOBILE_APP_SCHEME="wasteapp://")
        response = app.test_client().get("/paystack-webhook?reference=abc")
        assert response.headers["Location"] == "wasteapp://payment/success?reference=abc"


@pytest.mark.parametrize("path", ["/paystack-webhook", "/intasend-webhook"])
class TestMethods:
    def test_options_preflight(self, client, path):
        response = client.options(path)

        assert response.status_code == 204
        assert response.data == b""
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert "content-type" in response.headers["Access-Control-Allow-Headers"]

    @pytest.mark.parametrize("method", ["put", "patch", "delete"])
    def test_other_methods_return_405(self, client, path, method):
        response = getattr(client, method)(path)

        assert response.status_code == 405
        assert response.get_json() == {"error": "Unsupported request method"}

    def test_errors_carry_cors_headers(self, client, path):
        response = client.put(path)
        assert response.headers["Access-Control-Allow-Origin"] == "*"
