"""
Payment provider webhook routes.

POST    verify signature -> normalize payload -> reconcile
GET     Paystack checkout redirect, bounced into the mobile app (no state change)
OPTIONS CORS preflight
"""
import json
from collections import namedtuple
from urllib.parse import urlencode

from flask import Blueprint, current_app, jsonify, make_response, request
from markupsafe import escape

from models import db
from utils.payment_errors import (
    MalformedPayload,
    PaymentWebhookError,
    SignatureMissing,
    TransactionNotFound,
    VerificationFailed,
)
from utils.payment_events import INTASEND, PAYSTACK, event_from_paystack_verification, normalize
from utils.payment_gateway import verify_paystack_transaction
from utils.payment_states import EventKind, TransactionStatus
from utils.payment_store import PaymentStore
from utils.reconciliation import reconcile
from utils.webhook_log import record_webhook
from utils.webhook_signature import VerificationResult, verify

webhooks_bp = Blueprint('webhooks', __name__)

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'authorization, x-client-info, apikey, content-type, x-paystack-signature',
    'Access-Control-Allow-Methods': 'GET, POST, OPTIONS',
}

# Every method is routed so unsupported ones get a JSON 405 from the view
WEBHOOK_METHODS = ['GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS']

WebhookProvider = namedtuple(
    'WebhookProvider',
    'name signature_header secret_config_key algorithm redirect_flow event_field',
)

PROVIDERS = {
    PAYSTACK: WebhookProvider(
        name=PAYSTACK,
        signature_header='X-Paystack-Signature',
        secret_config_key='PAYSTACK_WEBHOOK_SECRET',
        algorithm='sha512',
        redirect_flow=True,
        event_field='event',
    ),
    INTASEND: WebhookProvider(
        name=INTASEND,
        signature_header=None,
        secret_config_key=None,
        algorithm=None,
        redirect_flow=False,
        event_field='state',
    ),
}


@webhooks_bp.after_request
def add_cors_headers(response):
    for header, value in CORS_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


@webhooks_bp.errorhandler(PaymentWebhookError)
def handle_payment_error(error):
    """Known failures map to their HTTP status with a client-safe body"""
    return jsonify(error.to_dict()), error.status_code


@webhooks_bp.route('/paystack-webhook', methods=WEBHOOK_METHODS)
def paystack_webhook():
    """Paystack charge webhooks and checkout redirect"""
    return _dispatch(PROVIDERS[PAYSTACK])


@webhooks_bp.route('/intasend-webhook', methods=WEBHOOK_METHODS)
def intasend_webhook():
    """IntaSend mobile-money webhooks"""
    return _dispatch(PROVIDERS[INTASEND])


@webhooks_bp.route('/paystack-verify', methods=['POST', 'OPTIONS'])
def paystack_verify():
    """
    Confirm a Paystack payment server-side and reconcile it.
    Used by the app after checkout when the webhook may not have arrived yet.
    """
    if request.method == 'OPTIONS':
        return '', 204

    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        body = {}
    reference = str(body.get('reference') or '').strip()
    if not reference:
        raise MalformedPayload("Reference is required")

    result = verify_paystack_transaction(reference)
    if not result.get('status'):
        current_app.logger.warning(f"Paystack could not verify {reference}: {result.get('message')}")
        return jsonify({
            'success': False,
            'reference': reference,
            'message': 'Payment verification failed',
        }), 200

    event = event_from_paystack_verification(result, body.get('subscription_id'))
    if event.event_kind is not EventKind.SUCCESS:
        # Only a confirmed payment changes state here; failures arrive by webhook
        current_app.logger.info(
            f"Paystack reports {reference} as {event.event_kind.value}; nothing reconciled"
        )
        return jsonify({
            'success': True,
            'is_successful': False,
            'reference': reference,
            'subscription_id': event.subscription_id,
            'message': 'Payment not successful',
        }), 200

    _check_reference(event)
    outcome = _reconcile_safely(event)
    is_successful = outcome.status == TransactionStatus.SUCCESSFUL.value
    return jsonify({
        'success': True,
        'is_successful': is_successful,
        'reference': reference,
        'subscription_id': event.subscription_id,
        'status': outcome.status,
        'message': 'Payment confirmed' if is_successful else 'Payment not successful',
    }), 200


def _check_reference(event):
    """A verified reference may only settle the transaction it was issued for."""
    transaction = PaymentStore().get_transaction(event.subscription_id, event.provider)
    if transaction is None:
        raise TransactionNotFound()
    stored = transaction.provider_reference
    if stored and stored != event.transaction_reference:
        current_app.logger.warning(
            f"Paystack reference {event.transaction_reference} does not match transaction "
            f"{transaction.id} ({stored}) for subscription {event.subscription_id}"
        )
        raise MalformedPayload("Reference does not belong to this subscription")


def _dispatch(provider):
    if request.method == 'OPTIONS':
        return '', 204
    if request.method == 'POST':
        return _process_webhook(provider)
    if request.method == 'GET' and provider.redirect_flow:
        return _payment_redirect()
    return jsonify({'error': 'Unsupported request method'}), 405


def _process_webhook(provider):
    # Signatures cover the exact bytes sent, so read the body before any JSON parsing
    raw_body = request.get_data(cache=True)
    _verify_signature(provider, raw_body)

    try:
        payload = json.loads(raw_body) if raw_body else None
    except ValueError:
        record_webhook(provider.name, raw_body=raw_body)
        raise MalformedPayload("Body is not valid JSON")

    event_type = payload.get(provider.event_field) if isinstance(payload, dict) else None
    record_webhook(provider.name, payload, event_type)
    if not raw_body:
        raise MalformedPayload("Empty request body")

    event = normalize(provider.name, payload)
    current_app.logger.info(
        f"Received {provider.name} webhook ({event.event_kind.value}) "
        f"for subscription {event.subscription_id}, reference {event.transaction_reference}"
    )
    result = _reconcile_safely(event)
    return jsonify({'status': 'success', 'message': f'Payment {result.status}'}), 200


def _verify_signature(provider, raw_body):
    if not provider.signature_header:
        return

    secret = current_app.config.get(provider.secret_config_key)
    result = verify(raw_body, request.headers.get(provider.signature_header), secret, provider.algorithm)

    if result is VerificationResult.SKIPPED:
        current_app.logger.warning(
            f"SECURITY: {provider.name} webhook accepted without signature check "
            f"({provider.secret_config_key} is not set)"
        )
    elif result is VerificationResult.MISSING:
        current_app.logger.warning(f"{provider.name} webhook rejected: missing {provider.signature_header}")
        raise SignatureMissing()
    elif result is VerificationResult.INVALID:
        current_app.logger.warning(f"{provider.name} webhook rejected: signature mismatch")
        raise VerificationFailed()


def _reconcile_safely(event):
    """Run the engine; anything unexpected becomes a 500 without leaking internals."""
    try:
        return reconcile(event)
    except PaymentWebhookError:
        raise
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(
            f"Unexpected error reconciling {event.provider} event for subscription "
            f"{event.subscription_id}: {str(e)}",
            exc_info=True,
        )
        raise PaymentWebhookError() from e


def build_redirect_url(scheme, outcome, reference):
    """Deep link into the mobile app, e.g. myapp://payment/success?reference=abc"""
    return f"{scheme}payment/{outcome}?{urlencode({'reference': reference})}"


def _payment_redirect():
    reference = request.args.get('reference') or request.args.get('trxref')
    if not reference:
        raise MalformedPayload("Missing payment reference")

    outcome = 'cancel' if request.args.get('cancelled') else 'success'
    redirect_url = build_redirect_url(current_app.config.get('MOBILE_APP_SCHEME', 'myapp://'), outcome, reference)
    html = (
        f'<html><head><meta http-equiv="refresh" content="0;url={escape(redirect_url)}"></head>'
        '<body>Redirecting...</body></html>'
    )
    response = make_response(html, 302)
    response.headers['Location'] = redirect_url
    response.headers['Content-Type'] = 'text/html; charset=utf-8'
    return response
