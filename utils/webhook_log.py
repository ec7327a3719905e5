"""
Inbound webhook audit log
"""
from models import db
from models.webhook import PaymentWebhook
from flask import current_app

EVENT_TYPE_MAX_LENGTH = 100


def record_webhook(provider, payload=None, event_type=None, raw_body=None):
    """
    Store an authenticated webhook delivery before it is processed.
    Failures are logged and swallowed so they never block reconciliation.

    Args:
        provider: Provider id the route belongs to
        payload: Parsed JSON body, or None when it could not be parsed
        event_type: Provider event name or state, if the payload carries one
        raw_body: Undecodable body bytes, kept when payload is None

    Returns:
        PaymentWebhook object or None if storing failed
    """
    try:
        webhook = PaymentWebhook(
            provider=provider,
            event_type=str(event_type)[:EVENT_TYPE_MAX_LENGTH] if event_type is not None else None,
            payload=payload,
            raw_body=raw_body.decode('utf-8', errors='replace') if raw_body else None,
        )
        db.session.add(webhook)
        db.session.commit()
        return webhook
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to store {provider} webhook: {str(e)}", exc_info=True)
        return None
