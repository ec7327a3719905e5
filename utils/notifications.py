"""
Admin notification utility functions
"""
from models import db
from models.admin_notification import AdminNotification
from flask import current_app
from utils.mail import send_alert_email


def create_notification(notification_type, title, message, related_id=None):
    """
    Create a new admin notification

    Args:
        notification_type: 'inconsistency' or 'duplicate_payment'
        title: Notification title
        message: Notification message
        related_id: Optional subscription id

    Returns:
        AdminNotification object or None if creation failed
    """
    try:
        notification = AdminNotification(
            type=notification_type,
            title=title,
            message=message,
            related_id=str(related_id) if related_id is not None else None,
            is_read=False
        )
        db.session.add(notification)
        db.session.commit()
        return notification
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create notification: {str(e)}", exc_info=True)
        return None


def notify_reconciliation_inconsistency(event, target_status, reason):
    """Transaction could be settled but its subscription could not; provider will redeliver"""
    title = "Reconciliation Inconsistency"
    message = (
        f"{event.provider} payment {event.transaction_reference or 'N/A'} for subscription "
        f"{event.subscription_id} could not be marked {target_status}: {reason}"
    )
    notification = create_notification('inconsistency', title, message, related_id=event.subscription_id)
    send_alert_email(f"{title} - subscription {event.subscription_id}", message)
    return notification


def notify_duplicate_payment(subscription, event):
    """Subscription was already paid through another provider reference; needs refund review"""
    details = subscription.payment_details or {}
    title = "Duplicate Payment"
    message = (
        f"Subscription {subscription.id} is already active via {details.get('provider', 'unknown')} "
        f"({details.get('reference', 'N/A')}) but {event.provider} also reported success "
        f"({event.transaction_reference or 'N/A'}, {event.amount} {event.currency or ''}). Review for refund."
    )
    notification = create_notification('duplicate_payment', title, message, related_id=subscription.id)
    send_alert_email(f"{title} - subscription {subscription.id}", message)
    return notification
