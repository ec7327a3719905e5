"""
Email utility functions
"""
from flask_mail import Mail, Message
from flask import current_app

mail = Mail()


def get_alert_emails():
    """Operator addresses that receive payment alerts"""
    return list(current_app.config.get('ALERT_EMAILS') or [])


def send_alert_email(subject, body):
    """
    Send an alert email to configured operators.
    Silently skips if mail is not configured.
    """
    if not current_app.config.get('MAIL_SERVER'):
        return False

    recipients = get_alert_emails()
    if not recipients:
        return False

    try:
        msg = Message(
            subject=subject,
            recipients=recipients,
            body=body
        )
        mail.send(msg)
        return True
    except Exception as e:
        current_app.logger.error(f"Error sending alert email: {str(e)}", exc_info=True)
        # Alerts are best effort; the notification row is the durable record
        return False
