"""
Payment Webhook model definition
"""
from models import db
from datetime import datetime


class PaymentWebhook(db.Model):
    """Every authenticated inbound provider delivery, kept for audit and debugging"""
    __tablename__ = 'payment_webhooks'

    id = db.Column(db.Integer, primary_key=True)
    provider = db.Column(db.String(20), nullable=False, index=True)  # paystack, intasend
    event_type = db.Column(db.String(100), nullable=True)  # Paystack event or IntaSend state
    payload = db.Column(db.JSON, nullable=True)  # Parsed body when it was valid JSON
    raw_body = db.Column(db.Text, nullable=True)  # Only kept when the body could not be parsed
    received_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<PaymentWebhook {self.id}: {self.provider} {self.event_type}>'
