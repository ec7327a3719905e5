"""
Payment transaction model definition
"""
from models import db
from datetime import datetime


class PaymentTransaction(db.Model):
    """One payment attempt for a subscription with a single provider"""
    __tablename__ = 'payment_transactions'

    id = db.Column(db.Integer, primary_key=True)
    subscription_id = db.Column(db.String(64), db.ForeignKey('user_subscriptions.id'), nullable=False, index=True)
    user_id = db.Column(db.String(64), nullable=True)
    provider = db.Column(db.String(20), nullable=False)  # paystack, intasend
    provider_reference = db.Column(db.String(100), nullable=True)
    amount = db.Column(db.Numeric(12, 2), nullable=True)
    currency = db.Column(db.String(3), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='pending')  # pending, successful, failed
    provider_response = db.Column(db.JSON, nullable=True)  # keyed by provider name
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<PaymentTransaction {self.id} {self.provider}:{self.status}>'
