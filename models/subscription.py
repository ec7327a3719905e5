"""
Subscription model definition
"""
from models import db
from datetime import datetime


class Subscription(db.Model):
    """User subscription activated by a verified payment"""
    __tablename__ = 'user_subscriptions'

    id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(20), nullable=False, default='pending')  # pending, active, failed, expired
    start_date = db.Column(db.DateTime, nullable=True)
    end_date = db.Column(db.DateTime, nullable=True)
    payment_details = db.Column(db.JSON, nullable=True)  # provider, reference, amount, currency, paid_at
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow)

    # Relationships
    transactions = db.relationship('PaymentTransaction', backref='subscription', lazy=True)

    def __repr__(self):
        return f'<Subscription {self.id}>'
