"""
Models package for the payment webhooks service
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Import all models here to ensure they're registered
from models.subscription import Subscription
from models.transaction import PaymentTransaction
from models.admin_notification import AdminNotification
from models.webhook import PaymentWebhook

__all__ = [
    'db',
    'Subscription',
    'PaymentTransaction',
    'AdminNotification',
    'PaymentWebhook',
]
