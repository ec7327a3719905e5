"""
Routes package for the payment webhooks service
"""
from routes.webhooks import webhooks_bp

__all__ = [
    'webhooks_bp',
]
