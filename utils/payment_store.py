"""
Narrow persistence interface used by the reconciliation engine.
Every write goes through the current SQLAlchemy session; nothing is committed
until commit() so the transaction and subscription updates land together.
"""
from models import db
from models.subscription import Subscription
from models.transaction import PaymentTransaction
from utils.payment_states import SubscriptionStatus, TransactionStatus


class PaymentStore:
    """Row-level reads and writes for payment transactions and subscriptions"""

    def __init__(self, session=None):
        self.session = session or db.session

    def get_transaction(self, subscription_id, provider):
        """Most recent transaction for (subscription, provider), or None."""
        return (
            self.session.query(PaymentTransaction)
            .filter_by(subscription_id=str(subscription_id), provider=provider)
            .order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
            .first()
        )

    def mark_transaction(self, transaction, status, provider, payload, now, reference=None):
        """
        Move a pending transaction to status.
        The update only matches while the row is still pending, so a concurrent
        delivery that already settled it makes this a no-op.

        Returns:
            True when this call performed the transition
        """
        response = dict(transaction.provider_response or {})
        response[provider] = payload
        values = {
            'status': TransactionStatus(status).value,
            'provider_response': response,
            'updated_at': now,
        }
        if reference and not transaction.provider_reference:
            values['provider_reference'] = reference

        rows = (
            self.session.query(PaymentTransaction)
            .filter_by(id=transaction.id, status=TransactionStatus.PENDING.value)
            .update(values, synchronize_session='evaluate')
        )
        return rows == 1

    def get_subscription(self, subscription_id):
        return self.session.get(Subscription, str(subscription_id))

    def activate_subscription(self, subscription, payment_details, start_date, end_date, now):
        subscription.status = SubscriptionStatus.ACTIVE.value
        subscription.start_date = start_date
        subscription.end_date = end_date
        subscription.payment_details = payment_details
        subscription.updated_at = now
        self.session.flush()

    def fail_subscription(self, subscription, now):
        subscription.status = SubscriptionStatus.FAILED.value
        subscription.updated_at = now
        self.session.flush()

    def commit(self):
        self.session.commit()

    def rollback(self):
        self.session.rollback()
