"""
Payment reconciliation engine.

Applies a verified, normalized PaymentEvent to the stored transaction and
subscription. Providers retry and reorder deliveries, so the engine is
idempotent: terminal transactions absorb every later event and only the
delivery that wins the pending -> terminal update touches the subscription.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from utils.notifications import notify_duplicate_payment, notify_reconciliation_inconsistency
from utils.payment_errors import ReconciliationInconsistency, StoreWriteFailure, TransactionNotFound
from utils.payment_states import EventKind, SubscriptionStatus, TransactionStatus, next_status
from utils.payment_store import PaymentStore

DEFAULT_PERIOD_DAYS = 30


@dataclass(frozen=True)
class ReconciliationResult:
    status: str
    subscription_id: str
    applied: bool = False


def _json_amount(amount):
    """Decimal -> int when whole, float otherwise (stored in a JSON column)."""
    if amount is None:
        return None
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


def build_payment_details(event, paid_at):
    return {
        'provider': event.provider,
        'reference': event.transaction_reference,
        'amount': _json_amount(event.amount),
        'currency': event.currency,
        'paid_at': paid_at.isoformat(),
    }


def _paid_elsewhere(subscription, event):
    """True when the subscription is already active through another provider."""
    if subscription.status != SubscriptionStatus.ACTIVE.value:
        return False
    details = subscription.payment_details or {}
    return details.get('provider') != event.provider


def _billing_period(subscription, now, days):
    """
    (start, end) for a successful payment. A same-provider payment on a
    subscription that is still running extends it from its current end date.
    """
    period = timedelta(days=days)
    running = (
        subscription.status == SubscriptionStatus.ACTIVE.value
        and subscription.start_date is not None
        and subscription.end_date is not None
        and subscription.end_date > now
    )
    if running:
        return subscription.start_date, subscription.end_date + period
    return now, now + period


def reconcile(event, store=None):
    """
    Converge stored state to the outcome reported by event.

    Args:
        event: PaymentEvent from utils.payment_events.normalize
        store: PaymentStore (defaults to one bound to db.session)

    Returns:
        ReconciliationResult; applied is False for pending events and for
        deliveries against an already settled transaction

    Raises:
        TransactionNotFound: no transaction for (subscription, provider)
        StoreWriteFailure: the store rejected the write; nothing was kept
        ReconciliationInconsistency: the transaction could be settled but the
            subscription could not; rolled back and reported to operators
    """
    store = store or PaymentStore()
    logger = current_app.logger
    subscription_id = event.subscription_id

    transaction = store.get_transaction(subscription_id, event.provider)
    if transaction is None:
        logger.warning(f"No {event.provider} transaction for subscription {subscription_id}")
        raise TransactionNotFound()

    if event.event_kind is EventKind.PENDING:
        logger.info(
            f"Ignoring non-terminal {event.provider} event for subscription {subscription_id}"
        )
        return ReconciliationResult(TransactionStatus.PENDING.value, subscription_id)

    target = next_status(transaction.status, event.event_kind)
    if target is None:
        logger.info(
            f"Transaction {transaction.id} already {transaction.status}; "
            f"duplicate {event.event_kind.value} event acknowledged"
        )
        return ReconciliationResult(transaction.status, subscription_id)

    now = datetime.utcnow()
    try:
        won = store.mark_transaction(
            transaction, target, event.provider, event.raw_payload, now,
            reference=event.transaction_reference,
        )
    except SQLAlchemyError as e:
        store.rollback()
        logger.error(f"Failed to update transaction {transaction.id}: {str(e)}", exc_info=True)
        raise StoreWriteFailure() from e

    if not won:
        # A concurrent delivery settled it between our read and write
        store.rollback()
        logger.info(f"Transaction {transaction.id} settled concurrently; event acknowledged")
        return ReconciliationResult(transaction.status, subscription_id)

    duplicate_subscription = None
    try:
        subscription = store.get_subscription(subscription_id)
        if subscription is None:
            raise LookupError(f"subscription {subscription_id} does not exist")

        if target is TransactionStatus.SUCCESSFUL:
            if _paid_elsewhere(subscription, event):
                duplicate_subscription = subscription
            else:
                days = current_app.config.get('SUBSCRIPTION_PERIOD_DAYS', DEFAULT_PERIOD_DAYS)
                start_date, end_date = _billing_period(subscription, now, days)
                store.activate_subscription(
                    subscription,
                    build_payment_details(event, now),
                    start_date=start_date,
                    end_date=end_date,
                    now=now,
                )
        elif subscription.status == SubscriptionStatus.ACTIVE.value:
            logger.info(
                f"Subscription {subscription_id} stays active despite failed {event.provider} payment"
            )
        else:
            store.fail_subscription(subscription, now)
    except (LookupError, SQLAlchemyError) as e:
        store.rollback()
        logger.error(
            f"Reconciliation inconsistency: transaction {transaction.id} -> {target.value} "
            f"but subscription {subscription_id} update failed: {str(e)}",
            exc_info=True,
        )
        notify_reconciliation_inconsistency(event, target.value, str(e))
        raise ReconciliationInconsistency(
            "Transaction and subscription could not be updated together"
        ) from e

    try:
        store.commit()
    except SQLAlchemyError as e:
        store.rollback()
        logger.error(f"Failed to commit reconciliation for subscription {subscription_id}: {str(e)}", exc_info=True)
        raise StoreWriteFailure() from e

    logger.info(
        f"{event.provider} payment {event.transaction_reference} for subscription "
        f"{subscription_id} reconciled as {target.value}"
    )
    if duplicate_subscription is not None:
        logger.warning(
            f"Subscription {subscription_id} already active via another payment; "
            f"{event.provider} {event.transaction_reference} kept for refund review"
        )
        notify_duplicate_payment(duplicate_subscription, event)

    return ReconciliationResult(target.value, subscription_id, applied=True)
