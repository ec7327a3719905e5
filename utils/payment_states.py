"""
Payment transaction state machine.

    pending --success--> successful (terminal)
    pending --failure--> failed     (terminal)
    successful|failed --any--> unchanged
"""
import enum


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    SUCCESSFUL = "successful"
    FAILED = "failed"


class SubscriptionStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    FAILED = "failed"
    EXPIRED = "expired"


class EventKind(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"


TRANSITIONS = {
    (TransactionStatus.PENDING, EventKind.SUCCESS): TransactionStatus.SUCCESSFUL,
    (TransactionStatus.PENDING, EventKind.FAILURE): TransactionStatus.FAILED,
}


def next_status(current, event_kind):
    """Target status for an event, or None when the event changes nothing."""
    try:
        current = TransactionStatus(current)
    except ValueError:
        # Unknown stored statuses are never overwritten
        return None
    return TRANSITIONS.get((current, EventKind(event_kind)))
