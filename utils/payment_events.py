"""
Provider payload normalization.

Each provider posts its own JSON shape; the functions registered here turn
them into a PaymentEvent the reconciliation engine understands. The provider
is chosen by the route the webhook arrived on, never by sniffing the payload.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Optional

from utils.payment_errors import MalformedPayload
from utils.payment_states import EventKind

PAYSTACK = "paystack"
INTASEND = "intasend"

PAYSTACK_EVENT_KINDS = {
    "charge.success": EventKind.SUCCESS,
    "charge.failed": EventKind.FAILURE,
    "transfer.failed": EventKind.FAILURE,
}

INTASEND_SUCCESS_STATES = {"complete", "success", "successful"}
INTASEND_FAILURE_STATES = {"failed", "cancelled"}

MINOR_UNITS_PER_MAJOR = 100


@dataclass(frozen=True)
class PaymentEvent:
    """Canonical payment notification, independent of the provider shape"""
    provider: str
    event_kind: EventKind
    subscription_id: str
    transaction_reference: Optional[str]
    amount_minor_units: Optional[int]
    currency: Optional[str]
    raw_payload: Dict[str, Any] = field(repr=False)
    occurred_at: datetime = field(default_factory=datetime.utcnow)

    @property
    def amount(self):
        """Amount in major currency units (e.g. 2500 for KES 2,500.00)."""
        if self.amount_minor_units is None:
            return None
        return Decimal(self.amount_minor_units) / MINOR_UNITS_PER_MAJOR


NORMALIZERS: Dict[str, Callable[[Dict[str, Any]], PaymentEvent]] = {}


def register_normalizer(provider):
    """Decorator registering the normalization function for a provider id."""
    def decorator(func):
        NORMALIZERS[provider] = func
        return func
    return decorator


def normalize(provider, payload):
    """
    Map a provider payload to a PaymentEvent.

    Raises:
        MalformedPayload: payload is not an object, lacks required fields
            or has no subscription id in its metadata
    """
    normalizer = NORMALIZERS.get(provider)
    if normalizer is None:
        raise ValueError(f"No normalizer registered for provider: {provider}")
    if not isinstance(payload, dict):
        raise MalformedPayload("Payload must be a JSON object")
    return normalizer(payload)


def _as_dict(value):
    return value if isinstance(value, dict) else {}


def _subscription_id(metadata):
    subscription_id = _as_dict(metadata).get("subscription_id")
    if subscription_id is None or str(subscription_id).strip() == "":
        raise MalformedPayload("No subscription ID in metadata")
    return str(subscription_id).strip()


def _minor_units(amount, scale):
    """Convert a provider amount to integer minor units (scale = minor units per provider unit)."""
    if amount is None:
        return None
    if isinstance(amount, bool):
        raise MalformedPayload("Amount must be numeric")
    try:
        amount = Decimal(str(amount))
    except InvalidOperation:
        raise MalformedPayload("Amount must be numeric")
    if not amount.is_finite():
        raise MalformedPayload("Amount must be numeric")
    return int((amount * scale).to_integral_value())


@register_normalizer(PAYSTACK)
def normalize_paystack(payload):
    """Paystack sends `event` plus a `data` object with amounts in minor units."""
    data = _as_dict(payload.get("data"))
    subscription_id = _subscription_id(data.get("metadata"))
    event_name = payload.get("event")
    if event_name is not None and not isinstance(event_name, str):
        raise MalformedPayload("Event name must be a string")
    event_kind = PAYSTACK_EVENT_KINDS.get(event_name, EventKind.PENDING)

    return PaymentEvent(
        provider=PAYSTACK,
        event_kind=event_kind,
        subscription_id=subscription_id,
        transaction_reference=data.get("reference"),
        amount_minor_units=_minor_units(data.get("amount"), 1),
        currency=data.get("currency"),
        raw_payload=payload,
    )


@register_normalizer(INTASEND)
def normalize_intasend(payload):
    """IntaSend sends a flat object keyed by `invoice`/`state`, amounts in major units."""
    if not payload.get("invoice") or not payload.get("state"):
        raise MalformedPayload("Payload requires invoice and state")

    subscription_id = _subscription_id(payload.get("metadata"))
    state = str(payload["state"]).strip().lower()
    if state in INTASEND_SUCCESS_STATES:
        event_kind = EventKind.SUCCESS
    elif state in INTASEND_FAILURE_STATES:
        event_kind = EventKind.FAILURE
    else:
        event_kind = EventKind.PENDING

    return PaymentEvent(
        provider=INTASEND,
        event_kind=event_kind,
        subscription_id=subscription_id,
        transaction_reference=str(payload["invoice"]),
        amount_minor_units=_minor_units(payload.get("value"), MINOR_UNITS_PER_MAJOR),
        currency=payload.get("currency"),
        raw_payload=payload,
    )


def event_from_paystack_verification(result, subscription_id=None):
    """
    Build a Paystack PaymentEvent from a /transaction/verify response.
    The verify `data` object has the same shape as a charge webhook's `data`.

    The subscription always comes from the metadata Paystack returns. A
    caller-supplied subscription_id is only checked against it.
    """
    data = _as_dict(result.get("data"))
    metadata = _as_dict(data.get("metadata"))
    verified_id = _subscription_id(metadata)
    if subscription_id is not None and str(subscription_id).strip() not in ("", verified_id):
        raise MalformedPayload("Subscription ID does not match the verified payment")

    status = str(data.get("status") or "").lower()
    if status == "success":
        event_kind = EventKind.SUCCESS
    elif status == "failed":
        event_kind = EventKind.FAILURE
    else:
        event_kind = EventKind.PENDING

    return PaymentEvent(
        provider=PAYSTACK,
        event_kind=event_kind,
        subscription_id=verified_id,
        transaction_reference=data.get("reference"),
        amount_minor_units=_minor_units(data.get("amount"), 1),
        currency=data.get("currency"),
        raw_payload=result,
    )
