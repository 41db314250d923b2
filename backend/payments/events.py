"""
Typed view of the Stripe webhook events the payment flow reacts to.

`parse_event` is the only place that looks inside the raw payload. It returns
one dataclass per supported event type, carrying only the fields that type
guarantees, or `None` for event types the flow does not handle.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar, Mapping, Optional, Union

PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_INTENT_PAYMENT_FAILED = "payment_intent.payment_failed"
PAYMENT_INTENT_CANCELED = "payment_intent.canceled"
CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
CHARGE_REFUNDED = "charge.refunded"

SUPPORTED_EVENT_TYPES = frozenset(
    {
        PAYMENT_INTENT_SUCCEEDED,
        PAYMENT_INTENT_PAYMENT_FAILED,
        PAYMENT_INTENT_CANCELED,
        CHECKOUT_SESSION_COMPLETED,
        CHARGE_REFUNDED,
    }
)

PAID = "paid"
UNPAID = "unpaid"
REFUNDED = "refunded"

_LEADING_INT = re.compile(r"^\s*[+-]?\d+")


class MalformedEventError(ValueError):
    pass


@dataclass(frozen=True)
class _ProviderEvent:
    event_type: ClassVar[str] = ""

    event_id: str
    created: datetime
    booking_id: Optional[int]
    payment_intent_id: Optional[str]
    flow: Optional[str]
    requested_points: int


@dataclass(frozen=True)
class PaymentIntentSucceeded(_ProviderEvent):
    event_type: ClassVar[str] = PAYMENT_INTENT_SUCCEEDED

    amount_cents: Optional[int] = None
    currency: Optional[str] = None


@dataclass(frozen=True)
class PaymentIntentPaymentFailed(_ProviderEvent):
    event_type: ClassVar[str] = PAYMENT_INTENT_PAYMENT_FAILED


@dataclass(frozen=True)
class PaymentIntentCanceled(_ProviderEvent):
    event_type: ClassVar[str] = PAYMENT_INTENT_CANCELED


@dataclass(frozen=True)
class CheckoutSessionCompleted(_ProviderEvent):
    event_type: ClassVar[str] = CHECKOUT_SESSION_COMPLETED

    amount_cents: Optional[int] = None
    currency: Optional[str] = None
    checkout_payment_status: Optional[str] = None


@dataclass(frozen=True)
class ChargeRefunded(_ProviderEvent):
    event_type: ClassVar[str] = CHARGE_REFUNDED

    amount_cents: Optional[int] = None
    currency: Optional[str] = None


ProviderEvent = Union[
    PaymentIntentSucceeded,
    PaymentIntentPaymentFailed,
    PaymentIntentCanceled,
    CheckoutSessionCompleted,
    ChargeRefunded,
]


@dataclass(frozen=True)
class PaymentPatch:
    payment_status: str
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None


def event_datetime(created_unix_seconds: int) -> datetime:
    return datetime.fromtimestamp(max(0, created_unix_seconds), tz=timezone.utc)


def format_event_timestamp(created_unix_seconds: int) -> str:
    moment = event_datetime(created_unix_seconds)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _string(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _integer(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def _non_negative(value: Any) -> Optional[int]:
    parsed = _integer(value)
    return None if parsed is None else max(0, parsed)


def _leading_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        return None
    match = _LEADING_INT.match(value)
    return int(match.group()) if match else None


def _parse_requested_points(value: Any) -> int:
    parsed = _leading_int(value)
    return max(0, parsed) if parsed is not None else 0


def _parse_booking_id(value: Any) -> Optional[int]:
    parsed = _leading_int(value)
    return parsed if parsed is not None and parsed > 0 else None


def parse_event(raw: Any) -> Optional[ProviderEvent]:
    """
    Build the typed event for a raw webhook payload.

    Raises `MalformedEventError` when the envelope is structurally broken and
    returns `None` for well-formed events of unsupported types.
    """
    if not isinstance(raw, Mapping):
        raise MalformedEventError("Event payload must be an object.")

    event_id = _string(raw.get("id"))
    event_type = _string(raw.get("type"))
    created = _integer(raw.get("created"))
    if event_id is None or event_type is None:
        raise MalformedEventError("Event is missing its id or type.")
    if created is None:
        raise MalformedEventError(f"Event {event_id} has no integer `created` timestamp.")

    data = raw.get("data")
    obj = data.get("object") if isinstance(data, Mapping) else None
    if not isinstance(obj, Mapping):
        raise MalformedEventError(f"Event {event_id} has no data.object.")

    if event_type not in SUPPORTED_EVENT_TYPES:
        return None

    metadata = obj.get("metadata")
    if not isinstance(metadata, Mapping):
        metadata = {}

    if event_type.startswith("payment_intent."):
        payment_intent_id = _string(obj.get("id"))
    else:
        payment_intent_id = _string(obj.get("payment_intent"))

    common = {
        "event_id": event_id,
        "created": event_datetime(created),
        "booking_id": _parse_booking_id(metadata.get("booking_id")),
        "payment_intent_id": payment_intent_id,
        "flow": _string(metadata.get("flow")),
        "requested_points": _parse_requested_points(metadata.get("requested_points")),
    }
    currency = _string(obj.get("currency"))
    currency = currency.lower() if currency else None

    if event_type == PAYMENT_INTENT_SUCCEEDED:
        amount = _non_negative(obj.get("amount_received"))
        if amount is None:
            amount = _non_negative(obj.get("amount"))
        return PaymentIntentSucceeded(**common, amount_cents=amount, currency=currency)
    if event_type == PAYMENT_INTENT_PAYMENT_FAILED:
        return PaymentIntentPaymentFailed(**common)
    if event_type == PAYMENT_INTENT_CANCELED:
        return PaymentIntentCanceled(**common)
    if event_type == CHECKOUT_SESSION_COMPLETED:
        return CheckoutSessionCompleted(
            **common,
            amount_cents=_non_negative(obj.get("amount_total")),
            currency=currency,
            checkout_payment_status=_string(obj.get("payment_status")),
        )
    return ChargeRefunded(**common, amount_cents=_non_negative(obj.get("amount")), currency=currency)


def derive_payment_patch(event: ProviderEvent) -> Optional[PaymentPatch]:
    if isinstance(event, PaymentIntentSucceeded):
        return PaymentPatch(payment_status=PAID, paid_at=event.created)
    if isinstance(event, CheckoutSessionCompleted):
        if event.checkout_payment_status != "paid":
            return None
        return PaymentPatch(payment_status=PAID, paid_at=event.created)
    if isinstance(event, (PaymentIntentPaymentFailed, PaymentIntentCanceled)):
        return PaymentPatch(payment_status=UNPAID)
    if isinstance(event, ChargeRefunded):
        return PaymentPatch(payment_status=REFUNDED, refunded_at=event.created)
    return None
