from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional
from uuid import uuid4

from django.conf import settings

from bookings.models import Booking
from core.cache import CACHE_POLICIES, cache_get, cache_set

logger = logging.getLogger(__name__)

CHECKOUT_FLOW = "booking_fee_payment"


@dataclass
class CheckoutSession:
    """
    The parts of a Stripe Checkout session the booking flow hands back to clients.

    In stub mode the identifiers are generated locally so development and tests
    never reach Stripe.
    """

    id: str
    payment_intent: str
    payment_status: str
    url: str


def to_cents(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def checkout_idempotency_key(*, booking: Booking, amount_cents: int, points: int) -> str:
    return f"booking-checkout:{booking.id}:{amount_cents}:{points}"


def build_checkout_preview_url(*, booking: Booking, amount_cents: int, session_id: str) -> str:
    return (
        f"{settings.FRONTEND_URL.rstrip('/')}/payments/preview?"
        f"booking={booking.id}&amount={amount_cents}&session={session_id}"
    )


def _stub_checkout_session(*, booking: Booking, amount_cents: int) -> CheckoutSession:
    session_id = f"cs_test_{uuid4().hex}"
    return CheckoutSession(
        id=session_id,
        payment_intent=f"pi_test_{uuid4().hex}",
        payment_status="unpaid",
        url=build_checkout_preview_url(booking=booking, amount_cents=amount_cents, session_id=session_id),
    )


def _get_stripe_api_key() -> Optional[str]:
    key = getattr(settings, "STRIPE_SECRET_KEY", "")
    return key or None


def _should_use_stub() -> bool:
    if getattr(settings, "STRIPE_USE_STUB", False):
        return True
    return _get_stripe_api_key() is None


def _stripe_checkout_session(
    *, booking: Booking, amount_cents: int, points: int, idempotency_key: str
) -> CheckoutSession:
    import stripe

    stripe.api_key = _get_stripe_api_key()
    frontend = settings.FRONTEND_URL.rstrip("/")
    session = stripe.checkout.Session.create(
        mode="payment",
        payment_method_types=["card"],
        line_items=[
            {
                "quantity": 1,
                "price_data": {
                    "currency": settings.PAYMENT_CURRENCY,
                    "unit_amount": amount_cents,
                    "product_data": {
                        "name": f"SitSwap fees: {booking.title or 'sit'}",
                    },
                },
            }
        ],
        success_url=f"{frontend}/sits/{booking.id}?payment=success",
        cancel_url=f"{frontend}/sits/{booking.id}?payment=cancelled",
        client_reference_id=str(booking.id),
        metadata={
            "flow": CHECKOUT_FLOW,
            "booking_id": str(booking.id),
            "sitter_id": str(booking.sitter_id),
            "requested_points": str(points),
        },
        payment_intent_data={
            "metadata": {
                "flow": CHECKOUT_FLOW,
                "booking_id": str(booking.id),
                "sitter_id": str(booking.sitter_id),
                "requested_points": str(points),
            },
        },
        idempotency_key=idempotency_key,
    )
    return CheckoutSession(
        id=session.id,
        payment_intent=session.payment_intent or "",
        payment_status=session.payment_status,
        url=session.url,
    )


def create_checkout_session(*, booking: Booking, amount: Decimal, points: int) -> CheckoutSession:
    """
    Create (or reuse) a Checkout session for the cash part of a booking's fees.

    Sessions are cached under the idempotency key, so repeated clicks for the
    same booking, amount and points return the same session without another
    provider call.
    """
    amount_cents = to_cents(amount)
    if amount_cents <= 0:
        raise ValueError("Checkout requires a positive amount.")

    key = checkout_idempotency_key(booking=booking, amount_cents=amount_cents, points=points)
    cached = cache_get(key)
    if isinstance(cached, dict):
        try:
            return CheckoutSession(**cached)
        except TypeError:
            logger.warning("Discarding malformed cached checkout session %s", key)

    if _should_use_stub():
        session = _stub_checkout_session(booking=booking, amount_cents=amount_cents)
    else:
        session = _stripe_checkout_session(
            booking=booking,
            amount_cents=amount_cents,
            points=points,
            idempotency_key=key,
        )

    cache_set(key, asdict(session), CACHE_POLICIES["checkout_session"]["ttl_seconds"])
    return session
