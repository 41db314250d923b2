"""
Idempotent ingestion of Stripe webhook events.

The dedup record and the booking changes share one transaction: a redelivered
event hits the unique `event_id` and is reported as a duplicate, while an event
whose processing fails rolls its dedup record back so the redelivery is
processed from scratch.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction

from bookings.models import Booking
from bookings.services.notifications import notify_booking_paid
from bookings.services.payments import (
    BookingNotPayable,
    RefundBeforePayment,
    link_payment_intent,
    reconcile_booking_payment,
    record_payment_failure,
    refund_booking_payment,
)
from payments.events import (
    PAID,
    REFUNDED,
    MalformedEventError,
    derive_payment_patch,
    parse_event,
)
from payments.models import WebhookEventRecord

logger = logging.getLogger(__name__)


class IngestStatus(str, Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    ERROR = "error"


@dataclass(frozen=True)
class IngestResult:
    status: IngestStatus
    event_id: Optional[str] = None
    reason: str = ""
    changed: bool = False
    booking_id: Optional[int] = None
    newly_paid: bool = False


def _ignored(event_id, reason, booking_id=None) -> IngestResult:
    logger.warning("Ignoring webhook event %s: %s", event_id, reason)
    return IngestResult(IngestStatus.IGNORED, event_id, reason, booking_id=booking_id)


def _resolve_booking(event) -> Optional[Booking]:
    if event.booking_id is not None:
        return Booking.objects.filter(pk=event.booking_id).first()
    if event.payment_intent_id:
        return Booking.objects.filter(stripe_payment_intent_id=event.payment_intent_id).first()
    return None


def _apply(event) -> IngestResult:
    patch = derive_payment_patch(event)
    if patch is None:
        return _ignored(event.event_id, "event carries no payment change")

    if event.booking_id is None and not event.payment_intent_id:
        return _ignored(event.event_id, "missing booking id")
    booking = _resolve_booking(event)
    if booking is None:
        if patch.payment_status == REFUNDED and event.booking_id is None:
            raise RefundBeforePayment(f"No booking is linked to {event.payment_intent_id} yet.")
        return _ignored(event.event_id, "unknown booking")

    if event.payment_intent_id:
        link_payment_intent(booking.id, event.payment_intent_id)

    if patch.payment_status == PAID:
        if event.amount_cents is None:
            return _ignored(event.event_id, "missing amount", booking.id)
        if event.currency != settings.PAYMENT_CURRENCY:
            return _ignored(event.event_id, f"unexpected currency {event.currency}", booking.id)
        try:
            result = reconcile_booking_payment(
                booking.id,
                booking.sitter_id,
                event.requested_points,
                paid_at=patch.paid_at,
                cash_paid=Decimal(event.amount_cents) / 100,
                payment_method=Booking.METHOD_STRIPE,
                payment_intent_id=event.payment_intent_id or "",
                event_created=event.created,
            )
        except BookingNotPayable as exc:
            return _ignored(event.event_id, str(exc), booking.id)
        return IngestResult(
            IngestStatus.APPLIED,
            event.event_id,
            "already paid" if result.already_paid else "paid",
            changed=result.updated,
            booking_id=booking.id,
            newly_paid=result.updated,
        )

    if patch.payment_status == REFUNDED:
        changed = refund_booking_payment(booking.id, patch.refunded_at, event.created)
        return IngestResult(
            IngestStatus.APPLIED,
            event.event_id,
            "refunded" if changed else "refund not applicable",
            changed=changed,
            booking_id=booking.id,
        )

    changed = record_payment_failure(booking.id, event.created)
    return IngestResult(IngestStatus.APPLIED, event.event_id, "payment failed", changed, booking.id)


def _notify_paid(booking_id: int) -> None:
    try:
        booking = Booking.objects.select_related("host", "sitter").get(pk=booking_id)
    except (Booking.DoesNotExist, DatabaseError):
        logger.exception("Could not load booking %s to send payment notifications", booking_id)
        return
    notify_booking_paid(booking)


def ingest(raw: Mapping[str, Any]) -> IngestResult:
    """Process one verified webhook payload exactly once."""
    event_id = raw.get("id") if isinstance(raw, Mapping) else None
    if not isinstance(event_id, str) or not event_id:
        logger.warning("Ignoring webhook payload without an event id.")
        return IngestResult(IngestStatus.IGNORED, None, "missing event id")

    try:
        with transaction.atomic():
            try:
                with transaction.atomic():
                    WebhookEventRecord.objects.create(
                        event_id=event_id,
                        event_type=str(raw.get("type") or ""),
                        payload=dict(raw),
                    )
            except IntegrityError:
                logger.info("Duplicate webhook event %s", event_id)
                return IngestResult(IngestStatus.DUPLICATE, event_id, "already processed")

            try:
                event = parse_event(raw)
            except MalformedEventError as exc:
                return _ignored(event_id, f"malformed event: {exc}")
            if event is None:
                logger.info("Ignoring unsupported webhook event %s (%s)", event_id, raw.get("type"))
                return IngestResult(IngestStatus.IGNORED, event_id, "unsupported event type")

            result = _apply(event)
    except RefundBeforePayment as exc:
        # Rolled back with the dedup record so the redelivery lands after the payment.
        logger.warning("Deferring webhook event %s: %s", event_id, exc)
        return IngestResult(IngestStatus.ERROR, event_id, "refund precedes payment")
    except Exception:
        logger.exception("Failed to process webhook event %s", event_id)
        return IngestResult(IngestStatus.ERROR, event_id, "processing failed")

    if result.status == IngestStatus.APPLIED:
        logger.info("Webhook event %s applied to booking %s: %s", event_id, result.booking_id, result.reason)
    if result.newly_paid:
        _notify_paid(result.booking_id)
    return result
