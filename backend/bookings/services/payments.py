"""
Booking payment state transitions.

Every write to a booking's payment fields goes through this module. Each
transition runs in one transaction that locks the booking row first and, when
points are involved, the payer's user row second, so two settlements of the
same booking (or two bookings drawing on the same balance) serialise instead
of double-spending.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from bookings.models import Booking
from bookings.pricing import FeeBreakdown, booking_fees, cash_due_for, clamp_points
from points.models import PointsLedgerEntry
from points.services import points_balance

logger = logging.getLogger(__name__)


class PaymentError(Exception):
    pass


class BookingNotPayable(PaymentError):
    pass


class InsufficientPayment(BookingNotPayable):
    pass


class PaymentNotAuthorized(PaymentError):
    pass


class RefundBeforePayment(PaymentError):
    """A refund arrived for a booking whose payment has not been recorded yet."""


@dataclass(frozen=True)
class ReconcileResult:
    updated: bool
    already_paid: bool
    points_applied: int
    cash_due: Decimal


@dataclass(frozen=True)
class PaymentQuote:
    fees: FeeBreakdown
    balance: int
    points: int
    cash_due: Decimal


def _is_stale(booking: Booking, event_created: Optional[datetime]) -> bool:
    return (
        event_created is not None
        and booking.last_payment_event_at is not None
        and event_created < booking.last_payment_event_at
    )


def quote_booking_payment(booking: Booking, payer, requested_points) -> PaymentQuote:
    """Unlocked preview of what a settlement would charge; the reconciler recomputes under lock."""
    fees = booking_fees(booking)
    balance = points_balance(payer)
    points = clamp_points(requested_points, balance, fees.nights)
    return PaymentQuote(fees=fees, balance=balance, points=points, cash_due=cash_due_for(fees, points))


def reconcile_booking_payment(
    booking_id: int,
    payer_id: int,
    requested_points,
    fees: Optional[FeeBreakdown] = None,
    paid_at: Optional[datetime] = None,
    cash_paid: Optional[Decimal] = None,
    *,
    payment_method: str = Booking.METHOD_MANUAL,
    payment_intent_id: str = "",
    event_created: Optional[datetime] = None,
) -> ReconcileResult:
    """
    Mark a booking paid, debiting the points applied to it.

    Returns the stored settlement unchanged (`already_paid=True`) when the
    booking was paid before the lock was taken. Raises `PaymentNotAuthorized`
    when the payer is not the booking's sitter, `BookingNotPayable` when the
    booking cannot be paid and `InsufficientPayment` when `cash_paid` does not
    cover the cash due.
    """
    with transaction.atomic():
        booking = Booking.objects.select_for_update().get(pk=booking_id)

        if booking.payment_status == Booking.PAID:
            return ReconcileResult(
                updated=False,
                already_paid=True,
                points_applied=booking.points_applied,
                cash_due=booking.cash_due if booking.cash_due is not None else Decimal("0"),
            )

        if booking.sitter_id != payer_id:
            raise PaymentNotAuthorized(f"User {payer_id} cannot pay booking {booking_id}.")
        if booking.payment_status == Booking.REFUNDED:
            raise BookingNotPayable(f"Booking {booking_id} has been refunded.")
        if booking.status not in Booking.PAYABLE_STATUSES:
            raise BookingNotPayable(f"Booking {booking_id} is {booking.status}.")

        payer = get_user_model().objects.select_for_update().get(pk=payer_id)

        fees = fees or booking_fees(booking)
        balance = points_balance(payer)
        points = clamp_points(requested_points, balance, fees.nights)
        cash_due = cash_due_for(fees, points)

        if cash_paid is not None and cash_paid < cash_due:
            raise InsufficientPayment(
                f"Booking {booking_id} needs {cash_due} in cash, received {cash_paid}."
            )

        if points > 0:
            PointsLedgerEntry.objects.create(
                user=payer,
                booking=booking,
                points_delta=-points,
                reason=PointsLedgerEntry.BOOKING_PAYMENT,
            )

        booking.service_fee_per_night = fees.service_fee_per_night
        booking.cleaning_fee = fees.cleaning_fee
        booking.insurance_cost = fees.insurance_cost
        booking.service_fee_total = fees.service_fee_total
        booking.total_fee = fees.total_fee
        booking.points_applied = points
        booking.cash_due = cash_due
        booking.cash_paid = cash_paid if cash_paid is not None else cash_due
        booking.payment_status = Booking.PAID
        booking.paid_at = paid_at or timezone.now()
        booking.payment_method = payment_method
        if payment_intent_id:
            booking.stripe_payment_intent_id = payment_intent_id
        if event_created is not None:
            booking.last_payment_event_at = event_created
        booking.save()

    logger.info(
        "Booking %s paid via %s: %s points, %s cash due",
        booking_id,
        payment_method,
        points,
        cash_due,
    )
    return ReconcileResult(updated=True, already_paid=False, points_applied=points, cash_due=cash_due)


def refund_booking_payment(
    booking_id: int,
    refunded_at: datetime,
    event_created: Optional[datetime] = None,
) -> bool:
    """
    Move a paid booking to refunded and credit back its points. Returns whether it changed.

    Raises `RefundBeforePayment` for an unpaid booking, so the caller can have
    the refund redelivered once the payment it reverses has been applied.
    """
    with transaction.atomic():
        booking = Booking.objects.select_for_update().get(pk=booking_id)

        if booking.payment_status == Booking.REFUNDED:
            return False
        if booking.payment_status != Booking.PAID:
            raise RefundBeforePayment(f"Booking {booking_id} has no recorded payment to refund.")
        if _is_stale(booking, event_created):
            logger.warning("Ignoring stale refund for booking %s", booking_id)
            return False

        if booking.points_applied > 0:
            PointsLedgerEntry.objects.create(
                user_id=booking.sitter_id,
                booking=booking,
                points_delta=booking.points_applied,
                reason=PointsLedgerEntry.BOOKING_REFUND,
            )

        booking.payment_status = Booking.REFUNDED
        booking.refunded_at = refunded_at
        if event_created is not None:
            booking.last_payment_event_at = event_created
        booking.save(update_fields=["payment_status", "refunded_at", "last_payment_event_at", "updated_at"])

    logger.info("Booking %s refunded; %s points returned", booking_id, booking.points_applied)
    return True


def record_payment_failure(booking_id: int, event_created: Optional[datetime] = None) -> bool:
    """
    Note a failed or canceled payment attempt.

    A failure never moves a booking out of `paid` or `refunded`, and an unpaid
    booking is already in the state a failure would produce, so this only logs.
    """
    with transaction.atomic():
        booking = Booking.objects.select_for_update().get(pk=booking_id)
        if booking.payment_status != Booking.UNPAID:
            logger.warning(
                "Ignoring payment failure for booking %s already %s",
                booking_id,
                booking.payment_status,
            )
        elif _is_stale(booking, event_created):
            logger.warning("Ignoring stale payment failure for booking %s", booking_id)
        else:
            logger.info("Payment attempt failed for booking %s", booking_id)
    return False


def link_payment_intent(booking_id: int, payment_intent_id: str) -> bool:
    """Record the provider's payment intent on a booking that has none yet."""
    if not payment_intent_id:
        return False
    with transaction.atomic():
        booking = Booking.objects.select_for_update().get(pk=booking_id)
        if booking.stripe_payment_intent_id == payment_intent_id:
            return False
        if booking.stripe_payment_intent_id:
            logger.warning(
                "Booking %s is linked to %s, event carries %s",
                booking_id,
                booking.stripe_payment_intent_id,
                payment_intent_id,
            )
            return False
        booking.stripe_payment_intent_id = payment_intent_id
        booking.save(update_fields=["stripe_payment_intent_id", "updated_at"])
    return True
