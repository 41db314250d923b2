from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from django.db import transaction
from django.utils import timezone

from bookings.models import Booking
from bookings.pricing import calculate_nights
from bookings.services.notifications import notify_booking_completed
from points.models import PointsLedgerEntry

logger = logging.getLogger(__name__)


def complete_finished_bookings(*, today: Optional[date] = None) -> int:
    """
    Mark paid bookings whose end date has passed as completed and award the
    host one point per night hosted. Returns how many bookings were completed.
    """
    today = today or timezone.localdate()
    candidate_ids = list(
        Booking.objects.filter(
            status__in=Booking.PAYABLE_STATUSES,
            payment_status=Booking.PAID,
            end_date__lt=today,
        ).values_list("id", flat=True)
    )

    completed = 0
    for booking_id in candidate_ids:
        with transaction.atomic():
            won = Booking.objects.filter(
                pk=booking_id,
                status__in=Booking.PAYABLE_STATUSES,
                payment_status=Booking.PAID,
            ).update(status=Booking.STATUS_COMPLETED, updated_at=timezone.now())
            if not won:
                continue

            booking = Booking.objects.select_related("host", "sitter").get(pk=booking_id)
            already_awarded = PointsLedgerEntry.objects.filter(
                booking=booking,
                reason=PointsLedgerEntry.BOOKING_COMPLETED,
            ).exists()
            if not already_awarded:
                PointsLedgerEntry.objects.create(
                    user_id=booking.host_id,
                    booking=booking,
                    points_delta=calculate_nights(booking.start_date, booking.end_date),
                    reason=PointsLedgerEntry.BOOKING_COMPLETED,
                )
            transaction.on_commit(lambda b=booking: notify_booking_completed(b))

        completed += 1
        logger.info("Booking %s completed", booking_id)
    return completed
