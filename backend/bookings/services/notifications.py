from __future__ import annotations

import logging

from bookings.models import Booking
from jobs.queue import enqueue_email_notification

logger = logging.getLogger(__name__)


def _booking_data(booking: Booking, role: str, counterpart) -> dict:
    return {
        "booking_id": booking.id,
        "title": booking.title,
        "start_date": booking.start_date.isoformat(),
        "end_date": booking.end_date.isoformat(),
        "role": role,
        "counterpart_name": counterpart.label,
    }


def _participants(booking: Booking):
    return [
        ("homeowner", booking.host, booking.sitter),
        ("sitter", booking.sitter, booking.host),
    ]


def notify_booking_paid(booking: Booking) -> None:
    """Queue payment confirmation emails for both participants; failures are logged, never raised."""
    for role, recipient, counterpart in _participants(booking):
        if not recipient.email:
            continue
        body_lines = [
            f"Hi {recipient.label},",
            "",
            f"Payment for {booking.title or 'your sit'} is complete.",
            f"Dates: {booking.start_date:%B %d, %Y} to {booking.end_date:%B %d, %Y}.",
            f"{'Sitter' if role == 'homeowner' else 'Homeowner'}: {counterpart.label}",
            "",
            "The SitSwap Team",
        ]
        try:
            enqueue_email_notification(
                to=recipient.email,
                type="booking_paid",
                data=_booking_data(booking, role, counterpart),
                subject="Booking payment confirmed",
                body="\n".join(body_lines),
            )
        except Exception:
            logger.exception("Could not queue booking_paid email for booking %s", booking.id)


def notify_booking_completed(booking: Booking) -> None:
    for role, recipient, counterpart in _participants(booking):
        if not recipient.email:
            continue
        body_lines = [
            f"Hi {recipient.label},",
            "",
            f"Your sit for {booking.title or 'your home'} is complete.",
            "",
            "The SitSwap Team",
        ]
        try:
            enqueue_email_notification(
                to=recipient.email,
                type="booking_completed",
                data=_booking_data(booking, role, counterpart),
                subject="Sit completed",
                body="\n".join(body_lines),
            )
        except Exception:
            logger.exception("Could not queue booking_completed email for booking %s", booking.id)
