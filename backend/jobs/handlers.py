from __future__ import annotations

import logging
from typing import Any, Callable

from django.conf import settings
from django.core.mail import send_mail

from core.cache import cache_cleanup
from core.ratelimit import rate_limit_cleanup
from jobs import queue

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, Any]], None]

_HANDLERS: dict[str, Handler] = {}


class UnknownTask(LookupError):
    pass


def register(task: str):
    def decorator(func: Handler) -> Handler:
        _HANDLERS[task] = func
        return func

    return decorator


def get_handler(task: str) -> Handler:
    try:
        return _HANDLERS[task]
    except KeyError:
        raise UnknownTask(f"Unknown job task: {task}") from None


def mask_email(email: str) -> str:
    local, _, domain = email.partition("@")
    if not local or not domain:
        return "<invalid-email>"
    if len(local) <= 2:
        return f"**@{domain}"
    return f"{local[:2]}***@{domain}"


def _positive_int(value: Any, default: int) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


@register(queue.EMAIL_NOTIFICATION)
def send_email_notification(payload: dict[str, Any]) -> None:
    recipient = str(payload.get("to") or "").strip()
    if not recipient:
        raise ValueError("email.notification payload missing `to`")

    subject = str(payload.get("subject") or "SitSwap update")
    body = str(payload.get("body") or "You have a new update on SitSwap.")
    send_mail(
        subject,
        body,
        settings.DEFAULT_FROM_EMAIL,
        [recipient],
        fail_silently=False,
    )
    logger.info("Email sent to %s (%s)", mask_email(recipient), payload.get("type", "notification"))


@register(queue.CACHE_CLEANUP)
def run_cache_cleanup(payload: dict[str, Any]) -> None:
    deleted = cache_cleanup(max_rows=_positive_int(payload.get("max_rows"), 1000))
    logger.info("Cache cleanup removed %s entries", deleted)


@register(queue.RATE_LIMIT_CLEANUP)
def run_rate_limit_cleanup(payload: dict[str, Any]) -> None:
    deleted = rate_limit_cleanup(
        older_than_seconds=_positive_int(payload.get("older_than_seconds"), 60 * 60 * 24),
        max_rows=_positive_int(payload.get("max_rows"), 5000),
    )
    logger.info("Rate limit cleanup removed %s counters", deleted)


@register(queue.BOOKING_AUTOCOMPLETE)
def run_booking_autocomplete(payload: dict[str, Any]) -> None:
    from bookings.services.completion import complete_finished_bookings

    completed = complete_finished_bookings()
    if completed:
        logger.info("Completed %s finished bookings", completed)
