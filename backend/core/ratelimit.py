"""
Fixed-window rate limiting on a shared database counter.

Each check locks the counter row for its key, so check-and-increment is a
single transaction and concurrent callers cannot both take the last slot.
When the counter store is unreachable the limiter's `FailureMode` decides
the answer; the mode is handed to the limiter rather than read from the
environment.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from core.models import RateLimitCounter

logger = logging.getLogger(__name__)


class FailureMode(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: datetime


class RateLimiter:
    def __init__(self, failure_mode: FailureMode = FailureMode.CLOSED):
        self.failure_mode = failure_mode

    def check(
        self,
        key: str,
        limit: int,
        window_seconds: int,
        *,
        now: datetime | None = None,
    ) -> RateLimitResult:
        limit = max(1, int(limit))
        window = timedelta(seconds=max(1, int(window_seconds)))
        now = now or timezone.now()

        try:
            return self._check_and_increment(key, limit, window, now)
        except DatabaseError as exc:
            return self._fallback(key, limit, now + window, exc)

    def _check_and_increment(
        self, key: str, limit: int, window: timedelta, now: datetime
    ) -> RateLimitResult:
        with transaction.atomic():
            counter, _ = RateLimitCounter.objects.select_for_update().get_or_create(
                key=key,
                defaults={"window_start": now, "count": 0},
            )
            if counter.window_start + window <= now:
                counter.window_start = now
                counter.count = 0

            allowed = counter.count < limit
            if allowed:
                counter.count += 1
                counter.save(update_fields=["window_start", "count", "updated_at"])

            return RateLimitResult(
                allowed=allowed,
                remaining=max(limit - counter.count, 0),
                reset_at=counter.window_start + window,
            )

    def _fallback(self, key: str, limit: int, reset_at: datetime, exc: Exception) -> RateLimitResult:
        if self.failure_mode == FailureMode.CLOSED:
            logger.error("Rate limiter unavailable; denying %s: %s", key, exc)
            return RateLimitResult(allowed=False, remaining=0, reset_at=reset_at)

        logger.warning("Rate limiter unavailable; allowing %s: %s", key, exc)
        return RateLimitResult(allowed=True, remaining=limit, reset_at=reset_at)


def get_rate_limiter() -> RateLimiter:
    mode = FailureMode.CLOSED if settings.RATE_LIMIT_FAIL_CLOSED else FailureMode.OPEN
    return RateLimiter(failure_mode=mode)


def check_rate_limit(key: str, limit: int, window_seconds: int) -> RateLimitResult:
    return get_rate_limiter().check(key, limit, window_seconds)


def rate_limit_cleanup(
    older_than_seconds: int = 60 * 60 * 24,
    max_rows: int = 5000,
    *,
    now: datetime | None = None,
) -> int:
    """Remove counters untouched for `older_than_seconds`."""
    cutoff = (now or timezone.now()) - timedelta(seconds=older_than_seconds)
    stale_ids = list(
        RateLimitCounter.objects.filter(updated_at__lt=cutoff)
        .order_by("updated_at")
        .values_list("id", flat=True)[:max_rows]
    )
    if not stale_ids:
        return 0
    deleted, _ = RateLimitCounter.objects.filter(id__in=stale_ids, updated_at__lt=cutoff).delete()
    return deleted
