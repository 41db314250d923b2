"""
Database-backed TTL cache for idempotent external lookups.

Expiry is lazy: a row past `expires_at` reads as a miss and is removed on the
way out. The store is an optimisation only, so an unreachable database is a
miss (reads) or a skipped write, never an error for the caller.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from django.db import DatabaseError, transaction
from django.utils import timezone

from core.models import CacheEntry

logger = logging.getLogger(__name__)

CACHE_POLICIES = {
    "checkout_session": {
        "ttl_seconds": 60 * 30,
    },
}


def cache_get(key: str, *, now: datetime | None = None) -> Any | None:
    now = now or timezone.now()
    try:
        entry = CacheEntry.objects.filter(key=key).only("value", "expires_at").first()
    except DatabaseError as exc:
        logger.warning("Cache unavailable; treating %s as a miss: %s", key, exc)
        return None

    if entry is None:
        return None

    if entry.expires_at <= now:
        _discard_expired(key, now)
        return None

    return entry.value


def cache_set(key: str, value: Any, ttl_seconds: int, *, now: datetime | None = None) -> None:
    now = now or timezone.now()
    expires_at = now + timedelta(seconds=max(1, int(ttl_seconds)))
    try:
        with transaction.atomic():
            CacheEntry.objects.update_or_create(
                key=key,
                defaults={"value": value, "expires_at": expires_at},
            )
    except DatabaseError as exc:
        logger.warning("Cache unavailable; skipping set for %s: %s", key, exc)


def cache_delete(key: str) -> None:
    try:
        CacheEntry.objects.filter(key=key).delete()
    except DatabaseError as exc:
        logger.warning("Cache unavailable; skipping delete for %s: %s", key, exc)


def cache_cleanup(max_rows: int = 1000, *, now: datetime | None = None) -> int:
    """Delete up to `max_rows` expired entries and return how many were removed."""
    now = now or timezone.now()
    expired_ids = list(
        CacheEntry.objects.filter(expires_at__lte=now)
        .order_by("expires_at")
        .values_list("id", flat=True)[:max_rows]
    )
    if not expired_ids:
        return 0
    deleted, _ = CacheEntry.objects.filter(id__in=expired_ids, expires_at__lte=now).delete()
    return deleted


def _discard_expired(key: str, now: datetime) -> None:
    # Only remove the row if nobody refreshed it since we read it.
    try:
        CacheEntry.objects.filter(key=key, expires_at__lte=now).delete()
    except DatabaseError as exc:
        logger.debug("Could not discard expired cache entry %s: %s", key, exc)
