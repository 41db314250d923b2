from datetime import timedelta

import pytest
from django.db import DatabaseError
from django.utils import timezone

from core.cache import cache_cleanup, cache_delete, cache_get, cache_set
from core.models import CacheEntry


@pytest.mark.django_db
def test_value_readable_until_ttl_passes():
    now = timezone.now()
    cache_set("k", {"a": 1}, 1, now=now)

    assert cache_get("k", now=now) == {"a": 1}
    assert cache_get("k", now=now + timedelta(seconds=2)) is None


@pytest.mark.django_db
def test_expired_read_removes_row():
    now = timezone.now()
    cache_set("stale", "v", 10, now=now)

    assert cache_get("stale", now=now + timedelta(seconds=11)) is None
    assert not CacheEntry.objects.filter(key="stale").exists()


@pytest.mark.django_db
def test_set_overwrites_value_and_expiry():
    now = timezone.now()
    cache_set("k", 1, 5, now=now)
    cache_set("k", 2, 60, now=now)

    assert cache_get("k", now=now + timedelta(seconds=30)) == 2
    assert CacheEntry.objects.filter(key="k").count() == 1


@pytest.mark.django_db
def test_missing_key_and_delete():
    assert cache_get("nope") is None
    cache_set("k", "v", 60)
    cache_delete("k")
    assert cache_get("k") is None


@pytest.mark.django_db
def test_cleanup_only_removes_expired_rows():
    now = timezone.now()
    cache_set("old-1", 1, 1, now=now - timedelta(minutes=5))
    cache_set("old-2", 2, 1, now=now - timedelta(minutes=5))
    cache_set("fresh", 3, 600, now=now)

    assert cache_cleanup(max_rows=1, now=now) == 1
    assert cache_cleanup(now=now) == 1
    assert cache_cleanup(now=now) == 0
    assert list(CacheEntry.objects.values_list("key", flat=True)) == ["fresh"]


@pytest.mark.django_db
def test_unavailable_store_reads_as_miss(monkeypatch):
    def broken(*args, **kwargs):
        raise DatabaseError("connection refused")

    monkeypatch.setattr(CacheEntry.objects, "filter", broken)
    monkeypatch.setattr(CacheEntry.objects, "update_or_create", broken)

    assert cache_get("k") is None
    cache_set("k", "v", 60)
