from datetime import timedelta

import pytest
from django.db import DatabaseError
from django.urls import reverse
from django.utils import timezone

from core.models import RateLimitCounter
from core.ratelimit import FailureMode, RateLimiter, check_rate_limit, rate_limit_cleanup
from core.throttling import PointsBalanceThrottle


@pytest.mark.django_db
def test_fixed_window_boundary():
    limiter = RateLimiter()
    start = timezone.now()

    results = [limiter.check("login:1.2.3.4", 5, 60, now=start + timedelta(seconds=i)) for i in range(6)]

    assert [r.allowed for r in results] == [True, True, True, True, True, False]
    assert [r.remaining for r in results] == [4, 3, 2, 1, 0, 0]
    assert all(r.reset_at == start + timedelta(seconds=60) for r in results)

    fresh = limiter.check("login:1.2.3.4", 5, 60, now=start + timedelta(seconds=61))
    assert fresh.allowed is True
    assert fresh.remaining == 4
    assert fresh.reset_at == start + timedelta(seconds=121)


@pytest.mark.django_db
def test_keys_are_counted_independently():
    limiter = RateLimiter()
    now = timezone.now()

    assert limiter.check("a", 1, 60, now=now).allowed
    assert not limiter.check("a", 1, 60, now=now).allowed
    assert limiter.check("b", 1, 60, now=now).allowed


@pytest.mark.django_db
def test_limit_and_window_are_clamped_to_one():
    limiter = RateLimiter()
    now = timezone.now()

    first = limiter.check("tiny", 0, 0.2, now=now)
    assert first.allowed
    assert first.reset_at == now + timedelta(seconds=1)
    assert not limiter.check("tiny", 0, 0, now=now).allowed


@pytest.mark.django_db
def test_denied_calls_do_not_extend_count():
    limiter = RateLimiter()
    now = timezone.now()
    limiter.check("k", 1, 60, now=now)
    limiter.check("k", 1, 60, now=now)
    limiter.check("k", 1, 60, now=now)

    assert RateLimitCounter.objects.get(key="k").count == 1


@pytest.fixture
def broken_store(monkeypatch):
    def broken(self, *args, **kwargs):
        raise DatabaseError("counter store down")

    monkeypatch.setattr(RateLimiter, "_check_and_increment", broken)


def test_fail_closed_denies_when_store_unavailable(broken_store):
    result = RateLimiter(FailureMode.CLOSED).check("k", 5, 60)

    assert result.allowed is False
    assert result.remaining == 0


def test_fail_open_allows_when_store_unavailable(broken_store):
    result = RateLimiter(FailureMode.OPEN).check("k", 5, 60)

    assert result.allowed is True
    assert result.remaining == 5


def test_module_helper_uses_configured_failure_mode(broken_store, settings):
    settings.RATE_LIMIT_FAIL_CLOSED = False
    assert check_rate_limit("k", 5, 60).allowed is True

    settings.RATE_LIMIT_FAIL_CLOSED = True
    assert check_rate_limit("k", 5, 60).allowed is False


@pytest.mark.django_db
def test_cleanup_removes_idle_counters():
    limiter = RateLimiter()
    limiter.check("idle", 5, 60)
    limiter.check("busy", 5, 60)
    RateLimitCounter.objects.filter(key="idle").update(updated_at=timezone.now() - timedelta(days=2))

    assert rate_limit_cleanup(older_than_seconds=60 * 60 * 24) == 1
    assert list(RateLimitCounter.objects.values_list("key", flat=True)) == ["busy"]


@pytest.mark.django_db
def test_throttle_rejects_after_rate_with_retry_after(monkeypatch, sitter_client):
    monkeypatch.setattr(PointsBalanceThrottle, "rate", "2/min")
    url = reverse("points-balance")

    assert sitter_client.get(url).status_code == 200
    assert sitter_client.get(url).status_code == 200
    response = sitter_client.get(url)

    assert response.status_code == 429
    assert 0 < int(response["Retry-After"]) <= 60
    assert RateLimitCounter.objects.filter(key__startswith="throttle:points_balance:user:").count() == 1
