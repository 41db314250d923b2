from django.utils import timezone
from rest_framework.throttling import SimpleRateThrottle

from core.ratelimit import get_rate_limiter


class SharedCounterThrottle(SimpleRateThrottle):
    """
    DRF throttle backed by the database rate limiter instead of the Django cache,
    so every worker process shares the same counters.

    Subclasses set `scope`; the rate comes from DEFAULT_THROTTLE_RATES.
    """

    rate = None
    reset_at = None

    def get_cache_key(self, request, view):
        if request.user and request.user.is_authenticated:
            ident = f"user:{request.user.pk}"
        else:
            ident = f"ip:{self.get_ident(request)}"
        return f"throttle:{self.scope}:{ident}"

    def allow_request(self, request, view):
        if self.rate is None:
            return True

        key = self.get_cache_key(request, view)
        if key is None:
            return True

        result = get_rate_limiter().check(key, self.num_requests, self.duration)
        self.reset_at = result.reset_at
        return result.allowed

    def wait(self):
        if self.reset_at is None:
            return None
        return max((self.reset_at - timezone.now()).total_seconds(), 0)


class BookingPaymentThrottle(SharedCounterThrottle):
    scope = "booking_payment"


class BookingCheckoutThrottle(SharedCounterThrottle):
    scope = "booking_checkout"


class PointsBalanceThrottle(SharedCounterThrottle):
    scope = "points_balance"
