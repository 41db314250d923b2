from __future__ import annotations

from django.db.models import Sum

from points.models import PointsLedgerEntry


def points_balance(user) -> int:
    """Sum of the user's ledger entries, floored at zero."""
    user_id = getattr(user, "pk", user)
    total = PointsLedgerEntry.objects.filter(user_id=user_id).aggregate(total=Sum("points_delta"))["total"]
    return max(int(total or 0), 0)


def recent_entries(user, limit: int = 20):
    return PointsLedgerEntry.objects.filter(user=user).select_related("booking")[:limit]


def award_points(*, user, points: int, reason: str = PointsLedgerEntry.ADJUSTMENT, booking=None):
    if points <= 0:
        raise ValueError("Awarded points must be positive.")
    return PointsLedgerEntry.objects.create(
        user=user,
        booking=booking,
        points_delta=points,
        reason=reason,
    )
