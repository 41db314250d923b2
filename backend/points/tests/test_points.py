import pytest
from django.db.models import ProtectedError

from points.models import PointsLedgerEntry
from points.services import award_points, points_balance


@pytest.mark.django_db
def test_balance_sums_entries(sitter, host, give_points):
    give_points(sitter, 5)
    give_points(sitter, -2)
    give_points(host, 7)

    assert points_balance(sitter) == 3
    assert points_balance(sitter.pk) == 3
    assert points_balance(host) == 7


@pytest.mark.django_db
def test_balance_is_floored_at_zero(sitter, give_points):
    give_points(sitter, -4)

    assert points_balance(sitter) == 0


@pytest.mark.django_db
def test_award_points_requires_positive_amount(sitter):
    entry = award_points(user=sitter, points=2)
    assert entry.reason == PointsLedgerEntry.ADJUSTMENT

    with pytest.raises(ValueError):
        award_points(user=sitter, points=0)


@pytest.mark.django_db
def test_booking_with_ledger_entries_cannot_be_deleted(booking, sitter):
    entry = PointsLedgerEntry.objects.create(
        user=sitter,
        booking=booking,
        points_delta=-1,
        reason=PointsLedgerEntry.BOOKING_PAYMENT,
    )

    with pytest.raises(ProtectedError):
        booking.delete()

    entry.refresh_from_db()
    assert entry.booking_id == booking.id
