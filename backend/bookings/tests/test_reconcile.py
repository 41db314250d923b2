import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from django.db import connection, connections

from bookings.models import Booking
from bookings.services.payments import (
    BookingNotPayable,
    InsufficientPayment,
    PaymentNotAuthorized,
    RefundBeforePayment,
    reconcile_booking_payment,
    record_payment_failure,
    refund_booking_payment,
)
from points.models import PointsLedgerEntry, PointsLedgerError
from points.services import points_balance

PAID_AT = datetime(2024, 1, 1, 12, tzinfo=timezone.utc)


@pytest.mark.django_db
def test_points_and_cash_settle_booking(booking, sitter, give_points):
    give_points(sitter, 10)

    result = reconcile_booking_payment(booking.id, sitter.id, 2, paid_at=PAID_AT)

    assert result.updated is True
    assert result.already_paid is False
    assert result.points_applied == 2
    assert result.cash_due == Decimal("250")

    booking.refresh_from_db()
    assert booking.payment_status == Booking.PAID
    assert booking.paid_at == PAID_AT
    assert booking.points_applied == 2
    assert booking.total_fee == Decimal("350")
    assert booking.service_fee_total == Decimal("150")
    assert booking.cash_due == Decimal("250")
    assert booking.cash_paid == Decimal("250")
    assert booking.payment_method == Booking.METHOD_MANUAL
    assert points_balance(sitter) == 8

    debit = PointsLedgerEntry.objects.get(booking=booking)
    assert debit.points_delta == -2
    assert debit.reason == PointsLedgerEntry.BOOKING_PAYMENT


@pytest.mark.django_db
def test_requested_points_are_clamped_to_balance_and_nights(booking, sitter, give_points):
    give_points(sitter, 2)

    result = reconcile_booking_payment(booking.id, sitter.id, 50)

    assert result.points_applied == 2
    assert points_balance(sitter) == 0


@pytest.mark.django_db
def test_second_settlement_is_a_no_op(booking, sitter, give_points):
    give_points(sitter, 10)
    first = reconcile_booking_payment(booking.id, sitter.id, 3)

    outcomes = [reconcile_booking_payment(booking.id, sitter.id, 3) for _ in range(5)]

    assert first.updated is True
    assert all(o.already_paid and not o.updated for o in outcomes)
    assert all(o.points_applied == 3 and o.cash_due == first.cash_due for o in outcomes)
    assert PointsLedgerEntry.objects.filter(booking=booking).count() == 1
    assert points_balance(sitter) == 7


def _race(count, settle):
    barrier = threading.Barrier(count)
    outcomes, errors = [], []

    def run(index):
        try:
            barrier.wait()
            outcomes.append(settle(index))
        except Exception as exc:
            errors.append(exc)
        finally:
            connections.close_all()

    threads = [threading.Thread(target=run, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return outcomes, errors


@pytest.mark.django_db(transaction=True)
def test_concurrent_settlements_have_one_winner(booking, sitter, give_points):
    if connection.vendor != "postgresql":
        pytest.skip("row locks need PostgreSQL")
    give_points(sitter, 10)

    outcomes, errors = _race(4, lambda _: reconcile_booking_payment(booking.id, sitter.id, 3))

    assert errors == []
    assert sum(o.updated for o in outcomes) == 1
    assert PointsLedgerEntry.objects.filter(booking=booking).count() == 1
    assert points_balance(sitter) == 7


@pytest.mark.django_db(transaction=True)
def test_concurrent_bookings_cannot_overspend_points(make_booking, sitter, give_points):
    if connection.vendor != "postgresql":
        pytest.skip("row locks need PostgreSQL")
    bookings = [make_booking(title=f"Sit {i}") for i in range(3)]
    give_points(sitter, 3)

    outcomes, errors = _race(3, lambda i: reconcile_booking_payment(bookings[i].id, sitter.id, 3))

    assert errors == []
    assert sum(o.points_applied for o in outcomes) == 3
    assert points_balance(sitter) == 0


@pytest.mark.django_db
def test_only_the_sitter_can_pay(booking, host):
    with pytest.raises(PaymentNotAuthorized):
        reconcile_booking_payment(booking.id, host.id, 0)

    booking.refresh_from_db()
    assert booking.payment_status == Booking.UNPAID


@pytest.mark.django_db
@pytest.mark.parametrize("status", [Booking.STATUS_PENDING, Booking.STATUS_CANCELLED, Booking.STATUS_COMPLETED])
def test_unpayable_statuses_are_rejected(make_booking, sitter, status):
    booking = make_booking(status=status)

    with pytest.raises(BookingNotPayable):
        reconcile_booking_payment(booking.id, sitter.id, 0)


@pytest.mark.django_db
def test_short_payment_rolls_back_everything(booking, sitter, give_points):
    give_points(sitter, 1)

    with pytest.raises(InsufficientPayment):
        reconcile_booking_payment(booking.id, sitter.id, 1, cash_paid=Decimal("299.99"))

    booking.refresh_from_db()
    assert booking.payment_status == Booking.UNPAID
    assert booking.points_applied == 0
    assert points_balance(sitter) == 1
    assert not PointsLedgerEntry.objects.filter(booking=booking).exists()


@pytest.mark.django_db
def test_points_only_settlement(make_booking, sitter, give_points):
    booking = make_booking(cleaning_fee=Decimal("0"))
    give_points(sitter, 5)

    result = reconcile_booking_payment(booking.id, sitter.id, 3, cash_paid=Decimal("0"))

    assert result.cash_due == Decimal("0")
    assert result.points_applied == 3


@pytest.mark.django_db
def test_refund_credits_points_once(booking, sitter, give_points):
    give_points(sitter, 4)
    reconcile_booking_payment(booking.id, sitter.id, 3, event_created=PAID_AT)
    refunded_at = PAID_AT + timedelta(days=1)

    assert refund_booking_payment(booking.id, refunded_at, refunded_at) is True
    assert refund_booking_payment(booking.id, refunded_at, refunded_at) is False

    booking.refresh_from_db()
    assert booking.payment_status == Booking.REFUNDED
    assert booking.refunded_at == refunded_at
    assert points_balance(sitter) == 4
    with pytest.raises(BookingNotPayable):
        reconcile_booking_payment(booking.id, sitter.id, 0)


@pytest.mark.django_db
def test_refund_of_unpaid_booking_is_deferred(booking):
    with pytest.raises(RefundBeforePayment):
        refund_booking_payment(booking.id, PAID_AT)

    booking.refresh_from_db()
    assert booking.payment_status == Booking.UNPAID
    assert booking.refunded_at is None


@pytest.mark.django_db
def test_stale_refund_is_ignored(booking, sitter):
    reconcile_booking_payment(booking.id, sitter.id, 0, event_created=PAID_AT)
    assert refund_booking_payment(booking.id, PAID_AT, PAID_AT - timedelta(minutes=1)) is False

    booking.refresh_from_db()
    assert booking.payment_status == Booking.PAID


@pytest.mark.django_db
def test_failure_never_unpays(booking, sitter):
    reconcile_booking_payment(booking.id, sitter.id, 0)

    assert record_payment_failure(booking.id) is False

    booking.refresh_from_db()
    assert booking.payment_status == Booking.PAID
    assert booking.paid_at is not None


@pytest.mark.django_db
def test_ledger_entries_are_append_only(sitter, give_points):
    entry = give_points(sitter, 3)

    entry.points_delta = 300
    with pytest.raises(PointsLedgerError):
        entry.save()
    with pytest.raises(PointsLedgerError):
        entry.delete()
    with pytest.raises(PointsLedgerError):
        PointsLedgerEntry.objects.filter(user=sitter).update(points_delta=1)
    assert points_balance(sitter) == 3
