from django.conf import settings
from django.db import models


class PointsLedgerError(Exception):
    pass


class PointsLedgerQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise PointsLedgerError("Points ledger entries are append-only.")

    def delete(self):
        raise PointsLedgerError("Points ledger entries are append-only.")


class PointsLedgerEntry(models.Model):
    """
    One signed movement of a user's loyalty points.

    Entries are never edited or removed; a correction is a new entry. The
    balance is the sum of a user's `points_delta` values.
    """

    BOOKING_PAYMENT = "booking_payment_points"
    BOOKING_REFUND = "booking_refund_points"
    BOOKING_COMPLETED = "booking_completed_points"
    ADJUSTMENT = "adjustment"
    REASONS = [
        (BOOKING_PAYMENT, "Booking payment"),
        (BOOKING_REFUND, "Booking refund"),
        (BOOKING_COMPLETED, "Booking completed"),
        (ADJUSTMENT, "Adjustment"),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="points_entries",
    )
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="points_entries",
    )
    points_delta = models.IntegerField()
    reason = models.CharField(max_length=40, choices=REASONS)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = PointsLedgerQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name_plural = "points ledger entries"

    def __str__(self):
        return f"{self.user_id} {self.points_delta:+d} ({self.reason})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PointsLedgerError("Points ledger entries are append-only.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PointsLedgerError("Points ledger entries are append-only.")
