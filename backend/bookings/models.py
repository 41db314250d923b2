from decimal import Decimal

from django.conf import settings
from django.db import models


class Booking(models.Model):
    """One sitting engagement between a host and a sitter, with its own payment lifecycle."""

    STATUS_PENDING = "pending"
    STATUS_ACCEPTED = "accepted"
    STATUS_CONFIRMED = "confirmed"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"
    STATUSES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_ACCEPTED, "Accepted"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]
    PAYABLE_STATUSES = (STATUS_ACCEPTED, STATUS_CONFIRMED)

    UNPAID = "unpaid"
    PAID = "paid"
    REFUNDED = "refunded"
    PAYMENT_STATUSES = [
        (UNPAID, "Unpaid"),
        (PAID, "Paid"),
        (REFUNDED, "Refunded"),
    ]

    METHOD_MANUAL = "manual"
    METHOD_STRIPE = "stripe"
    PAYMENT_METHODS = [
        (METHOD_MANUAL, "Manual"),
        (METHOD_STRIPE, "Stripe"),
    ]

    sitter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="sitter_bookings",
    )
    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="host_bookings",
    )
    title = models.CharField(max_length=200, blank=True)
    start_date = models.DateField()
    end_date = models.DateField()
    status = models.CharField(max_length=12, choices=STATUSES, default=STATUS_PENDING)

    payment_status = models.CharField(max_length=12, choices=PAYMENT_STATUSES, default=UNPAID)
    payment_method = models.CharField(max_length=12, choices=PAYMENT_METHODS, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    last_payment_event_at = models.DateTimeField(null=True, blank=True)
    stripe_payment_intent_id = models.CharField(max_length=255, blank=True, db_index=True)

    service_fee_per_night = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("50"))
    cleaning_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("200"))
    insurance_cost = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0"))
    service_fee_total = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    total_fee = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    points_applied = models.PositiveIntegerField(default=0)
    cash_due = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    cash_paid = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["start_date", "id"]

    def __str__(self):
        return f"{self.title or 'Sit'} ({self.start_date} to {self.end_date})"

    @property
    def is_payable(self) -> bool:
        return self.status in self.PAYABLE_STATUSES and self.payment_status == self.UNPAID

    def is_participant(self, user) -> bool:
        return user.pk in (self.sitter_id, self.host_id)
