from django.contrib import admin

from .models import Booking


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = ("title", "sitter", "host", "start_date", "end_date", "status", "payment_status", "paid_at")
    list_filter = ("status", "payment_status", "payment_method")
    search_fields = ("title", "sitter__email", "host__email", "stripe_payment_intent_id")
    readonly_fields = (
        "payment_status",
        "payment_method",
        "paid_at",
        "refunded_at",
        "last_payment_event_at",
        "stripe_payment_intent_id",
        "service_fee_total",
        "total_fee",
        "points_applied",
        "cash_due",
        "cash_paid",
        "created_at",
        "updated_at",
    )
