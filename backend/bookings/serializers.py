from rest_framework import serializers

from bookings.models import Booking
from bookings.pricing import booking_fees


class BookingPaymentSummarySerializer(serializers.ModelSerializer):
    sitter_name = serializers.CharField(source="sitter.label", read_only=True)
    host_name = serializers.CharField(source="host.label", read_only=True)
    nights = serializers.SerializerMethodField()
    estimated_total_fee = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "title",
            "start_date",
            "end_date",
            "status",
            "sitter",
            "sitter_name",
            "host",
            "host_name",
            "nights",
            "estimated_total_fee",
            "payment_status",
            "payment_method",
            "paid_at",
            "refunded_at",
            "service_fee_per_night",
            "cleaning_fee",
            "insurance_cost",
            "service_fee_total",
            "total_fee",
            "points_applied",
            "cash_due",
            "cash_paid",
        ]
        read_only_fields = fields

    def get_nights(self, obj: Booking) -> int:
        return booking_fees(obj).nights

    def get_estimated_total_fee(self, obj: Booking) -> str:
        return str(booking_fees(obj).total_fee)


class BookingPaymentRequestSerializer(serializers.Serializer):
    requested_points = serializers.IntegerField(min_value=0, required=False, default=0)
