from rest_framework import serializers

from points.models import PointsLedgerEntry


class PointsLedgerEntrySerializer(serializers.ModelSerializer):
    class Meta:
        model = PointsLedgerEntry
        fields = ["id", "points_delta", "reason", "booking", "created_at"]
        read_only_fields = fields
