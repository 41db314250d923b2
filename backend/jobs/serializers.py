from rest_framework import serializers

from jobs.models import Job


class JobSerializer(serializers.ModelSerializer):
    class Meta:
        model = Job
        fields = [
            "id",
            "task",
            "payload",
            "status",
            "run_at",
            "attempts",
            "max_attempts",
            "last_error",
            "locked_by",
            "locked_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields
