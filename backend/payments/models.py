from django.db import models


class WebhookEventRecord(models.Model):
    """
    One row per provider event id that has been handled.

    The unique index on `event_id` is what makes redelivered events no-ops.
    """

    event_id = models.CharField(max_length=255, unique=True)
    event_type = models.CharField(max_length=100, blank=True)
    payload = models.JSONField(default=dict, blank=True)
    processed_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-processed_at"]

    def __str__(self):
        return f"{self.event_type} {self.event_id}"
