from django.db import models


class CacheEntry(models.Model):
    """Cached result of an idempotent external lookup. Rows past expires_at are misses."""

    key = models.CharField(max_length=255, unique=True)
    value = models.JSONField(null=True, blank=True)
    expires_at = models.DateTimeField(db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "cache entries"

    def __str__(self):
        return self.key


class RateLimitCounter(models.Model):
    """Fixed-window request counter shared by every process."""

    key = models.CharField(max_length=255, unique=True)
    window_start = models.DateTimeField()
    count = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True, db_index=True)

    def __str__(self):
        return f"{self.key} ({self.count})"
