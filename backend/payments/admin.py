from django.contrib import admin

from .models import WebhookEventRecord


@admin.register(WebhookEventRecord)
class WebhookEventRecordAdmin(admin.ModelAdmin):
    list_display = ("event_id", "event_type", "processed_at")
    list_filter = ("event_type",)
    search_fields = ("event_id",)
    readonly_fields = ("event_id", "event_type", "payload", "processed_at")
