from django.contrib import admin

from .models import CacheEntry, RateLimitCounter


@admin.register(CacheEntry)
class CacheEntryAdmin(admin.ModelAdmin):
    list_display = ("key", "expires_at", "updated_at")
    search_fields = ("key",)


@admin.register(RateLimitCounter)
class RateLimitCounterAdmin(admin.ModelAdmin):
    list_display = ("key", "window_start", "count", "updated_at")
    search_fields = ("key",)
