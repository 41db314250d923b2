from django.contrib import admin

from .models import PointsLedgerEntry


@admin.register(PointsLedgerEntry)
class PointsLedgerEntryAdmin(admin.ModelAdmin):
    list_display = ("user", "points_delta", "reason", "booking", "created_at")
    list_filter = ("reason",)
    search_fields = ("user__username", "user__email")
    readonly_fields = ("user", "booking", "points_delta", "reason", "created_at")

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
