from django.contrib import admin

from .models import Job
from .queue import requeue_job


@admin.register(Job)
class JobAdmin(admin.ModelAdmin):
    list_display = ("task", "status", "attempts", "max_attempts", "run_at", "locked_by", "updated_at")
    list_filter = ("status", "task")
    search_fields = ("task", "last_error")
    readonly_fields = ("created_at", "updated_at", "locked_by", "locked_at")
    actions = ["requeue_failed"]

    @admin.action(description="Requeue selected failed jobs")
    def requeue_failed(self, request, queryset):
        jobs = list(queryset.filter(status=Job.FAILED))
        for job in jobs:
            requeue_job(job)
        self.message_user(request, f"Requeued {len(jobs)} job(s).")
