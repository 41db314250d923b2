"""
Durable job queue on the `jobs.Job` table.

Producers call `enqueue_job` from inside request handling; a missing or broken
queue table must never fail the caller's primary operation, so enqueue errors
are logged and swallowed. Workers claim due jobs with a conditional update so
an attempt belongs to exactly one worker, run the registered handler and
either mark the job succeeded or schedule a retry with exponential backoff.
A job that exhausts `max_attempts` is dead-lettered in the `failed` state.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Optional

from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from jobs.models import Job

logger = logging.getLogger(__name__)

EMAIL_NOTIFICATION = "email.notification"
CACHE_CLEANUP = "maintenance.cache_cleanup"
RATE_LIMIT_CLEANUP = "maintenance.rate_limit_cleanup"
BOOKING_AUTOCOMPLETE = "maintenance.booking_autocomplete"

BACKOFF_BASE_SECONDS = 5
BACKOFF_MAX_SECONDS = 600

LOCK_EXPIRED_ERROR = "worker lock expired"


def backoff_seconds(attempt: int) -> int:
    return min(BACKOFF_BASE_SECONDS * 2 ** max(0, attempt), BACKOFF_MAX_SECONDS)


def enqueue_job(
    task: str,
    payload: Optional[dict[str, Any]] = None,
    *,
    run_at: Optional[datetime] = None,
    max_attempts: int = 5,
) -> Optional[int]:
    try:
        with transaction.atomic():
            job = Job.objects.create(
                task=task,
                payload=payload or {},
                run_at=run_at or timezone.now(),
                max_attempts=max(1, int(max_attempts)),
                status=Job.QUEUED,
            )
    except DatabaseError as exc:
        logger.warning("Job queue unavailable; dropping %s: %s", task, exc)
        return None
    return job.pk


def enqueue_email_notification(
    *,
    to: str,
    type: str,
    data: Optional[dict[str, Any]] = None,
    subject: str = "",
    body: str = "",
) -> Optional[int]:
    payload = {
        "to": to,
        "type": type,
        "data": data or {},
        "subject": subject,
        "body": body,
    }
    return enqueue_job(EMAIL_NOTIFICATION, payload, max_attempts=3)


def _due_filter(now: datetime, lock_timeout_seconds: int) -> Q:
    stale_before = now - timedelta(seconds=lock_timeout_seconds)
    return Q(status=Job.QUEUED, run_at__lte=now) | Q(status=Job.RUNNING, locked_at__lt=stale_before)


def claim_jobs(
    worker_id: str,
    limit: int = 10,
    lock_timeout_seconds: int = 300,
    *,
    now: Optional[datetime] = None,
) -> list[Job]:
    """
    Claim up to `limit` due jobs for `worker_id`.

    Jobs stuck in `running` past the lock timeout (a crashed worker) are due
    again, and the lost run counts as an attempt: once that exhausts
    `max_attempts` the job is dead-lettered instead of claimed. Each claim is
    an UPDATE guarded by the status and lock seen at selection time, so a job
    another worker claimed in between is skipped.
    """
    now = now or timezone.now()
    candidates = list(
        Job.objects.filter(_due_filter(now, lock_timeout_seconds))
        .order_by("run_at", "id")
        .values("id", "task", "status", "locked_at", "attempts", "max_attempts")[: max(1, limit)]
    )

    claimed_ids = []
    for candidate in candidates:
        seen = Job.objects.filter(
            pk=candidate["id"],
            status=candidate["status"],
            locked_at=candidate["locked_at"],
        )
        attempts = candidate["attempts"]
        if candidate["status"] == Job.RUNNING:
            attempts += 1
            if attempts >= candidate["max_attempts"]:
                dead = seen.update(
                    status=Job.FAILED,
                    attempts=attempts,
                    last_error=LOCK_EXPIRED_ERROR,
                    locked_by="",
                    locked_at=None,
                    updated_at=now,
                )
                if dead:
                    logger.error(
                        "Job %s (%s) dead-lettered after %s attempts: %s",
                        candidate["id"],
                        candidate["task"],
                        attempts,
                        LOCK_EXPIRED_ERROR,
                    )
                continue

        won = seen.update(
            status=Job.RUNNING,
            attempts=attempts,
            locked_by=worker_id,
            locked_at=now,
            updated_at=now,
        )
        if won:
            claimed_ids.append(candidate["id"])

    return list(Job.objects.filter(pk__in=claimed_ids).order_by("run_at", "id"))


def mark_succeeded(job: Job, worker_id: str) -> bool:
    updated = Job.objects.filter(pk=job.pk, locked_by=worker_id).update(
        status=Job.SUCCEEDED,
        locked_by="",
        locked_at=None,
        last_error="",
        updated_at=timezone.now(),
    )
    return bool(updated)


def mark_failed_or_retry(
    job: Job,
    worker_id: str,
    error: Any,
    *,
    now: Optional[datetime] = None,
) -> bool:
    now = now or timezone.now()
    attempts = min(job.attempts + 1, job.max_attempts)
    last_error = str(error) or error.__class__.__name__

    if attempts >= job.max_attempts:
        updated = Job.objects.filter(pk=job.pk, locked_by=worker_id).update(
            status=Job.FAILED,
            attempts=attempts,
            last_error=last_error,
            locked_by="",
            locked_at=None,
            updated_at=now,
        )
        if updated:
            logger.error(
                "Job %s (%s) dead-lettered after %s attempts: %s",
                job.pk,
                job.task,
                attempts,
                last_error,
            )
        return bool(updated)

    run_at = now + timedelta(seconds=backoff_seconds(attempts))
    updated = Job.objects.filter(pk=job.pk, locked_by=worker_id).update(
        status=Job.QUEUED,
        attempts=attempts,
        last_error=last_error,
        run_at=run_at,
        locked_by="",
        locked_at=None,
        updated_at=now,
    )
    if updated:
        logger.warning(
            "Job %s (%s) failed attempt %s/%s, retrying at %s: %s",
            job.pk,
            job.task,
            attempts,
            job.max_attempts,
            run_at.isoformat(),
            last_error,
        )
    return bool(updated)


def requeue_job(job: Job) -> Job:
    """Put a dead-lettered job back in the queue with a fresh attempt budget."""
    job.status = Job.QUEUED
    job.attempts = 0
    job.run_at = timezone.now()
    job.locked_by = ""
    job.locked_at = None
    job.save(update_fields=["status", "attempts", "run_at", "locked_by", "locked_at", "updated_at"])
    logger.info("Job %s (%s) requeued", job.pk, job.task)
    return job


def run_job(job: Job, worker_id: str) -> bool:
    """Run one claimed job and record the outcome. Returns whether the handler succeeded."""
    from jobs.handlers import get_handler

    try:
        handler = get_handler(job.task)
        handler(job.payload or {})
    except Exception as exc:
        mark_failed_or_retry(job, worker_id, exc)
        return False

    mark_succeeded(job, worker_id)
    return True


def process_due_jobs(worker_id: str, limit: int = 10, lock_timeout_seconds: int = 300) -> int:
    jobs = claim_jobs(worker_id, limit=limit, lock_timeout_seconds=lock_timeout_seconds)
    for job in jobs:
        run_job(job, worker_id)
    return len(jobs)


def enqueue_housekeeping() -> None:
    enqueue_job(CACHE_CLEANUP, {"max_rows": 1000})
    enqueue_job(RATE_LIMIT_CLEANUP, {"max_rows": 5000, "older_than_seconds": 60 * 60 * 24})
    enqueue_job(BOOKING_AUTOCOMPLETE, {})
