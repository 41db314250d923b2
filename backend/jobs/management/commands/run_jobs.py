import os
import signal
import socket
import time

from django.conf import settings
from django.core.management.base import BaseCommand

from jobs.queue import enqueue_housekeeping, process_due_jobs


class Command(BaseCommand):
    help = "Run the background job worker."

    def add_arguments(self, parser):
        parser.add_argument("--once", action="store_true", help="Process one batch and exit.")
        parser.add_argument("--batch-size", type=int, default=settings.JOBS_BATCH_SIZE)
        parser.add_argument("--poll-interval", type=float, default=settings.JOBS_POLL_INTERVAL_SECONDS)
        parser.add_argument("--worker-id", default=settings.JOBS_WORKER_ID)
        parser.add_argument(
            "--no-housekeeping",
            action="store_true",
            help="Do not enqueue periodic maintenance jobs.",
        )

    def handle(self, *args, **options):
        worker_id = options["worker_id"] or f"{socket.gethostname()}:{os.getpid()}"
        batch_size = min(50, max(1, options["batch_size"]))
        poll_interval = max(0.1, options["poll_interval"])
        lock_timeout = min(3600, max(30, settings.JOBS_LOCK_TIMEOUT_SECONDS))
        housekeeping_interval = max(30, settings.JOBS_HOUSEKEEPING_INTERVAL_SECONDS)
        housekeeping = not options["no_housekeeping"]

        if options["once"]:
            processed = process_due_jobs(worker_id, limit=batch_size, lock_timeout_seconds=lock_timeout)
            self.stdout.write(self.style.SUCCESS(f"Processed {processed} job(s)."))
            return

        self._stopping = False
        signal.signal(signal.SIGINT, self._stop)
        signal.signal(signal.SIGTERM, self._stop)

        self.stdout.write(self.style.MIGRATE_HEADING(f"Worker {worker_id} started"))
        next_housekeeping = time.monotonic()
        while not self._stopping:
            if housekeeping and time.monotonic() >= next_housekeeping:
                enqueue_housekeeping()
                next_housekeeping = time.monotonic() + housekeeping_interval

            processed = process_due_jobs(worker_id, limit=batch_size, lock_timeout_seconds=lock_timeout)
            if processed == 0:
                time.sleep(poll_interval)

        self.stdout.write(self.style.NOTICE(f"Worker {worker_id} stopped"))

    def _stop(self, signum, frame):
        self._stopping = True
