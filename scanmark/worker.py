"""Import worker process.

Run with ``scanmark-worker`` or ``python -m scanmark.worker``.
"""

import logging
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from redis import RedisError

from scanmark.core.config import settings
from scanmark.core.database import SessionLocal, create_tables
from scanmark.core.exceptions import AppException
from scanmark.core.logging_config import configure_logging
from scanmark.core.queue import ImportJob, ImportQueue, JobState, JobStatus
from scanmark.core.redis import close_redis, get_redis_client
from scanmark.core.scheduler import start_scheduler, stop_scheduler
from scanmark.services.importer import ImportService

logger = logging.getLogger(__name__)


class ImportWorker:
    """Claims jobs and reports each outcome back to the queue."""

    def __init__(
        self,
        queue: ImportQueue,
        importer: ImportService,
        heartbeat_interval: float | None = None,
    ):
        self.queue = queue
        self.importer = importer
        self.heartbeat_interval = heartbeat_interval or max(
            1.0, settings.JOB_VISIBILITY_TIMEOUT_SECONDS / 3
        )

    @contextmanager
    def _heartbeating(self, job: ImportJob) -> Iterator[None]:
        done = threading.Event()

        def beat():
            while not done.wait(self.heartbeat_interval):
                try:
                    self.queue.heartbeat(job)
                except RedisError as e:
                    logger.warning(f"[WORKER] Heartbeat for job {job.id} failed: {e}")

        thread = threading.Thread(target=beat, name=f"heartbeat-{job.id}", daemon=True)
        thread.start()
        try:
            yield
        finally:
            done.set()
            thread.join()

    def process_next(self, timeout: float | None = None) -> JobState | None:
        """Process one job. Returns its resulting state, or None when the queue was empty."""
        job = self.queue.claim(timeout)
        if job is None:
            return None

        logger.info(f"[WORKER] Processing job {job.id} ({job.format_tag})")
        try:
            with self._heartbeating(job):
                test_ids = self.importer.run(job.content, job.format_tag)
        except AppException as e:
            if e.retryable:
                status = self.queue.retry_or_dead(job, e.message)
                return JobState(job.id, status, error=e.message)
            self.queue.fail(job, e.message)
            return JobState(job.id, JobStatus.FAILED, error=e.message)
        except Exception as e:
            logger.exception(f"[WORKER] Unexpected error in job {job.id}: {e}")
            error = f"Internal error: {e.__class__.__name__}"
            status = self.queue.retry_or_dead(job, error)
            return JobState(job.id, status, error=error)

        self.queue.complete(job, test_ids)
        return JobState(job.id, JobStatus.COMPLETED, test_ids=test_ids)

    def run(self, stop: threading.Event, poll_timeout: float) -> None:
        """Loop on ``process_next`` until ``stop`` is set."""
        name = threading.current_thread().name
        logger.info(f"[WORKER] {name} started")
        while not stop.is_set():
            try:
                self.process_next(poll_timeout)
            except RedisError as e:
                logger.error(f"[WORKER] {name} lost the queue connection: {e}")
                stop.wait(poll_timeout)
        logger.info(f"[WORKER] {name} stopped")


def run_worker() -> None:
    configure_logging()
    logger.info(f"[WORKER] Starting {settings.WORKER_CONCURRENCY} import threads")

    if settings.is_sqlite:
        create_tables()

    queue = ImportQueue(get_redis_client())
    worker = ImportWorker(queue, ImportService(SessionLocal))
    stop = threading.Event()

    def handle_signal(signum, frame):
        logger.info(f"[WORKER] Received signal {signum}, finishing current jobs")
        stop.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    start_scheduler(queue)
    threads = [
        threading.Thread(
            target=worker.run,
            args=(stop, settings.WORKER_POLL_TIMEOUT_SECONDS),
            name=f"import-worker-{n}",
        )
        for n in range(settings.WORKER_CONCURRENCY)
    ]
    for thread in threads:
        thread.start()
    try:
        while any(thread.is_alive() for thread in threads):
            for thread in threads:
                thread.join(timeout=1)
    finally:
        stop.set()
        stop_scheduler()
        close_redis()
        logger.info("[WORKER] Shutdown complete")


if __name__ == "__main__":
    run_worker()
