"""APScheduler configuration for import queue maintenance."""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from redis import RedisError

from scanmark.core.config import settings
from scanmark.core.queue import ImportQueue

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: BackgroundScheduler | None = None


def queue_maintenance_job(queue: ImportQueue):
    """
    Job to keep the import queue moving.
    Promotes due retries, requeues interrupted jobs and trims old dead jobs.
    """
    try:
        queue.promote_due_retries()
        queue.reap_interrupted(settings.JOB_VISIBILITY_TIMEOUT_SECONDS)
        queue.trim_dead(settings.DEAD_JOB_RETENTION_SECONDS)
    except RedisError as e:
        logger.exception(f"[QUEUE] Maintenance run failed: {e}")


def init_scheduler(queue: ImportQueue) -> BackgroundScheduler:
    """Initialize and configure the scheduler."""
    global scheduler

    scheduler = BackgroundScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,  # Combine missed runs
            "max_instances": 1,  # Only one instance of each job at a time
            "misfire_grace_time": settings.MAINTENANCE_INTERVAL_SECONDS,
        }
    )

    scheduler.add_job(
        queue_maintenance_job,
        trigger=IntervalTrigger(seconds=settings.MAINTENANCE_INTERVAL_SECONDS),
        args=[queue],
        id="import_queue_maintenance",
        name="Import queue maintenance",
        replace_existing=True,
    )

    logger.info(
        f"Scheduler initialized with queue maintenance every {settings.MAINTENANCE_INTERVAL_SECONDS}s"
    )
    return scheduler


def start_scheduler(queue: ImportQueue):
    """Start the scheduler."""
    global scheduler
    if scheduler is None:
        scheduler = init_scheduler(queue)

    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")


def stop_scheduler():
    """Stop the scheduler gracefully."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")
    scheduler = None
