"""Redis-backed import job queue.

Layout under the ``IMPORT_QUEUE_NAME`` prefix:

- ``<prefix>:pending``     list of job ids waiting for a worker
- ``<prefix>:processing``  list of job ids claimed by a worker
- ``<prefix>:heartbeats``  sorted set, job id -> last heartbeat (unix time)
- ``<prefix>:retry``       sorted set, job id -> time the retry becomes due
- ``<prefix>:dead``        sorted set, job id -> time the job was dead-lettered
- ``<prefix>:job:<id>``    JSON payload (document, format, attempt counters)
- ``<prefix>:status:<id>`` status hash, expires after JOB_STATUS_TTL_SECONDS

There is no permanent job table. A job's state is read from where its id
currently sits; an id found nowhere is reported as completed.
"""

import base64
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import redis

from scanmark.core.config import settings

logger = logging.getLogger(__name__)

INTERRUPTED_ERROR = "Job interrupted"


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DEAD = "dead"
    INTERRUPTED = "interrupted"


@dataclass
class ImportJob:
    """One submitted document as held by the queue."""

    id: str
    content: bytes
    format_tag: str
    attempt: int = 0
    max_attempts: int = 4
    enqueued_at: float = 0.0
    last_error: str | None = None

    def to_payload(self) -> str:
        return json.dumps({
            "id": self.id,
            "content": base64.b64encode(self.content).decode("ascii"),
            "format_tag": self.format_tag,
            "attempt": self.attempt,
            "max_attempts": self.max_attempts,
            "enqueued_at": self.enqueued_at,
            "last_error": self.last_error,
        })

    @classmethod
    def from_payload(cls, raw: str) -> "ImportJob":
        data = json.loads(raw)
        return cls(
            id=data["id"],
            content=base64.b64decode(data["content"]),
            format_tag=data["format_tag"],
            attempt=int(data.get("attempt", 0)),
            max_attempts=int(data.get("max_attempts", settings.IMPORT_MAX_ATTEMPTS)),
            enqueued_at=float(data.get("enqueued_at", 0.0)),
            last_error=data.get("last_error"),
        )


@dataclass
class JobState:
    """What a caller polling a job is told."""

    job_id: str
    status: JobStatus
    error: str | None = None
    test_ids: list[str] | None = field(default=None)


class ImportQueue:
    """Bounded-retry job queue with a per-job status side channel."""

    def __init__(
        self,
        client: redis.Redis,
        name: str | None = None,
        max_attempts: int | None = None,
        retry_base_seconds: int | None = None,
        status_ttl: int | None = None,
    ):
        self.r = client
        self.name = name or settings.IMPORT_QUEUE_NAME
        self.max_attempts = max_attempts or settings.IMPORT_MAX_ATTEMPTS
        self.retry_base_seconds = (
            settings.IMPORT_RETRY_BASE_SECONDS if retry_base_seconds is None else retry_base_seconds
        )
        self.status_ttl = status_ttl or settings.JOB_STATUS_TTL_SECONDS

        self.pending = f"{self.name}:pending"
        self.processing = f"{self.name}:processing"
        self.heartbeats = f"{self.name}:heartbeats"
        self.retry = f"{self.name}:retry"
        self.dead = f"{self.name}:dead"

    def _job_key(self, job_id: str) -> str:
        return f"{self.name}:job:{job_id}"

    def _status_key(self, job_id: str) -> str:
        return f"{self.name}:status:{job_id}"

    def _record_status(self, job_id: str, status: JobStatus, pipe=None, **fields: Any) -> None:
        """Write the status hash, inside ``pipe`` when given so it lands with the move."""
        key = self._status_key(job_id)
        mapping = {"status": status.value, "updated_at": time.time()}
        mapping.update({k: v for k, v in fields.items() if v is not None})
        own_pipe = pipe is None
        if own_pipe:
            pipe = self.r.pipeline()
        pipe.hset(key, mapping=mapping)
        pipe.expire(key, self.status_ttl)
        if own_pipe:
            pipe.execute()

    def _load(self, job_id: str) -> ImportJob | None:
        raw = self.r.get(self._job_key(job_id))
        return ImportJob.from_payload(raw) if raw else None

    def _release(self, pipe, job_id: str) -> None:
        pipe.lrem(self.processing, 1, job_id)
        pipe.zrem(self.heartbeats, job_id)

    # Producer side

    def enqueue(self, content: bytes, format_tag: str) -> str:
        job = ImportJob(
            id=uuid.uuid4().hex,
            content=content,
            format_tag=format_tag,
            max_attempts=self.max_attempts,
            enqueued_at=time.time(),
        )
        pipe = self.r.pipeline()
        pipe.set(self._job_key(job.id), job.to_payload())
        pipe.lpush(self.pending, job.id)
        self._record_status(job.id, JobStatus.QUEUED, pipe=pipe)
        pipe.execute()
        logger.info(f"[QUEUE] Enqueued job {job.id} ({format_tag}, {len(content)} bytes)")
        return job.id

    # Consumer side

    def claim(self, timeout: float | None = None) -> ImportJob | None:
        """Move one job from pending to processing.

        ``timeout=None`` polls once without blocking; otherwise blocks up to
        ``timeout`` seconds.
        """
        if timeout is None:
            job_id = self.r.rpoplpush(self.pending, self.processing)
        else:
            job_id = self.r.brpoplpush(self.pending, self.processing, max(1, round(timeout)))
        if job_id is None:
            return None

        now = time.time()
        self.r.zadd(self.heartbeats, {job_id: now})
        job = self._load(job_id)
        if job is None:
            logger.warning(f"[QUEUE] Job {job_id} has no payload, dropping it")
            pipe = self.r.pipeline()
            self._release(pipe, job_id)
            pipe.execute()
            return None

        self._record_status(job_id, JobStatus.PROCESSING, started_at=now, attempt=job.attempt + 1)
        logger.info(f"[QUEUE] Claimed job {job_id} (attempt {job.attempt + 1}/{job.max_attempts})")
        return job

    def heartbeat(self, job: ImportJob) -> None:
        self.r.zadd(self.heartbeats, {job.id: time.time()}, xx=True)

    def complete(self, job: ImportJob, test_ids: list[str]) -> None:
        pipe = self.r.pipeline()
        self._release(pipe, job.id)
        pipe.delete(self._job_key(job.id))
        self._record_status(
            job.id,
            JobStatus.COMPLETED,
            pipe=pipe,
            test_ids=json.dumps(test_ids),
            finished_at=time.time(),
        )
        pipe.execute()
        logger.info(f"[QUEUE] Job {job.id} completed, tests {test_ids}")

    def fail(self, job: ImportJob, error: str) -> None:
        """Terminal failure: no retry."""
        pipe = self.r.pipeline()
        self._release(pipe, job.id)
        pipe.delete(self._job_key(job.id))
        self._record_status(job.id, JobStatus.FAILED, pipe=pipe, error=error, finished_at=time.time())
        pipe.execute()
        logger.warning(f"[QUEUE] Job {job.id} failed: {error}")

    def retry_or_dead(self, job: ImportJob, error: str, now: float | None = None) -> JobStatus:
        """Schedule another attempt with exponential backoff, or dead-letter the job.

        Returns FAILED when a retry was scheduled and DEAD otherwise.
        """
        now = time.time() if now is None else now
        job.attempt += 1
        job.last_error = error

        pipe = self.r.pipeline()
        self._release(pipe, job.id)
        pipe.set(self._job_key(job.id), job.to_payload())
        if job.attempt >= job.max_attempts:
            pipe.zadd(self.dead, {job.id: now})
            self._record_status(job.id, JobStatus.DEAD, pipe=pipe, error=error, finished_at=now)
            pipe.execute()
            logger.error(f"[QUEUE] Job {job.id} dead after {job.attempt} attempts: {error}")
            return JobStatus.DEAD

        delay = self.retry_base_seconds * 2 ** (job.attempt - 1)
        pipe.zadd(self.retry, {job.id: now + delay})
        self._record_status(job.id, JobStatus.FAILED, pipe=pipe, error=error, retry_at=now + delay)
        pipe.execute()
        logger.warning(
            f"[QUEUE] Job {job.id} attempt {job.attempt}/{job.max_attempts} failed, "
            f"retrying in {delay}s: {error}"
        )
        return JobStatus.FAILED

    # Predicates

    def is_queued(self, job_id: str) -> bool:
        return self.r.lpos(self.pending, job_id) is not None

    def is_processing(self, job_id: str) -> bool:
        return self.r.lpos(self.processing, job_id) is not None

    def is_scheduled_retry(self, job_id: str) -> bool:
        return self.r.zscore(self.retry, job_id) is not None

    def is_dead(self, job_id: str) -> bool:
        return self.r.zscore(self.dead, job_id) is not None

    def status(self, job_id: str) -> JobState:
        """Resolve a job's state from the four sets, then the status side channel.

        A job found nowhere (never submitted, or finished and expired) is
        reported as completed.
        """
        if self.is_queued(job_id):
            return JobState(job_id, JobStatus.QUEUED)
        if self.is_processing(job_id):
            return JobState(job_id, JobStatus.PROCESSING)
        if self.is_scheduled_retry(job_id):
            job = self._load(job_id)
            return JobState(job_id, JobStatus.FAILED, error=job.last_error if job else None)
        if self.is_dead(job_id):
            job = self._load(job_id)
            return JobState(job_id, JobStatus.DEAD, error=job.last_error if job else None)

        record = self.r.hgetall(self._status_key(job_id))
        recorded = record.get("status")
        if recorded == JobStatus.FAILED.value:
            return JobState(job_id, JobStatus.FAILED, error=record.get("error"))
        if recorded == JobStatus.INTERRUPTED.value:
            return JobState(job_id, JobStatus.FAILED, error=INTERRUPTED_ERROR)
        if recorded == JobStatus.COMPLETED.value:
            test_ids = json.loads(record.get("test_ids") or "[]")
            return JobState(job_id, JobStatus.COMPLETED, test_ids=test_ids)
        return JobState(job_id, JobStatus.COMPLETED)

    # Maintenance

    def promote_due_retries(self, now: float | None = None) -> int:
        """Move retries whose backoff has elapsed back onto the pending list."""
        now = time.time() if now is None else now
        promoted = 0
        for job_id in self.r.zrangebyscore(self.retry, "-inf", now):
            # zrem decides ownership when several maintainers race
            if self.r.zrem(self.retry, job_id):
                pipe = self.r.pipeline()
                pipe.lpush(self.pending, job_id)
                self._record_status(job_id, JobStatus.QUEUED, pipe=pipe)
                pipe.execute()
                promoted += 1
        if promoted:
            logger.info(f"[QUEUE] Promoted {promoted} due retries")
        return promoted

    def reap_interrupted(self, visibility_timeout: float | None = None, now: float | None = None) -> int:
        """Treat processing jobs without a recent heartbeat as interrupted."""
        now = time.time() if now is None else now
        timeout = settings.JOB_VISIBILITY_TIMEOUT_SECONDS if visibility_timeout is None else visibility_timeout
        reaped = 0
        for job_id in self.r.lrange(self.processing, 0, -1):
            last_seen = self.r.zscore(self.heartbeats, job_id)
            if last_seen is None:
                # Claimed but never heartbeated: start the clock now
                self.r.zadd(self.heartbeats, {job_id: now}, nx=True)
                continue
            if now - last_seen < timeout:
                continue

            job = self._load(job_id)
            if job is None:
                pipe = self.r.pipeline()
                self._release(pipe, job_id)
                pipe.execute()
                continue
            self._record_status(job_id, JobStatus.INTERRUPTED, error=INTERRUPTED_ERROR)
            logger.warning(f"[QUEUE] Job {job_id} interrupted (no heartbeat for {now - last_seen:.0f}s)")
            self.retry_or_dead(job, INTERRUPTED_ERROR, now=now)
            reaped += 1
        return reaped

    def trim_dead(self, retention: float | None = None, now: float | None = None) -> int:
        """Forget dead jobs older than ``retention`` seconds."""
        now = time.time() if now is None else now
        retention = settings.DEAD_JOB_RETENTION_SECONDS if retention is None else retention
        expired = self.r.zrangebyscore(self.dead, "-inf", now - retention)
        if not expired:
            return 0
        pipe = self.r.pipeline()
        pipe.zrem(self.dead, *expired)
        pipe.delete(*[self._job_key(job_id) for job_id in expired])
        pipe.delete(*[self._status_key(job_id) for job_id in expired])
        pipe.execute()
        logger.info(f"[QUEUE] Trimmed {len(expired)} dead jobs")
        return len(expired)
