"""Tests for the Redis import queue state machine."""

import time

from scanmark.core.queue import INTERRUPTED_ERROR, ImportJob, JobStatus


class TestImportJob:

    def test_payload_keeps_binary_content(self):
        job = ImportJob(id="abc", content=b"\x00\xffdata", format_tag="text/csv+markr", attempt=2)
        restored = ImportJob.from_payload(job.to_payload())
        assert restored == job


class TestEnqueueAndClaim:

    def test_enqueued_job_is_queued(self, queue):
        job_id = queue.enqueue(b"<doc/>", "text/xml+markr")

        assert queue.is_queued(job_id)
        assert queue.status(job_id).status == JobStatus.QUEUED

    def test_claim_moves_job_to_processing(self, queue):
        job_id = queue.enqueue(b"<doc/>", "text/xml+markr")

        job = queue.claim()

        assert job.id == job_id
        assert job.content == b"<doc/>"
        assert job.format_tag == "text/xml+markr"
        assert not queue.is_queued(job_id)
        assert queue.is_processing(job_id)
        assert queue.status(job_id).status == JobStatus.PROCESSING

    def test_claim_is_fifo(self, queue):
        first = queue.enqueue(b"1", "text/csv+markr")
        second = queue.enqueue(b"2", "text/csv+markr")
        assert queue.claim().id == first
        assert queue.claim().id == second

    def test_claim_empty_queue(self, queue):
        assert queue.claim() is None

    def test_claim_with_timeout(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        assert queue.claim(timeout=1).id == job_id


class TestOutcomes:

    def test_complete_reports_test_ids(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        queue.complete(queue.claim(), ["1234", "9863"])

        state = queue.status(job_id)
        assert state.status == JobStatus.COMPLETED
        assert state.test_ids == ["1234", "9863"]
        assert state.error is None
        assert not queue.is_processing(job_id)

    def test_complete_with_no_tests(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        queue.complete(queue.claim(), [])
        assert queue.status(job_id).test_ids == []

    def test_fail_is_terminal(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        queue.fail(queue.claim(), "Missing test-id in result 2")

        state = queue.status(job_id)
        assert state.status == JobStatus.FAILED
        assert state.error == "Missing test-id in result 2"
        assert state.test_ids is None
        assert not queue.is_scheduled_retry(job_id)
        assert queue.claim() is None

    def test_status_expires(self, queue, redis_client):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        assert 0 < redis_client.ttl(f"test-imports:status:{job_id}") <= 3600


class TestRetries:

    def test_retry_scheduled_with_backoff(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        now = 1_000_000.0

        status = queue.retry_or_dead(queue.claim(), "Database error", now=now)

        assert status == JobStatus.FAILED
        assert queue.is_scheduled_retry(job_id)
        assert queue.r.zscore(queue.retry, job_id) == now + 10
        state = queue.status(job_id)
        assert state.status == JobStatus.FAILED
        assert state.error == "Database error"

    def test_backoff_doubles(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        queue.retry_or_dead(queue.claim(), "boom", now=0)
        queue.promote_due_retries(now=100)
        queue.retry_or_dead(queue.claim(), "boom", now=0)
        assert queue.r.zscore(queue.retry, job_id) == 20

    def test_retry_not_promoted_before_due(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        queue.retry_or_dead(queue.claim(), "boom", now=100)

        assert queue.promote_due_retries(now=105) == 0
        assert queue.promote_due_retries(now=110) == 1
        assert queue.is_queued(job_id)
        assert queue.claim().attempt == 1

    def test_dead_after_max_attempts(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        for _ in range(2):
            assert queue.retry_or_dead(queue.claim(), "boom", now=0) == JobStatus.FAILED
            queue.promote_due_retries(now=10_000)

        assert queue.retry_or_dead(queue.claim(), "still broken", now=0) == JobStatus.DEAD
        assert queue.is_dead(job_id)
        assert not queue.is_scheduled_retry(job_id)
        state = queue.status(job_id)
        assert state.status == JobStatus.DEAD
        assert state.error == "still broken"

    def test_trim_dead(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        job = queue.claim()
        job.attempt = job.max_attempts - 1
        queue.retry_or_dead(job, "boom", now=1000)

        assert queue.trim_dead(retention=500, now=1400) == 0
        assert queue.trim_dead(retention=500, now=1600) == 1
        assert not queue.is_dead(job_id)
        # Forgotten entirely, so reported as completed
        assert queue.status(job_id).status == JobStatus.COMPLETED


class TestInterrupted:

    def test_stale_processing_job_is_reaped(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        queue.claim()
        queue.r.zadd(queue.heartbeats, {job_id: 1000})

        assert queue.reap_interrupted(visibility_timeout=300, now=1200) == 0
        assert queue.reap_interrupted(visibility_timeout=300, now=1400) == 1

        assert not queue.is_processing(job_id)
        assert queue.is_scheduled_retry(job_id)
        state = queue.status(job_id)
        assert state.status == JobStatus.FAILED
        assert state.error == INTERRUPTED_ERROR

    def test_heartbeat_keeps_job_alive(self, queue):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        job = queue.claim()
        queue.heartbeat(job)

        assert queue.reap_interrupted(visibility_timeout=300, now=time.time() + 10) == 0
        assert queue.is_processing(job_id)

    def test_interrupted_record_reported_as_failed(self, queue, redis_client):
        redis_client.hset("test-imports:status:gone", mapping={"status": "interrupted"})
        state = queue.status("gone")
        assert state.status == JobStatus.FAILED
        assert state.error == INTERRUPTED_ERROR


def poll_after_each_write(queue, monkeypatch, job_id):
    """Record the job's reported status right after every queue pipeline executes."""
    seen = []
    make_pipeline = queue.r.pipeline

    def pipeline(*args, **kwargs):
        pipe = make_pipeline(*args, **kwargs)
        execute = pipe.execute

        def execute_then_poll(*a, **kw):
            result = execute(*a, **kw)
            seen.append(queue.status(job_id).status)
            return result

        pipe.execute = execute_then_poll
        return pipe

    monkeypatch.setattr(queue.r, "pipeline", pipeline)
    return seen


class TestStatusDuringTransitions:

    def test_failing_job_never_reported_completed(self, queue, monkeypatch):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        job = queue.claim()
        seen = poll_after_each_write(queue, monkeypatch, job_id)

        queue.fail(job, "Missing test-id in result 2")

        assert seen == [JobStatus.FAILED]

    def test_completing_job_reports_its_tests(self, queue, monkeypatch):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        job = queue.claim()
        seen = poll_after_each_write(queue, monkeypatch, job_id)

        queue.complete(job, ["9863"])

        assert seen == [JobStatus.COMPLETED]
        assert queue.status(job_id).test_ids == ["9863"]

    def test_dead_lettered_job_never_reported_completed(self, queue, monkeypatch):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        job = queue.claim()
        job.attempt = job.max_attempts - 1
        seen = poll_after_each_write(queue, monkeypatch, job_id)

        queue.retry_or_dead(job, "Database error", now=0)

        assert seen == [JobStatus.DEAD]

    def test_promoted_retry_is_queued(self, queue, monkeypatch):
        job_id = queue.enqueue(b"1", "text/csv+markr")
        queue.retry_or_dead(queue.claim(), "boom", now=0)
        seen = poll_after_each_write(queue, monkeypatch, job_id)

        queue.promote_due_retries(now=100)

        assert seen == [JobStatus.QUEUED]


class TestUnknownJobs:

    def test_unknown_job_reported_completed(self, queue):
        state = queue.status("never-submitted")
        assert state.status == JobStatus.COMPLETED
        assert state.test_ids is None
        assert state.error is None
