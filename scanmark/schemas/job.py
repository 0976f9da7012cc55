"""Import job schemas."""

from scanmark.core.queue import JobStatus
from scanmark.schemas.common import BaseSchema


class ImportAccepted(BaseSchema):
    """Returned when a document was queued."""

    job_id: str
    status: JobStatus = JobStatus.QUEUED


class JobStatusResponse(BaseSchema):
    """Polled job state. ``test_ids`` is only present on success."""

    job_id: str
    status: JobStatus
    error: str | None = None
    test_ids: list[str] | None = None
