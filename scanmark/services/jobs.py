"""Document submission and job status."""

import logging

from scanmark.core.config import settings
from scanmark.core.exceptions import MalformedDocumentError
from scanmark.core.queue import ImportQueue, JobState, JobStatus
from scanmark.parsers import ParserRegistry, default_registry

logger = logging.getLogger(__name__)


class ImportJobService:
    """Front door of the pipeline.

    Rejects unsupported formats and structurally broken documents before a
    job exists; everything after that is reported through job status only.
    """

    def __init__(self, queue: ImportQueue, registry: ParserRegistry | None = None):
        self.queue = queue
        self.registry = registry or default_registry

    def submit(self, content: bytes, format_tag: str | None) -> JobState:
        parser = self.registry.for_format(format_tag)

        if not content:
            raise MalformedDocumentError("Empty document")
        if len(content) > settings.max_document_bytes:
            raise MalformedDocumentError(
                f"Document too large. Maximum size: {settings.MAX_DOCUMENT_SIZE_MB}MB",
                details={"size": len(content)},
            )

        parser.validate(content)
        job_id = self.queue.enqueue(content, parser.format_tag)
        logger.info(f"[IMPORT] Accepted document as job {job_id}")
        return JobState(job_id, JobStatus.QUEUED)

    def status(self, job_id: str) -> JobState:
        return self.queue.status(job_id)
