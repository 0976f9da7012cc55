"""Import job status endpoint."""

from fastapi import APIRouter

from scanmark.core.dependencies import QueueDep
from scanmark.schemas.job import JobStatusResponse
from scanmark.services.jobs import ImportJobService

router = APIRouter()


@router.get("/{job_id}", response_model=JobStatusResponse, response_model_exclude_none=True)
def get_job_status(job_id: str, queue: QueueDep):
    """Poll an import job.

    A job id that is not known anywhere is reported as completed.
    """
    state = ImportJobService(queue).status(job_id)
    return JobStatusResponse(
        job_id=state.job_id,
        status=state.status,
        error=state.error,
        test_ids=state.test_ids,
    )
