"""Document import endpoint."""

from fastapi import APIRouter, Request, status

from scanmark.core.dependencies import QueueDep
from scanmark.schemas.common import ErrorResponse
from scanmark.schemas.job import ImportAccepted
from scanmark.services.jobs import ImportJobService

router = APIRouter()


@router.post(
    "/import",
    response_model=ImportAccepted,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"model": ErrorResponse, "description": "Malformed document"},
        415: {"model": ErrorResponse, "description": "Unsupported content type"},
    },
)
async def import_document(request: Request, queue: QueueDep):
    """Queue a scanned results document.

    The raw request body is the document; ``Content-Type`` selects the parser
    (``text/xml+markr``, ``text/csv+markr`` or an .xlsx workbook). Only a
    syntax check happens here, the import itself runs in a worker.
    """
    content = await request.body()
    state = ImportJobService(queue).submit(content, request.headers.get("content-type"))
    return ImportAccepted(job_id=state.job_id, status=state.status)
