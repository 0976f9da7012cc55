"""Student schemas."""

from datetime import datetime

from scanmark.schemas.common import BaseSchema
from scanmark.schemas.result import TestResultResponse


class StudentResponse(BaseSchema):
    """Student response schema."""

    student_number: str
    name: str | None = None
    created_at: datetime
    updated_at: datetime


class StudentListResponse(BaseSchema):
    students: list[StudentResponse]
    count: int


class StudentResultsResponse(BaseSchema):
    """Every result recorded for one student."""

    student_number: str
    results: list[TestResultResponse]
    count: int
