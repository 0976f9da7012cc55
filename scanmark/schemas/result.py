"""Test result schemas."""

from scanmark.schemas.common import BaseSchema


class TestResultResponse(BaseSchema):
    """One stored result with its student."""

    __test__ = False

    student_number: str
    student_name: str | None = None
    test_id: str
    marks_available: int
    marks_obtained: int
    percentage: float
    scanned_on: str | None = None


class TestStudentsResponse(BaseSchema):
    """Results for one test, highest marks first."""

    __test__ = False

    test_id: str
    students: list[TestResultResponse]
    count: int
