"""Student lookup endpoints."""

from fastapi import APIRouter

from scanmark.core.database import DbSession
from scanmark.core.exceptions import NotFoundError
from scanmark.schemas.common import ErrorResponse
from scanmark.schemas.result import TestResultResponse
from scanmark.schemas.student import (
    StudentListResponse,
    StudentResponse,
    StudentResultsResponse,
)
from scanmark.services.student import StudentService
from scanmark.services.test_result import TestResultService

router = APIRouter()


@router.get("", response_model=StudentListResponse)
def list_students(db: DbSession):
    """List students ordered by student number."""
    students = [StudentResponse.model_validate(s) for s in StudentService(db).list_all()]
    return StudentListResponse(students=students, count=len(students))


@router.get(
    "/{student_number}",
    response_model=StudentResultsResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_student_results(student_number: str, db: DbSession):
    results = TestResultService(db).find_by_student(student_number)
    if not results:
        raise NotFoundError("Student", student_number)
    return StudentResultsResponse(
        student_number=student_number,
        results=[TestResultResponse.model_validate(r) for r in results],
        count=len(results),
    )


@router.get(
    "/{student_number}/tests/{test_id}",
    response_model=TestResultResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_student_test_result(student_number: str, test_id: str, db: DbSession):
    result = TestResultService(db).find_by_student_and_test(student_number, test_id)
    if result is None:
        raise NotFoundError("Result", f"{student_number}/{test_id}")
    return TestResultResponse.model_validate(result)
