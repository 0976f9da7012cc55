"""Test aggregate and leaderboard endpoints."""

from fastapi import APIRouter

from scanmark.core.database import DbSession
from scanmark.core.exceptions import NotFoundError
from scanmark.schemas.aggregate import AggregateListResponse, AggregateResponse
from scanmark.schemas.common import ErrorResponse
from scanmark.schemas.result import TestResultResponse, TestStudentsResponse
from scanmark.services.aggregate import AggregateService
from scanmark.services.test_result import TestResultService

router = APIRouter()


@router.get(
    "/results/{test_id}/aggregate",
    response_model=AggregateResponse,
    responses={404: {"model": ErrorResponse}},
)
def get_aggregate(test_id: str, db: DbSession):
    """Precomputed statistics for one test."""
    aggregate = AggregateService(db).get(test_id)
    if aggregate is None:
        raise NotFoundError("Test", test_id)
    return AggregateResponse.from_model(aggregate)


@router.get("/tests", response_model=AggregateListResponse)
def list_tests(db: DbSession):
    """All tests with their statistics, most recently updated first."""
    tests = [AggregateResponse.from_model(a) for a in AggregateService(db).list_all()]
    return AggregateListResponse(tests=tests, count=len(tests))


@router.get(
    "/tests/{test_id}/students",
    response_model=TestStudentsResponse,
    responses={404: {"model": ErrorResponse}},
)
def list_test_students(test_id: str, db: DbSession):
    """Students who sat a test, ranked by marks obtained."""
    results = TestResultService(db).list_for_test(test_id)
    if not results:
        raise NotFoundError("Test", test_id)
    students = [TestResultResponse.model_validate(r) for r in results]
    return TestStudentsResponse(test_id=test_id, students=students, count=len(students))
