"""Main API router aggregating all module routers."""

from fastapi import APIRouter

from scanmark.api.v1.endpoints import imports, jobs, students, tests

api_router = APIRouter()

# Document submission
api_router.include_router(
    imports.router,
    tags=["Imports"],
)

# Job status polling
api_router.include_router(
    jobs.router,
    prefix="/jobs",
    tags=["Jobs"],
)

# Aggregates and per-test results
api_router.include_router(
    tests.router,
    tags=["Tests"],
)

# Students
api_router.include_router(
    students.router,
    prefix="/students",
    tags=["Students"],
)
