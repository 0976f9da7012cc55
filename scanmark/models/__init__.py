"""Database models package."""

from scanmark.models.aggregate import TestAggregate
from scanmark.models.student import Student
from scanmark.models.test_result import TestResult

__all__ = [
    "Student",
    "TestResult",
    "TestAggregate",
]
