"""Parser contract and the normalized record it produces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from scanmark.core.exceptions import MalformedDocumentError
from scanmark.core.rounding import round2


@dataclass
class ParsedRecord:
    """One normalized result as read from a document, before business-rule checks."""

    student_number: str | None
    test_id: str | None
    marks_available: int | None
    marks_obtained: int | None
    student_name: str | None = None
    scanned_on: str | None = None

    @property
    def percentage(self) -> float:
        if not self.marks_available or self.marks_obtained is None:
            return 0.0
        return round2(self.marks_obtained / self.marks_available * 100)


class DocumentParser(ABC):
    """A parser for one document format.

    ``validate`` is a cheap syntax-only pass used before a document is queued;
    ``parse`` builds the full record list inside the worker. Both raise
    MalformedDocumentError for structural problems.
    """

    format_tag: str

    @abstractmethod
    def validate(self, content: bytes) -> None:
        ...

    @abstractmethod
    def parse(self, content: bytes) -> list[ParsedRecord]:
        ...


def clean_text(value: Any) -> str | None:
    """Strip a cell/element value; blank becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def to_marks(value: Any, field: str, location: str) -> int | None:
    """Convert a marks value to int. Absent stays None, non-integral is malformed."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise MalformedDocumentError(
            f"Invalid {field} {location}: {value!r}",
            details={"column": field, "value": str(value)},
        )
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        number = Decimal(text)
    except InvalidOperation:
        number = None
    if number is None or not number.is_finite() or number != number.to_integral_value():
        raise MalformedDocumentError(
            f"Invalid {field} {location}: {text!r}",
            details={"column": field, "value": text},
        )
    return int(number)
