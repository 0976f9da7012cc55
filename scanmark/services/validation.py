"""Business-rule validation for parsed result records."""

import logging
from collections.abc import Sequence

from scanmark.core.exceptions import InvalidRecordError
from scanmark.parsers.base import ParsedRecord

logger = logging.getLogger(__name__)

# Width of the identifier and text columns
MAX_FIELD_LENGTH = 255

TEXT_FIELDS = ("student_number", "student_name", "test_id", "scanned_on")


class RecordValidator:
    """Required fields present, text fields fit their columns and marks within domain.

    A document is accepted all-or-nothing: one invalid record rejects the batch.
    """

    def errors(self, record: ParsedRecord) -> list[str]:
        problems = []
        if not record.student_number:
            problems.append("student_number is required")
        if not record.test_id:
            problems.append("test_id is required")
        for name in TEXT_FIELDS:
            value = getattr(record, name)
            if value and len(value) > MAX_FIELD_LENGTH:
                problems.append(f"{name} is longer than {MAX_FIELD_LENGTH} characters")
        if record.marks_available is None or record.marks_available <= 0:
            problems.append("marks_available must be greater than 0")
        if record.marks_obtained is None or record.marks_obtained < 0:
            problems.append("marks_obtained cannot be negative")
        return problems

    def is_valid(self, record: ParsedRecord) -> bool:
        return not self.errors(record)

    def ensure_valid(self, records: Sequence[ParsedRecord]) -> None:
        """Raise InvalidRecordError on the first invalid record."""
        for position, record in enumerate(records, start=1):
            problems = self.errors(record)
            if problems:
                logger.warning(f"[VALIDATE] Record {position} rejected: {'; '.join(problems)}")
                raise InvalidRecordError(
                    f"Invalid test result at record {position}: {'; '.join(problems)}",
                    details={
                        "record": position,
                        "student_number": record.student_number,
                        "test_id": record.test_id,
                        "errors": problems,
                    },
                )
