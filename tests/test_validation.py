"""Tests for record validation."""

import pytest

from scanmark.core.exceptions import InvalidRecordError
from scanmark.parsers import ParsedRecord
from scanmark.services.validation import MAX_FIELD_LENGTH, RecordValidator


def record(**overrides):
    values = dict(student_number="002299", test_id="9863", marks_available=20, marks_obtained=13)
    values.update(overrides)
    return ParsedRecord(**values)


class TestRecordValidator:

    def test_valid_record(self):
        assert RecordValidator().is_valid(record())

    def test_zero_marks_obtained_is_valid(self):
        assert RecordValidator().is_valid(record(marks_obtained=0))

    def test_obtained_above_available_is_not_rejected(self):
        assert RecordValidator().is_valid(record(marks_obtained=25))

    @pytest.mark.parametrize("overrides", [
        {"student_number": ""},
        {"student_number": None},
        {"test_id": ""},
        {"marks_available": 0},
        {"marks_available": -1},
        {"marks_available": None},
        {"marks_obtained": -1},
        {"marks_obtained": None},
    ])
    def test_invalid_records(self, overrides):
        assert not RecordValidator().is_valid(record(**overrides))

    @pytest.mark.parametrize("field", ["student_number", "student_name", "test_id", "scanned_on"])
    def test_text_fields_up_to_column_width_are_valid(self, field):
        assert RecordValidator().is_valid(record(**{field: "x" * MAX_FIELD_LENGTH}))

    @pytest.mark.parametrize("field", ["student_number", "student_name", "test_id", "scanned_on"])
    def test_text_fields_wider_than_column_are_invalid(self, field):
        problems = RecordValidator().errors(record(**{field: "x" * (MAX_FIELD_LENGTH + 1)}))
        assert problems == [f"{field} is longer than 255 characters"]

    def test_ensure_valid_rejects_whole_batch(self):
        batch = [record(), record(student_number="002300", marks_available=0)]
        with pytest.raises(InvalidRecordError) as exc_info:
            RecordValidator().ensure_valid(batch)

        error = exc_info.value
        assert error.status_code == 422
        assert error.details["record"] == 2
        assert error.details["errors"] == ["marks_available must be greater than 0"]
        assert not error.retryable

    def test_ensure_valid_accepts_empty_batch(self):
        RecordValidator().ensure_valid([])
