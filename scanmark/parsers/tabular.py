"""Parsers for flat tabular documents: CSV and Excel workbooks.

Both share one column layout::

    student_number, [student_name,] test_id, marks_available, marks_obtained, [scanned_on]

Header names are case-insensitive; ``identity_number`` / ``identity_name``
are accepted as aliases.
"""

import csv
import logging
from abc import abstractmethod
from io import BytesIO, StringIO
from typing import Any

from openpyxl import load_workbook

from scanmark.core.exceptions import MalformedDocumentError
from scanmark.parsers.base import DocumentParser, ParsedRecord, clean_text, to_marks

logger = logging.getLogger(__name__)

REQUIRED_HEADERS = ("student_number", "test_id", "marks_available", "marks_obtained")
HEADER_ALIASES = {
    "identity_number": "student_number",
    "identity_name": "student_name",
}


def normalize_header(value: Any) -> str:
    header = str(value).strip().lower() if value is not None else ""
    return HEADER_ALIASES.get(header, header)


class TabularResultParser(DocumentParser):
    """Header row plus one result per data row."""

    @abstractmethod
    def _read_header(self, content: bytes) -> list[str]:
        ...

    @abstractmethod
    def _read_table(self, content: bytes) -> list[list[Any]]:
        """Return every row of the table, header first."""

    def validate(self, content: bytes) -> None:
        self._check_headers(self._read_header(content))

    def parse(self, content: bytes) -> list[ParsedRecord]:
        table = self._read_table(content)
        if not table:
            self._check_headers([])
        headers = [normalize_header(h) for h in table[0]]
        self._check_headers(headers)

        records: list[ParsedRecord] = []
        skipped_empty_rows = 0
        for row_num, values in enumerate(table[1:], start=2):
            row = {
                header: value
                for header, value in zip(headers, values)
                if header
            }
            if not any(clean_text(v) for v in row.values()):
                skipped_empty_rows += 1
                continue
            records.append(self._build_record(row, row_num))

        logger.debug(
            f"[{self.format_tag}] {len(records)} data rows extracted, {skipped_empty_rows} empty rows skipped"
        )
        return records

    def _check_headers(self, headers: list[str]) -> None:
        missing = [h for h in REQUIRED_HEADERS if h not in headers]
        if missing:
            raise MalformedDocumentError(
                f"Missing required headers: {', '.join(missing)}",
                details={"missing": missing},
            )

    def _build_record(self, row: dict[str, Any], row_num: int) -> ParsedRecord:
        for header in REQUIRED_HEADERS:
            if clean_text(row.get(header)) is None:
                raise MalformedDocumentError(
                    f"Missing {header} in row {row_num}",
                    details={"column": header, "row": row_num},
                )

        location = f"in row {row_num}"
        return ParsedRecord(
            student_number=clean_text(row["student_number"]),
            test_id=clean_text(row["test_id"]),
            marks_available=to_marks(row["marks_available"], "marks_available", location),
            marks_obtained=to_marks(row["marks_obtained"], "marks_obtained", location),
            student_name=clean_text(row.get("student_name")),
            scanned_on=clean_text(row.get("scanned_on")),
        )


class CsvResultParser(TabularResultParser):
    """Comma-separated export, UTF-8 (a BOM is tolerated)."""

    format_tag = "text/csv+markr"

    def _decode(self, content: bytes) -> str:
        try:
            return content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise MalformedDocumentError(f"Invalid CSV: not UTF-8 encoded ({e.reason})") from e

    def _read_header(self, content: bytes) -> list[str]:
        # Syntax check covers the whole document, headers are all we keep
        table = self._read_table(content)
        return [normalize_header(h) for h in table[0]] if table else []

    def _read_table(self, content: bytes) -> list[list[Any]]:
        try:
            return [row for row in csv.reader(StringIO(self._decode(content), newline=""), strict=True)]
        except csv.Error as e:
            raise MalformedDocumentError(f"Invalid CSV: {e}") from e


class ExcelResultParser(TabularResultParser):
    """First (active) sheet of an .xlsx workbook."""

    format_tag = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    def _open_sheet(self, content: bytes):
        try:
            workbook = load_workbook(filename=BytesIO(content), read_only=True, data_only=True)
        except Exception as e:
            raise MalformedDocumentError(f"Failed to parse Excel file: {e}") from e

        sheet = workbook.active
        if sheet is None:
            raise MalformedDocumentError("Excel file has no active sheet")
        return workbook, sheet

    def _read_header(self, content: bytes) -> list[str]:
        workbook, sheet = self._open_sheet(content)
        try:
            first = next(sheet.iter_rows(max_row=1, values_only=True), None)
            return [normalize_header(h) for h in first] if first else []
        finally:
            workbook.close()

    def _read_table(self, content: bytes) -> list[list[Any]]:
        workbook, sheet = self._open_sheet(content)
        try:
            rows = [list(row) for row in sheet.iter_rows(values_only=True)]
        finally:
            workbook.close()
        logger.debug(f"[EXCEL PARSE] Total raw rows in Excel (including header): {len(rows)}")
        return rows
