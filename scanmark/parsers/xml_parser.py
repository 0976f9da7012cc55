"""Parser for the hierarchical ``text/xml+markr`` scan export."""

import logging
import xml.sax
import xml.sax.handler
from xml.etree import ElementTree

from scanmark.core.exceptions import MalformedDocumentError
from scanmark.parsers.base import DocumentParser, ParsedRecord, clean_text, to_marks

logger = logging.getLogger(__name__)

ROOT_ELEMENT = "mcq-test-results"
RESULT_ELEMENT = "mcq-test-result"
REQUIRED_ELEMENTS = ("student-number", "test-id", "summary-marks")


class _StrictHandler(xml.sax.handler.ContentHandler):
    """Checks the root element; every syntax error surfaces as SAXParseException."""

    def __init__(self):
        super().__init__()
        self.root: str | None = None

    def startElement(self, name, attrs):
        if self.root is None:
            self.root = name
            if name != ROOT_ELEMENT:
                raise MalformedDocumentError(
                    f"Invalid XML: expected root <{ROOT_ELEMENT}>, got <{name}>",
                    details={"root": name},
                )


class XmlResultParser(DocumentParser):
    """Reads ``<mcq-test-result>`` elements."""

    format_tag = "text/xml+markr"

    def validate(self, content: bytes) -> None:
        handler = _StrictHandler()
        parser = xml.sax.make_parser()
        parser.setFeature(xml.sax.handler.feature_external_ges, False)
        parser.setFeature(xml.sax.handler.feature_external_pes, False)
        parser.setContentHandler(handler)
        try:
            parser.feed(content)
            parser.close()
        except xml.sax.SAXParseException as e:
            raise MalformedDocumentError(f"Invalid XML: {e.getMessage()}") from e
        if handler.root is None:
            raise MalformedDocumentError("Invalid XML: document has no root element")

    def parse(self, content: bytes) -> list[ParsedRecord]:
        try:
            root = ElementTree.fromstring(content)
        except ElementTree.ParseError as e:
            raise MalformedDocumentError(f"Invalid XML: {e}") from e

        if root.tag != ROOT_ELEMENT:
            raise MalformedDocumentError(
                f"Invalid XML: expected root <{ROOT_ELEMENT}>, got <{root.tag}>",
                details={"root": root.tag},
            )

        records = [
            self._build_record(node, position)
            for position, node in enumerate(root.iter(RESULT_ELEMENT), start=1)
        ]
        logger.debug(f"[XML PARSE] Extracted {len(records)} results")
        return records

    def _build_record(self, node: ElementTree.Element, position: int) -> ParsedRecord:
        for element in REQUIRED_ELEMENTS:
            if node.find(element) is None:
                raise MalformedDocumentError(
                    f"Missing {element} in result {position}",
                    details={"field": element, "record": position},
                )

        location = f"in result {position}"
        marks = node.find("summary-marks")
        return ParsedRecord(
            student_number=clean_text(node.findtext("student-number")),
            test_id=clean_text(node.findtext("test-id")),
            marks_available=to_marks(marks.get("available"), "marks_available", location),
            marks_obtained=to_marks(marks.get("obtained"), "marks_obtained", location),
            student_name=self._student_name(node),
            scanned_on=clean_text(node.get("scanned-on")),
        )

    def _student_name(self, node: ElementTree.Element) -> str | None:
        name = clean_text(node.findtext("student-name"))
        if name:
            return name

        parts = [clean_text(node.findtext("first-name")), clean_text(node.findtext("last-name"))]
        full_name = " ".join(part for part in parts if part)
        return full_name or None
