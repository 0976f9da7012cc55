"""Format tag to parser lookup."""

from scanmark.core.exceptions import UnsupportedFormatError
from scanmark.parsers.base import DocumentParser
from scanmark.parsers.tabular import CsvResultParser, ExcelResultParser
from scanmark.parsers.xml_parser import XmlResultParser


def normalize_format(format_tag: str | None) -> str:
    """Drop content-type parameters such as ``; charset=utf-8``."""
    if not format_tag:
        return ""
    return format_tag.split(";", 1)[0].strip().lower()


class ParserRegistry:
    """Registered document parsers keyed by format tag."""

    def __init__(self):
        self._parsers: dict[str, DocumentParser] = {}

    def register(self, parser: DocumentParser) -> "ParserRegistry":
        self._parsers[normalize_format(parser.format_tag)] = parser
        return self

    def for_format(self, format_tag: str | None) -> DocumentParser:
        parser = self._parsers.get(normalize_format(format_tag))
        if parser is None:
            raise UnsupportedFormatError(format_tag)
        return parser

    def supports(self, format_tag: str | None) -> bool:
        return normalize_format(format_tag) in self._parsers

    @property
    def formats(self) -> list[str]:
        return sorted(self._parsers)

    @classmethod
    def default(cls) -> "ParserRegistry":
        return (
            cls()
            .register(XmlResultParser())
            .register(CsvResultParser())
            .register(ExcelResultParser())
        )


default_registry = ParserRegistry.default()


def get_parser(format_tag: str | None) -> DocumentParser:
    """Parser for ``format_tag`` from the default registry."""
    return default_registry.for_format(format_tag)
