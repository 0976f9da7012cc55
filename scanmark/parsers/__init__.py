"""Document parsers: raw scan documents to normalized result records."""

from scanmark.parsers.base import DocumentParser, ParsedRecord
from scanmark.parsers.registry import ParserRegistry, default_registry, get_parser

__all__ = [
    "DocumentParser",
    "ParsedRecord",
    "ParserRegistry",
    "default_registry",
    "get_parser",
]
