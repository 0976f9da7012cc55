"""Import pipeline: parse, validate, merge, recompute."""

import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from scanmark.core.database import store_errors
from scanmark.parsers import ParserRegistry, default_registry
from scanmark.services.aggregate import AggregateService
from scanmark.services.statistics import StatisticsEngine
from scanmark.services.test_result import TestResultService
from scanmark.services.validation import RecordValidator

logger = logging.getLogger(__name__)


class ImportService:
    """Runs one document through the full pipeline.

    The document's records are merged in a single transaction. Each affected
    test is then recomputed in its own transaction under the per-test lock,
    so a snapshot is only written after its recomputation succeeded.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: ParserRegistry | None = None,
        validator: RecordValidator | None = None,
        engine: StatisticsEngine | None = None,
    ):
        self.session_factory = session_factory
        self.registry = registry or default_registry
        self.validator = validator or RecordValidator()
        self.engine = engine or StatisticsEngine()

    def run(self, content: bytes, format_tag: str) -> list[str]:
        """Import ``content``; returns the affected test ids in sorted order."""
        parser = self.registry.for_format(format_tag)
        records = parser.parse(content)
        logger.info(f"[IMPORT] Parsed {len(records)} records ({parser.format_tag})")
        self.validator.ensure_valid(records)

        if not records:
            logger.info("[IMPORT] Document has no records, nothing to merge")
            return []

        with store_errors("merge results"):
            with self.session_factory() as session, session.begin():
                test_ids = TestResultService(session).bulk_merge(records)

        for test_id in test_ids:
            self.recompute(test_id)

        logger.info(f"[IMPORT] Import finished, affected tests {test_ids}")
        return test_ids

    def recompute(self, test_id: str) -> dict:
        with store_errors(f"recompute aggregate for test {test_id}"):
            with self.session_factory() as session, session.begin():
                return AggregateService(session, self.engine).recompute(test_id)
