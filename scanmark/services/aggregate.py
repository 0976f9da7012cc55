"""Aggregate cache: one statistics snapshot per test."""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from scanmark.core.database import upsert
from scanmark.core.locks import hold_test_lock
from scanmark.models.aggregate import TestAggregate
from scanmark.models.base import utcnow
from scanmark.services.statistics import StatisticsEngine
from scanmark.services.test_result import TestResultService

logger = logging.getLogger(__name__)


class AggregateService:
    """Reads and rebuilds per-test snapshots.

    A snapshot is a materialized view: every write replaces ``data`` wholesale.
    """

    def __init__(self, db: Session, engine: StatisticsEngine | None = None):
        self.db = db
        self.engine = engine or StatisticsEngine()

    def upsert(self, test_id: str, data: dict[str, Any]) -> None:
        table = TestAggregate.__table__
        now = utcnow()
        stmt = upsert(self.db, table).values(
            test_id=test_id,
            data=data,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.test_id],
            set_={"data": stmt.excluded.data, "updated_at": now},
        )
        self.db.execute(stmt)

    def get(self, test_id: str) -> TestAggregate | None:
        result = self.db.execute(
            select(TestAggregate).where(TestAggregate.test_id == test_id)
        )
        return result.scalar_one_or_none()

    def list_all(self) -> list[TestAggregate]:
        """Snapshots, most recently updated first."""
        result = self.db.execute(
            select(TestAggregate).order_by(
                TestAggregate.updated_at.desc(), TestAggregate.id.desc()
            )
        )
        return list(result.scalars().all())

    def recompute(self, test_id: str) -> dict[str, Any]:
        """Rebuild the snapshot for ``test_id`` from the stored results.

        Runs in the caller's transaction; the per-test lock is held until that
        transaction ends, so the read and the write happen under it.
        """
        with hold_test_lock(self.db, test_id) as mode:
            scores = TestResultService(self.db).scores_for_test(test_id)
            data = self.engine.compute(scores)
            self.upsert(test_id, data)
        logger.info(
            f"[AGGREGATE] Recomputed test {test_id} over {len(scores)} scores ({mode})"
        )
        return data
