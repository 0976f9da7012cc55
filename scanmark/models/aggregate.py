"""Per-test statistics snapshot model."""

from typing import Any

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from scanmark.core.database import Base
from scanmark.models.base import IDMixin, TimestampMixin


class TestAggregate(Base, IDMixin, TimestampMixin):
    """Materialized statistics for one test, fully replaced on each recomputation."""

    __tablename__ = "test_aggregates"
    __test__ = False

    test_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)

    __table_args__ = (
        Index("idx_test_aggregates_updated_at", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<TestAggregate(test={self.test_id}, updated_at={self.updated_at})>"
