"""Aggregate snapshot schemas."""

from datetime import datetime

from scanmark.schemas.common import BaseSchema


class AggregateResponse(BaseSchema):
    """Statistics snapshot for one test."""

    test_id: str
    mean: float
    stddev: float
    min: float
    max: float
    count: int
    p25: float
    p50: float
    p75: float
    updated_at: datetime

    @classmethod
    def from_model(cls, aggregate) -> "AggregateResponse":
        return cls(
            test_id=aggregate.test_id,
            updated_at=aggregate.updated_at,
            **aggregate.data,
        )


class AggregateListResponse(BaseSchema):
    """All snapshots, most recently updated first."""

    tests: list[AggregateResponse]
    count: int
