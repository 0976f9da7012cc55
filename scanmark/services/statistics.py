"""Summary statistics over one test's percentage scores.

Each statistic is a provider with a stable ``key`` and a ``compute`` over the
scores sorted ascending. The engine sorts once and asks every registered
provider in order; adding a statistic means registering another provider.
"""

import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence

from scanmark.core.rounding import round2

Number = float | int


class StatisticProvider(ABC):
    """A named statistic over a sorted score list."""

    key: str

    @abstractmethod
    def compute(self, sorted_scores: Sequence[float]) -> Number:
        ...


class Mean(StatisticProvider):
    key = "mean"

    def compute(self, sorted_scores: Sequence[float]) -> Number:
        if not sorted_scores:
            return 0.0
        return round2(math.fsum(sorted_scores) / len(sorted_scores))


class StdDev(StatisticProvider):
    """Population standard deviation (divides by N)."""

    key = "stddev"

    def compute(self, sorted_scores: Sequence[float]) -> Number:
        if len(sorted_scores) < 2:
            return 0.0
        mean = math.fsum(sorted_scores) / len(sorted_scores)
        variance = math.fsum((s - mean) ** 2 for s in sorted_scores) / len(sorted_scores)
        return round2(math.sqrt(variance))


class Minimum(StatisticProvider):
    key = "min"

    def compute(self, sorted_scores: Sequence[float]) -> Number:
        return float(sorted_scores[0]) if sorted_scores else 0.0


class Maximum(StatisticProvider):
    key = "max"

    def compute(self, sorted_scores: Sequence[float]) -> Number:
        return float(sorted_scores[-1]) if sorted_scores else 0.0


class Count(StatisticProvider):
    key = "count"

    def compute(self, sorted_scores: Sequence[float]) -> Number:
        return len(sorted_scores)


class Percentile(StatisticProvider):
    """Linear interpolation between closest ranks: rank = p/100 * (n - 1).

    For an even-sized list p50 is the interpolated midpoint of the two middle
    scores.
    """

    def __init__(self, percentile: int):
        if not 0 <= percentile <= 100:
            raise ValueError(f"percentile must be within 0..100, got {percentile}")
        self.percentile = percentile
        self.key = f"p{percentile}"

    def compute(self, sorted_scores: Sequence[float]) -> Number:
        if not sorted_scores:
            return 0.0
        if len(sorted_scores) == 1:
            return float(sorted_scores[0])

        rank = (self.percentile / 100) * (len(sorted_scores) - 1)
        lower_index = math.floor(rank)
        lower = sorted_scores[lower_index]
        upper = sorted_scores[math.ceil(rank)]
        return round2(lower + (upper - lower) * (rank - lower_index))


class StatisticRegistry:
    """Ordered set of statistic providers."""

    def __init__(self, providers: Iterable[StatisticProvider] = ()):
        self._providers: list[StatisticProvider] = []
        for provider in providers:
            self.register(provider)

    def register(self, provider: StatisticProvider) -> "StatisticRegistry":
        if provider.key in self.keys:
            raise ValueError(f"Statistic '{provider.key}' is already registered")
        self._providers.append(provider)
        return self

    @property
    def keys(self) -> list[str]:
        return [provider.key for provider in self._providers]

    def __iter__(self):
        return iter(self._providers)

    @classmethod
    def default(cls) -> "StatisticRegistry":
        return cls([
            Mean(),
            StdDev(),
            Minimum(),
            Maximum(),
            Count(),
            Percentile(25),
            Percentile(50),
            Percentile(75),
        ])


class StatisticsEngine:
    """Builds the ordered statistics map for one score list."""

    def __init__(self, registry: StatisticRegistry | None = None):
        self.registry = registry or StatisticRegistry.default()

    def compute(self, scores: Iterable[float]) -> dict[str, Number]:
        sorted_scores = sorted(scores)
        return {provider.key: provider.compute(sorted_scores) for provider in self.registry}


STATISTIC_KEYS = tuple(StatisticRegistry.default().keys)
