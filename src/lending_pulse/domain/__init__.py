"""Domain models for lending metrics and snapshot history."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping, Union


@dataclass(frozen=True)
class ProtocolMetrics:
    """Normalized metrics for one lending market."""

    total_supplied: Decimal
    total_borrowed: Decimal
    supply_rate_pct: Decimal
    borrow_rate_pct: Decimal
    utilization_pct: Decimal


@dataclass(frozen=True)
class FetchSuccess:
    protocol: str
    metrics: ProtocolMetrics


@dataclass(frozen=True)
class FetchFailure:
    protocol: str
    reason: str


FetchResult = Union[FetchSuccess, FetchFailure]


@dataclass(frozen=True)
class AggregatedResponse:
    """One aggregation round. Protocols that failed map to ``None``."""

    timestamp: int
    chain: str
    per_protocol: Mapping[str, ProtocolMetrics | None]
    warnings: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "per_protocol", MappingProxyType(dict(self.per_protocol))
        )

    @property
    def succeeded(self) -> list[str]:
        return [name for name, m in self.per_protocol.items() if m is not None]


@dataclass(frozen=True)
class Sample:
    """A recorded value at a unix timestamp (seconds)."""

    value: float
    timestamp: int


@dataclass(frozen=True)
class ComparisonReport:
    """Result of recording a value and comparing it to recent history."""

    current_value: float
    current_timestamp: int
    comparison_value: float
    comparison_timestamp: int
    change_percent: Decimal
    comparison_age_minutes: int
    sample_count: int


@dataclass(frozen=True)
class HistoryView:
    samples: tuple[Sample, ...]
    count: int
    oldest_timestamp: int | None = None
    newest_timestamp: int | None = None


@dataclass(frozen=True)
class CachedMetrics:
    """An aggregated response plus whether it was served from cache."""

    payload: AggregatedResponse
    cache_hit: bool = False
