"""Query surface consumed by the API / CLI layer."""

from __future__ import annotations

import math
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from .adapters.protocol_adapters import get_adapter_class
from .clients.chain import ChainReader
from .constants import CACHE_CONTROL_HEADER, SERVICE_NAME
from .domain import AggregatedResponse, CachedMetrics, ComparisonReport, HistoryView
from .errors import InvalidInput
from .logger import get_logger
from .processors import MetricsAggregator, SnapshotSeries
from .settings import PulseSettings

logger = get_logger(__name__)


def parse_value(raw: Any) -> float:
    """Parse a value to record.

    Raises:
        InvalidInput: If ``raw`` is not a finite number.
    """
    if isinstance(raw, bool) or raw is None:
        raise InvalidInput(f"Invalid value: {raw!r}")
    try:
        value = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"Invalid value: {raw!r}") from e
    if not math.isfinite(value):
        raise InvalidInput(f"Invalid value: {raw!r}")
    return value


def parse_timestamp(raw: Any) -> int:
    """Parse a unix timestamp in seconds, truncating any fractional part.

    Raises:
        InvalidInput: If ``raw`` is not a finite number.
    """
    if isinstance(raw, bool) or raw is None:
        raise InvalidInput(f"Invalid timestamp: {raw!r}")
    if isinstance(raw, int):
        return raw
    try:
        value = Decimal(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError, InvalidOperation) as e:
        raise InvalidInput(f"Invalid timestamp: {raw!r}") from e
    if not value.is_finite():
        raise InvalidInput(f"Invalid timestamp: {raw!r}")
    return int(value)


def _round_half_up(x: float) -> int:
    return math.floor(x + 0.5)


def total_value_locked(response: AggregatedResponse) -> Decimal:
    """Sum of supplied amounts across every protocol that succeeded."""
    return sum(
        (m.total_supplied for m in response.per_protocol.values() if m is not None),
        Decimal(0),
    )


def cache_headers(result: CachedMetrics) -> dict[str, str]:
    """Headers the HTTP layer attaches to a metrics response."""
    return {
        "X-Cache": "HIT" if result.cache_hit else "MISS",
        "Cache-Control": CACHE_CONTROL_HEADER,
    }


class MetricsService:
    """Owns the metrics cache and the snapshot series for one process."""

    def __init__(
        self,
        aggregator: MetricsAggregator,
        series: SnapshotSeries,
        *,
        history_limit: int,
        clock: Callable[[], float] = time.time,
    ):
        self.aggregator = aggregator
        self.series = series
        self.history_limit = history_limit
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: PulseSettings,
        client: ChainReader,
        clock: Callable[[], float] = time.time,
    ) -> "MetricsService":
        adapters = [
            get_adapter_class(name)(settings, client)
            for name in settings.enabled_protocols
        ]
        aggregator = MetricsAggregator(
            adapters,
            chain=settings.chain_name,
            ttl_seconds=settings.cache_ttl_seconds,
            call_timeout=settings.rpc_timeout,
            clock=clock,
        )
        series = SnapshotSeries(
            max_samples=settings.max_samples,
            dedup_window_seconds=settings.dedup_window_seconds,
            compare_window_seconds=settings.compare_window_seconds,
        )
        return cls(
            aggregator, series, history_limit=settings.history_limit, clock=clock
        )

    async def get_metrics(self) -> CachedMetrics:
        """Current protocol metrics; raises AllProtocolsFailed when none succeed."""
        return await self.aggregator.get_metrics()

    def record_and_compare(
        self, value: Any, timestamp: Any | None = None
    ) -> ComparisonReport:
        """Record ``value`` and report its change against the comparison sample.

        Input is validated before the series is touched.
        """
        current_value = parse_value(value)
        current_ts = (
            int(self._clock()) if timestamp is None else parse_timestamp(timestamp)
        )

        stored, comparison, count = self.series.record_and_compare(
            current_value, current_ts
        )
        if not stored:
            logger.debug("Sample at %d inside dedup window; not stored", current_ts)

        if comparison is None or comparison.timestamp == current_ts:
            return ComparisonReport(
                current_value=current_value,
                current_timestamp=current_ts,
                comparison_value=current_value,
                comparison_timestamp=current_ts,
                change_percent=SnapshotSeries.change_percent(
                    current_value, comparison, current_ts
                ),
                comparison_age_minutes=0,
                sample_count=count,
            )

        return ComparisonReport(
            current_value=current_value,
            current_timestamp=current_ts,
            comparison_value=comparison.value,
            comparison_timestamp=comparison.timestamp,
            change_percent=SnapshotSeries.change_percent(
                current_value, comparison, current_ts
            ),
            comparison_age_minutes=_round_half_up(
                (current_ts - comparison.timestamp) / 60
            ),
            sample_count=count,
        )

    def get_history(self) -> HistoryView:
        return HistoryView(
            samples=self.series.recent(self.history_limit),
            count=len(self.series),
            oldest_timestamp=self.series.oldest_timestamp,
            newest_timestamp=self.series.newest_timestamp,
        )

    def health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "timestamp": int(self._clock()),
            "protocols": [a.adapter_name for a in self.aggregator.adapters],
        }
