"""Concurrent multi-protocol aggregation behind a single-slot TTL cache."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from ..adapters.protocol_adapters.base import BaseProtocolAdapter
from ..domain import (
    AggregatedResponse,
    CachedMetrics,
    FetchFailure,
    FetchResult,
    FetchSuccess,
    ProtocolMetrics,
)
from ..errors import AllProtocolsFailed
from ..logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    payload: AggregatedResponse
    stored_at_ms: int

    def is_live(self, now_ms: int, ttl_ms: int) -> bool:
        return now_ms - self.stored_at_ms < ttl_ms


def merge_results(
    results: Sequence[FetchResult],
) -> tuple[dict[str, ProtocolMetrics | None], list[str]]:
    """Fold per-protocol outcomes into metrics by key plus warnings.

    Failed protocols keep their key with a ``None`` value and contribute
    exactly one warning each.
    """
    per_protocol: dict[str, ProtocolMetrics | None] = {}
    warnings: list[str] = []
    for result in results:
        if isinstance(result, FetchSuccess):
            per_protocol[result.protocol] = result.metrics
        else:
            per_protocol[result.protocol] = None
            warnings.append(result.reason)
    return per_protocol, warnings


class MetricsAggregator:
    """Runs every adapter concurrently and caches successful rounds.

    Callers inside one TTL window receive the same ``AggregatedResponse``
    object, timestamp included.
    """

    def __init__(
        self,
        adapters: Sequence[BaseProtocolAdapter],
        *,
        chain: str,
        ttl_seconds: float,
        call_timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.adapters = list(adapters)
        self.chain = chain
        self.ttl_ms = int(ttl_seconds * 1000)
        self.call_timeout = call_timeout
        self._clock = clock
        self._entry: CacheEntry | None = None
        self._refresh_lock = asyncio.Lock()

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def cached(self) -> AggregatedResponse | None:
        """Return the live cached payload, if any."""
        entry = self._entry
        if entry is not None and entry.is_live(self._now_ms(), self.ttl_ms):
            return entry.payload
        return None

    async def _fetch_one(self, adapter: BaseProtocolAdapter) -> ProtocolMetrics:
        if self.call_timeout is None or self.call_timeout <= 0:
            return await adapter.fetch_metrics()
        async with asyncio.timeout(self.call_timeout):
            return await adapter.fetch_metrics()

    async def collect(self) -> list[FetchResult]:
        """Fetch every adapter and wait for all of them to settle."""
        outcomes = await asyncio.gather(
            *[self._fetch_one(adapter) for adapter in self.adapters],
            return_exceptions=True,
        )

        results: list[FetchResult] = []
        for adapter, outcome in zip(self.adapters, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                detail = (
                    f"timed out after {self.call_timeout}s"
                    if isinstance(outcome, TimeoutError)
                    else str(outcome) or type(outcome).__name__
                )
                logger.error("%s fetch failed: %s", adapter.display_name, detail)
                results.append(
                    FetchFailure(
                        protocol=adapter.adapter_name,
                        reason=f"{adapter.display_name}: {detail}",
                    )
                )
            else:
                logger.debug("%s fetch succeeded", adapter.display_name)
                results.append(FetchSuccess(protocol=adapter.adapter_name, metrics=outcome))
        return results

    async def get_metrics(self) -> CachedMetrics:
        """Return the cached round or run a new one.

        Raises:
            AllProtocolsFailed: If no adapter succeeded. Nothing is cached.
        """
        payload = self.cached()
        if payload is not None:
            logger.debug("Metrics cache hit (timestamp=%d)", payload.timestamp)
            return CachedMetrics(payload=payload, cache_hit=True)

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited on the lock.
            payload = self.cached()
            if payload is not None:
                return CachedMetrics(payload=payload, cache_hit=True)

            timestamp = int(self._clock())
            per_protocol, warnings = merge_results(await self.collect())

            if not any(m is not None for m in per_protocol.values()):
                logger.error("All protocol fetches failed: %s", "; ".join(warnings))
                raise AllProtocolsFailed(warnings)

            payload = AggregatedResponse(
                timestamp=timestamp,
                chain=self.chain,
                per_protocol=per_protocol,
                warnings=tuple(warnings),
            )
            self._entry = CacheEntry(payload=payload, stored_at_ms=self._now_ms())
            logger.info(
                "Aggregated %d/%d protocols (%d warning(s))",
                len(payload.succeeded),
                len(per_protocol),
                len(warnings),
            )
            return CachedMetrics(payload=payload, cache_hit=False)
