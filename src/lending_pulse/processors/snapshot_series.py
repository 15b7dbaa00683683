"""Bounded in-memory time series of recorded values."""

from __future__ import annotations

import threading
from collections import deque
from decimal import Decimal

from ..constants import COMPARE_WINDOW_SECONDS, DEDUP_WINDOW_SECONDS, MAX_SAMPLES
from ..domain import Sample
from ..units import round_pct


class SnapshotSeries:
    """Append-only, capacity-bounded series of ``Sample``.

    Samples are kept in insertion order; once ``max_samples`` is exceeded
    the oldest are dropped from the front.
    """

    def __init__(
        self,
        max_samples: int = MAX_SAMPLES,
        dedup_window_seconds: float = DEDUP_WINDOW_SECONDS,
        compare_window_seconds: int = COMPARE_WINDOW_SECONDS,
    ):
        self.max_samples = max_samples
        self.dedup_window_ms = int(dedup_window_seconds * 1000)
        self.compare_window_seconds = compare_window_seconds
        self._samples: deque[Sample] = deque()
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def record(self, value: float, timestamp: int) -> bool:
        """Append a sample unless the newest one is inside the dedup window.

        Returns:
            True if the sample was stored, False if it was discarded.
        """
        with self._lock:
            if self._samples:
                last = self._samples[-1]
                if abs(timestamp * 1000 - last.timestamp * 1000) < self.dedup_window_ms:
                    return False

            self._samples.append(Sample(value=value, timestamp=timestamp))
            while len(self._samples) > self.max_samples:
                self._samples.popleft()
            return True

    def record_and_compare(
        self, value: float, timestamp: int
    ) -> tuple[bool, Sample | None, int]:
        """Record then look up the comparison sample as one atomic step.

        Returns:
            (stored, comparison sample, series length after the insert)
        """
        with self._lock:
            stored = self.record(value, timestamp)
            return stored, self.find_comparison(timestamp), len(self._samples)

    def find_comparison(self, current_timestamp: int) -> Sample | None:
        """Return the sample closest to ``current_timestamp - compare window``.

        Ties go to the earliest sample. An empty series yields None.
        """
        target = current_timestamp - self.compare_window_seconds
        with self._lock:
            best: Sample | None = None
            best_diff = float("inf")
            for sample in self._samples:
                diff = abs(sample.timestamp - target)
                if diff < best_diff:
                    best_diff = diff
                    best = sample

            # Without any sample near the window, fall back to the oldest one.
            if best is None and self._samples:
                best = self._samples[0]
            return best

    @staticmethod
    def change_percent(
        current: float, comparison: Sample | None, current_timestamp: int
    ) -> Decimal:
        """Percentage change of ``current`` against ``comparison``.

        Zero when there is no comparison, when it is the current point in
        time, or when its value is not positive.
        """
        if (
            comparison is None
            or comparison.timestamp == current_timestamp
            or comparison.value <= 0
        ):
            return round_pct(0)
        return round_pct(
            (Decimal(repr(current)) - Decimal(repr(comparison.value)))
            / Decimal(repr(comparison.value))
            * 100
        )

    def recent(self, limit: int) -> tuple[Sample, ...]:
        with self._lock:
            if limit <= 0:
                return ()
            return tuple(self._samples)[-limit:]

    @property
    def oldest_timestamp(self) -> int | None:
        with self._lock:
            return self._samples[0].timestamp if self._samples else None

    @property
    def newest_timestamp(self) -> int | None:
        with self._lock:
            return self._samples[-1].timestamp if self._samples else None
