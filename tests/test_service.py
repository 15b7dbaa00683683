from __future__ import annotations

from decimal import Decimal

import pytest

from helpers import FakeChain, ok, reserve_data
from lending_pulse.domain import AggregatedResponse, CachedMetrics, ProtocolMetrics
from lending_pulse.errors import InvalidInput
from lending_pulse.service import (
    MetricsService,
    cache_headers,
    parse_timestamp,
    parse_value,
    total_value_locked,
)
from lending_pulse.units import percent_to_ray


class FakeClock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(1_700_000_000.0)


@pytest.fixture
def service(settings, clock) -> MetricsService:
    settings.enabled_protocols = ["aave"]
    chain = FakeChain(
        raw=reserve_data(
            liquidity_rate=percent_to_ray("3.25"), borrow_rate=percent_to_ray("4")
        ),
        batches=[[ok(3_000_000_000), ok(1_000_000_000)]],
    )
    return MetricsService.from_settings(settings, chain, clock=clock)


def test_first_record_reports_zero_change(service):
    report = service.record_and_compare(1000, timestamp=0)

    assert report.current_value == 1000.0
    assert report.comparison_value == 1000.0
    assert report.comparison_timestamp == 0
    assert report.change_percent == Decimal("0.00")
    assert report.comparison_age_minutes == 0
    assert report.sample_count == 1


def test_record_compares_against_window_sample(service):
    service.record_and_compare(1000, timestamp=0)
    service.record_and_compare(1100, timestamp=120)

    report = service.record_and_compare("1210.5", timestamp=300)

    assert report.comparison_timestamp == 0
    assert report.comparison_value == 1000.0
    assert report.change_percent == Decimal("21.05")
    assert report.comparison_age_minutes == 5
    assert report.sample_count == 3


def test_duplicate_record_still_reports_comparison(service):
    service.record_and_compare(1000, timestamp=0)
    report = service.record_and_compare(2000, timestamp=10)

    assert report.sample_count == 1
    assert report.comparison_timestamp == 0
    assert report.change_percent == Decimal("100.00")
    assert report.comparison_age_minutes == 0


def test_comparison_age_rounds_half_up(service):
    service.record_and_compare(1000, timestamp=0)

    report = service.record_and_compare(1000, timestamp=90)

    assert report.comparison_age_minutes == 2


def test_timestamp_defaults_to_clock(service, clock):
    report = service.record_and_compare(5)

    assert report.current_timestamp == int(clock.now)


@pytest.mark.parametrize("bad", ["abc", "", None, True, float("nan"), "inf"])
def test_invalid_value_is_rejected_without_mutation(service, bad):
    with pytest.raises(InvalidInput):
        service.record_and_compare(bad, timestamp=0)

    assert len(service.series) == 0


def test_invalid_timestamp_is_rejected(service):
    with pytest.raises(InvalidInput):
        service.record_and_compare(1, timestamp="yesterday")
    assert len(service.series) == 0


def test_parse_helpers():
    assert parse_value(" 12.5 ") == 12.5
    assert parse_value(7) == 7.0
    assert parse_timestamp("1700000000") == 1_700_000_000
    assert parse_timestamp(42) == 42


@pytest.mark.parametrize(
    "raw, expected",
    [(1_700_000_000.0, 1_700_000_000), ("1700000000.5", 1_700_000_000), (" 90.9 ", 90)],
)
def test_parse_timestamp_truncates_fractions(raw, expected):
    assert parse_timestamp(raw) == expected


@pytest.mark.parametrize("raw", [None, True, "", "nan", "inf", float("nan")])
def test_parse_timestamp_rejects_non_numbers(raw):
    with pytest.raises(InvalidInput):
        parse_timestamp(raw)


def test_history_returns_last_samples(service):
    service.history_limit = 3
    for i in range(5):
        service.record_and_compare(i, timestamp=i * 60)

    history = service.get_history()

    assert [s.timestamp for s in history.samples] == [120, 180, 240]
    assert history.count == 5
    assert history.oldest_timestamp == 0
    assert history.newest_timestamp == 240


@pytest.mark.asyncio
async def test_get_metrics_and_tvl(service):
    result = await service.get_metrics()

    assert result.cache_hit is False
    metrics = result.payload.per_protocol["aave"]
    assert metrics.supply_rate_pct == Decimal("3.25")
    assert metrics.utilization_pct == Decimal("33.33")
    assert total_value_locked(result.payload) == Decimal("3000")
    assert cache_headers(result) == {
        "X-Cache": "MISS",
        "Cache-Control": "public, max-age=30",
    }

    again = await service.get_metrics()
    assert cache_headers(again)["X-Cache"] == "HIT"


def test_total_value_locked_skips_failed_protocols():
    metrics = ProtocolMetrics(
        total_supplied=Decimal("1.5"),
        total_borrowed=Decimal(0),
        supply_rate_pct=Decimal(0),
        borrow_rate_pct=Decimal(0),
        utilization_pct=Decimal(0),
    )
    response = AggregatedResponse(
        timestamp=1,
        chain="c",
        per_protocol={"aave": metrics, "compound": None},
        warnings=("Compound: x",),
    )

    assert total_value_locked(response) == Decimal("1.5")
    assert cache_headers(CachedMetrics(response, cache_hit=True))["X-Cache"] == "HIT"


def test_health_lists_protocols(service, clock):
    assert service.health() == {
        "status": "ok",
        "service": "lending-pulse",
        "timestamp": int(clock.now),
        "protocols": ["aave"],
    }
