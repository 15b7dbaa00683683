from __future__ import annotations

from decimal import Decimal

import pytest

from helpers import COMET, FAILED, FakeChain, ok
from lending_pulse.clients.chain import CallResult
from lending_pulse.abi import encode_call, load_compound_comet_abi
from lending_pulse.adapters.protocol_adapters.compound import CompoundAdapter
from lending_pulse.errors import CallFailed
from lending_pulse.settings import PulseSettings

UTILIZATION = 8 * 10**17  # 80%


@pytest.mark.asyncio
async def test_fetch_metrics_annualizes_rates(settings):
    chain = FakeChain(
        batches=[
            [ok(UTILIZATION), ok(10_000_000_000), ok(8_000_000_000)],
            [ok(10**9), ok(2 * 10**9)],
        ]
    )

    metrics = await CompoundAdapter(settings, chain).fetch_metrics()

    assert metrics.total_supplied == Decimal("10000")
    assert metrics.total_borrowed == Decimal("8000")
    assert metrics.utilization_pct == Decimal("80.00")
    assert metrics.supply_rate_pct == Decimal("3.15")
    assert metrics.borrow_rate_pct == Decimal("6.31")


@pytest.mark.asyncio
async def test_rates_are_read_at_phase_one_utilization(settings):
    chain = FakeChain(
        batches=[
            [ok(UTILIZATION), ok(1), ok(1)],
            [ok(1), ok(1)],
        ]
    )

    await CompoundAdapter(settings, chain).fetch_metrics()

    assert len(chain.batch_calls) == 2
    abi = load_compound_comet_abi()
    phase_one, phase_two = chain.batch_calls
    assert [calldata for _, calldata in phase_one] == [
        encode_call(abi, COMET, fn) for fn in CompoundAdapter.PHASE_ONE
    ]
    assert [calldata for _, calldata in phase_two] == [
        encode_call(abi, COMET, fn, [UTILIZATION]) for fn in CompoundAdapter.PHASE_TWO
    ]


@pytest.mark.asyncio
async def test_failed_utilization_reads_rates_at_zero(settings):
    chain = FakeChain(batches=[[FAILED, ok(5_000_000), ok(0)], [ok(0), ok(0)]])

    metrics = await CompoundAdapter(settings, chain).fetch_metrics()

    abi = load_compound_comet_abi()
    assert chain.batch_calls[1][0][1] == encode_call(abi, COMET, "getSupplyRate", [0])
    assert metrics.utilization_pct == Decimal("0.00")
    assert metrics.total_supplied == Decimal("5")

@pytest.mark.asyncio
async def test_oversized_or_short_entries_degrade_to_zero(settings):
    chain = FakeChain(
        batches=[
            [
                CallResult(success=True, data=b"\xff" * 32),
                CallResult(success=True, data=b"\x01"),
                ok(2_000_000),
            ],
            [ok(10**9), ok(2 * 10**9)],
        ]
    )

    metrics = await CompoundAdapter(settings, chain).fetch_metrics()

    abi = load_compound_comet_abi()
    assert chain.batch_calls[1][0][1] == encode_call(abi, COMET, "getSupplyRate", [0])
    assert metrics.utilization_pct == Decimal("0.00")
    assert metrics.total_supplied == Decimal(0)
    assert metrics.total_borrowed == Decimal("2")
    assert metrics.supply_rate_pct == Decimal("3.15")



@pytest.mark.asyncio
async def test_partial_rate_failure_degrades_to_zero(settings):
    chain = FakeChain(
        batches=[[ok(UTILIZATION), ok(1), ok(1)], [FAILED, ok(10**9)]]
    )

    metrics = await CompoundAdapter(settings, chain).fetch_metrics()

    assert metrics.supply_rate_pct == Decimal("0.00")
    assert metrics.borrow_rate_pct == Decimal("3.15")


@pytest.mark.asyncio
async def test_all_calls_failing_raises(settings):
    chain = FakeChain(batches=[[FAILED, FAILED, FAILED], [FAILED, FAILED]])

    with pytest.raises(CallFailed, match="all comet calls failed"):
        await CompoundAdapter(settings, chain).fetch_metrics()


@pytest.mark.asyncio
async def test_transport_failure_in_phase_one_skips_phase_two(settings):
    chain = FakeChain(batches=[CallFailed("connection refused")])

    with pytest.raises(CallFailed, match="connection refused"):
        await CompoundAdapter(settings, chain).fetch_metrics()
    assert len(chain.batch_calls) == 1


@pytest.mark.asyncio
async def test_missing_comet_address_raises():
    settings = PulseSettings(chain_name="custom", rpc_url="http://localhost:8545")

    with pytest.raises(ValueError, match="compound_comet_address must be configured"):
        await CompoundAdapter(settings, FakeChain()).fetch_metrics()
