from __future__ import annotations

import pytest

from lending_pulse.adapters.protocol_adapters.aave import AaveAdapter
from lending_pulse.clients.chain import ChainClient
from lending_pulse.settings import PulseSettings


@pytest.mark.asyncio
@pytest.mark.integration
async def test_aave_reserve_on_default_chain():
    settings = PulseSettings(enabled_protocols=["aave"])
    adapter = AaveAdapter(settings, ChainClient(settings))

    metrics = await adapter.fetch_metrics()

    assert metrics.total_supplied >= 0
    assert 0 <= metrics.utilization_pct <= 100
    assert metrics.supply_rate_pct <= metrics.borrow_rate_pct
