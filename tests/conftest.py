from __future__ import annotations

import pytest

from helpers import AAVE_POOL, COMET, USDC
from lending_pulse.settings import PulseSettings


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path):
    """Keep developer config files and env out of the tests."""
    monkeypatch.setenv("LENDING_PULSE_CONFIG", str(tmp_path / "missing.toml"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def settings() -> PulseSettings:
    return PulseSettings(
        rpc_url="http://localhost:8545",
        aave_pool_address=AAVE_POOL,
        compound_comet_address=COMET,
        asset_address=USDC,
    )
