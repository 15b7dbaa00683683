from __future__ import annotations

from dataclasses import dataclass

from ...abi import encode_call, load_compound_comet_abi
from ...clients.chain import CallResult
from ...decoding import decode_uint_word
from ...domain import ProtocolMetrics
from ...errors import CallFailed, MalformedResponse
from ...logger import get_logger
from ...units import token_amount, utilization_from_wad, wad_rate_to_annual_percent
from .base import BaseProtocolAdapter

logger = get_logger(__name__)


@dataclass(frozen=True)
class MarketState:
    """Phase one of a Comet read."""

    utilization: int
    total_supply: int
    total_borrow: int
    succeeded: int


@dataclass(frozen=True)
class MarketRates:
    """Phase two of a Comet read, per-second WAD rates."""

    supply_rate: int
    borrow_rate: int
    succeeded: int


def _uint_or_zero(result: CallResult, fn_name: str) -> tuple[int, bool]:
    if not result.success or result.data is None:
        logger.warning("Compound %s failed; using 0", fn_name)
        return 0, False
    try:
        return decode_uint_word(result.data), True
    except MalformedResponse as e:
        logger.warning("Compound %s undecodable (%s); using 0", fn_name, e)
        return 0, False


class CompoundAdapter(BaseProtocolAdapter):
    """Adapter for a Compound v3 (Comet) market."""

    PHASE_ONE = ("getUtilization", "totalSupply", "totalBorrow")
    PHASE_TWO = ("getSupplyRate", "getBorrowRate")

    @property
    def adapter_name(self) -> str:
        return "compound"

    @property
    def display_name(self) -> str:
        return "Compound"

    async def _batch(
        self, comet: str, fn_names: tuple[str, ...], args: list | None = None
    ) -> list[tuple[int, bool]]:
        abi = load_compound_comet_abi()
        results = await self.client.batch_call(
            [(comet, encode_call(abi, comet, fn, args or [])) for fn in fn_names]
        )
        if len(results) != len(fn_names):
            raise MalformedResponse(
                f"Expected {len(fn_names)} results, got {len(results)}"
            )
        return [_uint_or_zero(result, fn) for result, fn in zip(results, fn_names)]

    async def _read_market_state(self, comet: str) -> MarketState:
        (utilization, ok_u), (supply, ok_s), (borrow, ok_b) = await self._batch(
            comet, self.PHASE_ONE
        )
        return MarketState(
            utilization=utilization,
            total_supply=supply,
            total_borrow=borrow,
            succeeded=sum((ok_u, ok_s, ok_b)),
        )

    async def _read_rates(self, comet: str, utilization: int) -> MarketRates:
        """Read the rate curve at ``utilization``; the comet takes it as an argument."""
        (supply_rate, ok_s), (borrow_rate, ok_b) = await self._batch(
            comet, self.PHASE_TWO, [utilization]
        )
        return MarketRates(
            supply_rate=supply_rate,
            borrow_rate=borrow_rate,
            succeeded=sum((ok_s, ok_b)),
        )

    async def fetch_metrics(self) -> ProtocolMetrics:
        comet = self.config.compound_comet_address_required

        state = await self._read_market_state(comet)
        rates = await self._read_rates(comet, state.utilization)

        if state.succeeded == 0 and rates.succeeded == 0:
            raise CallFailed("all comet calls failed")

        decimals = self.config.asset_decimals
        return ProtocolMetrics(
            total_supplied=token_amount(state.total_supply, decimals),
            total_borrowed=token_amount(state.total_borrow, decimals),
            supply_rate_pct=wad_rate_to_annual_percent(rates.supply_rate),
            borrow_rate_pct=wad_rate_to_annual_percent(rates.borrow_rate),
            utilization_pct=utilization_from_wad(state.utilization),
        )
