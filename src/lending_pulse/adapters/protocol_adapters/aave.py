from __future__ import annotations

from ...abi import encode_call, load_aave_pool_abi, load_erc20_abi
from ...clients.chain import CallResult
from ...decoding import AAVE_RESERVE_FIELDS, decode_uint_word, decode_words
from ...domain import ProtocolMetrics
from ...errors import MalformedResponse
from ...logger import get_logger
from ...units import ray_to_percent, token_amount, utilization_from_amounts
from .base import BaseProtocolAdapter

logger = get_logger(__name__)


class AaveAdapter(BaseProtocolAdapter):
    """Adapter for an AAVE v3 pool reserve."""

    @property
    def adapter_name(self) -> str:
        return "aave"

    @property
    def display_name(self) -> str:
        return "AAVE"

    async def _read_reserve(self) -> dict:
        """Read and decode ``getReserveData(asset)`` for the configured asset.

        The pool's ABI decoder is deliberately bypassed: the packed
        ``configuration`` word is never decoded.
        """
        pool = self.config.aave_pool_address_required
        calldata = encode_call(
            load_aave_pool_abi(),
            pool,
            "getReserveData",
            [self.config.asset_address_required],
        )
        raw = await self.client.raw_call(pool, calldata)
        return decode_words(raw, AAVE_RESERVE_FIELDS)

    def _supply_or_zero(self, result: CallResult, label: str) -> int:
        if not result.success or result.data is None:
            logger.warning("AAVE %s totalSupply failed; using 0", label)
            return 0
        try:
            return decode_uint_word(result.data)
        except MalformedResponse as e:
            logger.warning("AAVE %s totalSupply undecodable (%s); using 0", label, e)
            return 0

    async def _read_token_supplies(
        self, a_token: str, debt_token: str
    ) -> tuple[int, int]:
        """Read both token supplies in one batch; failed entries count as zero."""
        erc20_abi = load_erc20_abi()
        results = await self.client.batch_call(
            [
                (a_token, encode_call(erc20_abi, a_token, "totalSupply")),
                (debt_token, encode_call(erc20_abi, debt_token, "totalSupply")),
            ]
        )
        if len(results) != 2:
            raise MalformedResponse(
                f"Expected 2 totalSupply results, got {len(results)}"
            )
        return (
            self._supply_or_zero(results[0], "aToken"),
            self._supply_or_zero(results[1], "variableDebtToken"),
        )

    async def fetch_metrics(self) -> ProtocolMetrics:
        reserve = await self._read_reserve()
        logger.debug(
            "AAVE reserve tokens: aToken=%s debtToken=%s",
            reserve["a_token_address"],
            reserve["variable_debt_token_address"],
        )

        total_supplied, total_borrowed = await self._read_token_supplies(
            reserve["a_token_address"], reserve["variable_debt_token_address"]
        )

        decimals = self.config.asset_decimals
        return ProtocolMetrics(
            total_supplied=token_amount(total_supplied, decimals),
            total_borrowed=token_amount(total_borrowed, decimals),
            supply_rate_pct=ray_to_percent(reserve["current_liquidity_rate"]),
            borrow_rate_pct=ray_to_percent(reserve["current_variable_borrow_rate"]),
            utilization_pct=utilization_from_amounts(total_borrowed, total_supplied),
        )
