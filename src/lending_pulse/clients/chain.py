"""Chain access: single contract reads and Multicall3 batched reads.

This is the only module that talks to the RPC endpoint. Everything above it
sees two operations, ``raw_call`` and ``batch_call``, and never a web3 object.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Protocol, Sequence

import backoff
from eth_typing import URI
from web3 import Web3
from web3.exceptions import ProviderConnectionError

from ..abi import load_multicall3_abi
from ..errors import CallFailed
from ..logger import get_logger
from ..settings import PulseSettings

logger = get_logger(__name__)


@dataclass(frozen=True)
class CallResult:
    """Outcome of one entry of a batched call."""

    success: bool
    data: bytes | None = None


class ChainReader(Protocol):
    async def raw_call(self, address: str, calldata: bytes) -> bytes: ...

    async def batch_call(
        self, calls: Sequence[tuple[str, bytes]]
    ) -> list[CallResult]: ...


class ChainClient:
    """Throttled, retrying contract reader backed by web3."""

    def __init__(self, config: PulseSettings, w3: Web3 | None = None):
        self.config = config
        self.w3 = w3 or Web3(
            Web3.HTTPProvider(
                URI(config.rpc_url_required),
                request_kwargs={"timeout": config.rpc_timeout},
            )
        )
        self.multicall = self.w3.eth.contract(
            address=Web3.to_checksum_address(config.multicall_address),
            abi=load_multicall3_abi(),
        )

        self._rpc_sem = asyncio.Semaphore(config.rpc_max_concurrent_calls)
        self._rpc_delay = config.rpc_delay  # seconds
        self._rpc_jitter = config.rpc_jitter  # seconds

    @backoff.on_exception(
        backoff.expo, (ProviderConnectionError), max_time=30, jitter=backoff.full_jitter
    )
    async def _rpc(self, fn, *args, **kwargs):
        """Throttle + backoff a single RPC."""
        async with self._rpc_sem:
            try:
                return await asyncio.to_thread(fn, *args, **kwargs)
            finally:
                delay = self._rpc_delay + random.random() * self._rpc_jitter
                if delay > 0:
                    await asyncio.sleep(delay)

    async def raw_call(self, address: str, calldata: bytes) -> bytes:
        """Execute a single ``eth_call`` and return the raw return data.

        Raises:
            CallFailed: On transport errors, reverts, or empty return data.
        """
        to = Web3.to_checksum_address(address)
        try:
            result = await self._rpc(
                self.w3.eth.call, {"to": to, "data": "0x" + calldata.hex()}
            )
        except Exception as e:
            raise CallFailed(f"eth_call to {to} failed: {e}") from e

        data = bytes(result)
        if not data:
            raise CallFailed(f"eth_call to {to} returned empty data")
        logger.debug("eth_call to %s returned %d bytes", to, len(data))
        return data

    async def batch_call(self, calls: Sequence[tuple[str, bytes]]) -> list[CallResult]:
        """Execute ``calls`` through Multicall3 ``aggregate3``.

        Each entry is sent with ``allowFailure=true`` so a revert in one
        entry does not affect the others. Results keep the order of ``calls``.

        Raises:
            CallFailed: If the multicall itself could not be executed.
        """
        if not calls:
            return []

        payload = [
            (Web3.to_checksum_address(address), True, calldata)
            for address, calldata in calls
        ]
        try:
            responses = await self._rpc(
                self.multicall.functions.aggregate3(payload).call
            )
        except Exception as e:
            raise CallFailed(f"multicall of {len(calls)} call(s) failed: {e}") from e

        results = [
            CallResult(success=bool(success), data=bytes(data) if success else None)
            for success, data in responses
        ]
        logger.debug(
            "multicall returned %d/%d successful entries",
            sum(1 for r in results if r.success),
            len(results),
        )
        return results
