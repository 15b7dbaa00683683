"""Shared test doubles and raw return-data builders."""

from __future__ import annotations

from typing import Mapping, Sequence, Union

from lending_pulse.clients.chain import CallResult

AAVE_POOL = "0xBfC91D59fdAA134A4ED45f7B584cAf96D7792Eff"
COMET = "0xc3d688B66703497DAA19211EEdff47f25384cdc3"
USDC = "0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d"
A_TOKEN = "0x460b97BD498E1157530AEb3086301d5225b91216"
DEBT_TOKEN = "0x4fBE3A94C60A5085dA6a2D309965DcF34c36711d"


def uint_word(value: int) -> bytes:
    return value.to_bytes(32, "big")


def address_word(address: str) -> bytes:
    return bytes(12) + bytes.fromhex(address.removeprefix("0x"))


def reserve_data(
    liquidity_rate: int,
    borrow_rate: int,
    a_token: str = A_TOKEN,
    debt_token: str = DEBT_TOKEN,
    configuration: int = 0,
) -> bytes:
    """Build a 13-word getReserveData return value."""
    words = [
        uint_word(configuration),
        uint_word(10**27),
        uint_word(liquidity_rate),
        uint_word(10**27),
        uint_word(borrow_rate),
        uint_word(1_700_000_000),
        uint_word(3),
        address_word(a_token),
        address_word(debt_token),
        address_word("0x" + "11" * 20),
        uint_word(0),
        uint_word(0),
        uint_word(0),
    ]
    return b"".join(words)


def ok(value: int) -> CallResult:
    return CallResult(success=True, data=uint_word(value))


FAILED = CallResult(success=False, data=None)


BatchResponse = Union[list[CallResult], Exception]


class FakeChain:
    """In-memory chain reader.

    ``batches`` is either a queue consumed in call order, or a mapping from
    the first target address of a batch to its own queue, for tests where
    adapters run concurrently.
    """

    def __init__(
        self,
        raw: bytes | Exception | None = None,
        batches: Sequence[BatchResponse] | Mapping[str, Sequence[BatchResponse]] = (),
    ):
        self.raw = raw
        if isinstance(batches, Mapping):
            self.routes: dict[str, list[BatchResponse]] | None = {
                address.lower(): list(queue) for address, queue in batches.items()
            }
            self.batches: list[BatchResponse] = []
        else:
            self.routes = None
            self.batches = list(batches)
        self.raw_calls: list[tuple[str, bytes]] = []
        self.batch_calls: list[list[tuple[str, bytes]]] = []

    async def raw_call(self, address: str, calldata: bytes) -> bytes:
        self.raw_calls.append((address, calldata))
        if isinstance(self.raw, Exception):
            raise self.raw
        if self.raw is None:
            raise AssertionError("unexpected raw_call")
        return self.raw

    async def batch_call(self, calls) -> list[CallResult]:
        calls = list(calls)
        self.batch_calls.append(calls)
        queue = self.batches
        if self.routes is not None:
            queue = self.routes.get(calls[0][0].lower(), [])
        if not queue:
            raise AssertionError("unexpected batch_call")
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response
