"""Word-level decoding of raw contract-call return data.

Return data is a flat run of 32-byte words. Fields are pulled out by word
index instead of handing the whole struct to an ABI decoder, which lets the
caller leave wide fields (such as AAVE's packed configuration bitmap)
completely untouched.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Sequence

from eth_typing import ChecksumAddress, HexStr
from eth_utils import to_bytes, to_checksum_address

from .constants import ADDRESS_SIZE, WORD_SIZE
from .errors import MalformedResponse

UINT128_MAX = 2**128 - 1


class WordKind(str, Enum):
    UINT128 = "uint128"
    UINT256_SKIP = "uint256-skip"
    ADDRESS = "address"


@dataclass(frozen=True)
class FieldSpec:
    """One field of a word-aligned struct."""

    name: str
    word_index: int
    kind: WordKind


# IPool.getReserveData(asset) -> ReserveData, 13 words
AAVE_RESERVE_DATA_LAYOUT: tuple[FieldSpec, ...] = (
    FieldSpec("configuration", 0, WordKind.UINT256_SKIP),
    FieldSpec("liquidity_index", 1, WordKind.UINT128),
    FieldSpec("current_liquidity_rate", 2, WordKind.UINT128),
    FieldSpec("variable_borrow_index", 3, WordKind.UINT128),
    FieldSpec("current_variable_borrow_rate", 4, WordKind.UINT128),
    FieldSpec("last_update_timestamp", 5, WordKind.UINT128),
    FieldSpec("id", 6, WordKind.UINT128),
    FieldSpec("a_token_address", 7, WordKind.ADDRESS),
    FieldSpec("variable_debt_token_address", 8, WordKind.ADDRESS),
    FieldSpec("interest_rate_strategy_address", 9, WordKind.ADDRESS),
    FieldSpec("accrued_to_treasury", 10, WordKind.UINT128),
    FieldSpec("unbacked", 11, WordKind.UINT128),
    FieldSpec("isolation_mode_total_debt", 12, WordKind.UINT128),
)

# The subset of the reserve struct the AAVE adapter consumes.
AAVE_RESERVE_FIELDS: tuple[FieldSpec, ...] = tuple(
    field_spec
    for field_spec in AAVE_RESERVE_DATA_LAYOUT
    if field_spec.name
    in {
        "current_liquidity_rate",
        "current_variable_borrow_rate",
        "a_token_address",
        "variable_debt_token_address",
    }
)


def as_bytes(data: bytes | str) -> bytes:
    """Accept raw bytes or a 0x-prefixed hex string."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    try:
        return to_bytes(hexstr=HexStr(data))
    except ValueError as e:
        raise MalformedResponse(f"Return data is not valid hex: {e}") from e


def word_at(data: bytes, index: int) -> bytes:
    """Return word ``index`` of ``data``.

    Raises:
        MalformedResponse: If ``data`` does not contain the word.
    """
    start = index * WORD_SIZE
    end = start + WORD_SIZE
    if index < 0 or len(data) < end:
        raise MalformedResponse(
            f"Return data has {len(data)} bytes, need at least {end} for word {index}"
        )
    return data[start:end]


def _decode_uint128(word: bytes, name: str) -> int:
    value = int.from_bytes(word, "big")
    if value > UINT128_MAX:
        raise MalformedResponse(f"Field '{name}' does not fit in 128 bits")
    return value


def _decode_address(word: bytes) -> ChecksumAddress:
    return to_checksum_address(word[WORD_SIZE - ADDRESS_SIZE :])


def decode_words(
    data: bytes | str, fields: Sequence[FieldSpec]
) -> dict[str, Any]:
    """Decode ``fields`` out of ``data``.

    Length is checked up front against the highest requested word, so a short
    response fails before any field is read. ``UINT256_SKIP`` fields are
    never read and never appear in the result.

    Args:
        data: Raw return data.
        fields: Field table.

    Returns:
        Mapping of field name to ``int`` or checksum address.

    Raises:
        MalformedResponse: If the data is too short or a numeric field
            overflows 128 bits.
    """
    raw = as_bytes(data)
    if not fields:
        return {}

    required = (max(field_spec.word_index for field_spec in fields) + 1) * WORD_SIZE
    if len(raw) < required:
        raise MalformedResponse(
            f"Return data has {len(raw)} bytes, need at least {required}"
        )

    decoded: dict[str, Any] = {}
    for field_spec in fields:
        if field_spec.kind is WordKind.UINT256_SKIP:
            continue
        word = word_at(raw, field_spec.word_index)
        if field_spec.kind is WordKind.ADDRESS:
            decoded[field_spec.name] = _decode_address(word)
        else:
            decoded[field_spec.name] = _decode_uint128(word, field_spec.name)
    return decoded


def decode_uint_word(data: bytes | str, bits: int = 128) -> int:
    """Decode a single unsigned return value (``totalSupply()`` and friends).

    Raises:
        MalformedResponse: If the data is shorter than one word or the value
            does not fit in ``bits`` bits.
    """
    value = int.from_bytes(word_at(as_bytes(data), 0), "big")
    if value.bit_length() > bits:
        raise MalformedResponse(f"Return value does not fit in {bits} bits")
    return value
