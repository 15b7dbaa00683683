from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Sequence

from web3 import Web3

ABIS_DIR = Path(__file__).parent / "abis"

AAVE_POOL_ABI_PATH = ABIS_DIR / "AavePool.json"
COMPOUND_COMET_ABI_PATH = ABIS_DIR / "CompoundComet.json"
ERC20_ABI_PATH = ABIS_DIR / "ERC20.json"
MULTICALL3_ABI_PATH = ABIS_DIR / "Multicall3.json"

# Offline instance used only for calldata encoding.
_ENCODER = Web3()


def load_abi(path: str | Path) -> list[dict]:
    """Load an ABI from a JSON file and return its "abi" field.

    Args:
        path: Path to the JSON file containing an "abi" field.

    Returns:
        ABI as a list of dictionaries.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        KeyError: If the JSON does not contain an "abi" field.
    """
    p = Path(path)
    with p.open() as f:
        data = json.load(f)
    return data["abi"]


@lru_cache(maxsize=None)
def _cached_abi(path: Path) -> tuple[dict, ...]:
    return tuple(load_abi(path))


def load_aave_pool_abi() -> list[dict]:
    """Load the AAVE v3 Pool ABI."""
    return list(_cached_abi(AAVE_POOL_ABI_PATH))


def load_compound_comet_abi() -> list[dict]:
    """Load the Compound v3 Comet ABI."""
    return list(_cached_abi(COMPOUND_COMET_ABI_PATH))


def load_erc20_abi() -> list[dict]:
    """Load the ERC20 ABI."""
    return list(_cached_abi(ERC20_ABI_PATH))


def load_multicall3_abi() -> list[dict]:
    """Load the Multicall3 ABI."""
    return list(_cached_abi(MULTICALL3_ABI_PATH))


def encode_call(
    abi: list[dict], address: str, fn_name: str, args: Sequence[Any] = ()
) -> bytes:
    """Encode calldata for ``fn_name`` on the contract at ``address``.

    Returns:
        Raw calldata (selector followed by ABI-encoded arguments).
    """
    contract = _ENCODER.eth.contract(
        address=Web3.to_checksum_address(address), abi=abi
    )
    calldata_hex = contract.encode_abi(
        abi_element_identifier=fn_name, args=list(args)
    )
    return bytes.fromhex(calldata_hex.removeprefix("0x"))
