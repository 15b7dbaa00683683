"""Contract addresses and fixed-point constants."""

from typing import Optional, TypedDict


class ChainDeployment(TypedDict):
    rpc_url: str
    aave_pool: Optional[str]
    compound_comet: Optional[str]
    usdc: Optional[str]


# Multicall3 is deployed at the same address on every supported chain.
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"

ARBITRUM_SEPOLIA: ChainDeployment = {
    "rpc_url": "https://sepolia-rollup.arbitrum.io/rpc",
    "aave_pool": "0xBfC91D59fdAA134A4ED45f7B584cAf96D7792Eff",
    # The published comet address for this testnet is malformed; configure
    # LENDING_PULSE_COMPOUND_COMET_ADDRESS explicitly.
    "compound_comet": None,
    "usdc": "0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d",
}

DEPLOYMENTS: dict[str, ChainDeployment] = {
    "arbitrum-sepolia": ARBITRUM_SEPOLIA,
}

DEFAULT_CHAIN = "arbitrum-sepolia"

# Fixed-point scales
RAY = 10**27
WAD = 10**18
SECONDS_PER_YEAR = 31_536_000
USDC_DECIMALS = 6

WORD_SIZE = 32
ADDRESS_SIZE = 20

# Aggregation cache
CACHE_TTL_SECONDS = 30
CACHE_CONTROL_HEADER = "public, max-age=30"

# Snapshot series: 2880 samples = 24h at 30s intervals
MAX_SAMPLES = 2880
DEDUP_WINDOW_SECONDS = 15
COMPARE_WINDOW_SECONDS = 5 * 60
HISTORY_LIMIT = 100

SERVICE_NAME = "lending-pulse"
