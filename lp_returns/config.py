"""
Run configuration: pool constants, transport settings and retry policy.

Constants describe the Aerodrome Slipstream USDC/cbBTC pool on Base.
Environment variables (optionally from a .env file) override transport
settings.
"""
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv


# Pool
POOL_ADDRESS = "0x4e962BB3889Bf030368F56810A9c96B83CB3E778"  # USDC-cbBTC
TOKEN_A_SYMBOL = "USDC"        # token0, USD quote
TOKEN_B_SYMBOL = "cbBTC"       # token1
TOKEN_A_DECIMALS = 6
TOKEN_B_DECIMALS = 8
SWAP_EVENT_SIGNATURE = "Swap(address,address,int256,int256,uint160,uint128,int24)"

# Reward token
REWARD_SYMBOL = "AERO"
REWARD_COINGECKO_ID = "aerodrome-finance"
REWARD_FALLBACK_PRICE = "1.0"

# Transport
DEFAULT_RPC_URL = "https://mainnet.base.org"
DEFAULT_COINGECKO_URL = "https://api.coingecko.com/api/v3"
CHUNK_SIZE = 10_000            # blocks per eth_getLogs request
BLOCK_BUFFER = 50_000          # blocks fetched around the action range
CHUNK_DELAY = 0.2              # seconds between chunks
REQUEST_TIMEOUT = 60
MAX_RETRIES = 5
BACKOFF_BASE_DELAY = 1.0
BACKOFF_MULTIPLIER = 2.0

# Reward attribution
ATTRIBUTION_WINDOW = 5


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: base_delay * multiplier ** attempt."""
    max_attempts: int = MAX_RETRIES
    base_delay: float = BACKOFF_BASE_DELAY
    multiplier: float = BACKOFF_MULTIPLIER

    def delay(self, attempt: int) -> float:
        return self.base_delay * (self.multiplier ** attempt)


@dataclass(frozen=True)
class PoolConfig:
    """Pool address and token layout."""
    pool_address: str = POOL_ADDRESS
    token_a_symbol: str = TOKEN_A_SYMBOL
    token_b_symbol: str = TOKEN_B_SYMBOL
    token_a_decimals: int = TOKEN_A_DECIMALS
    token_b_decimals: int = TOKEN_B_DECIMALS
    # Pool price is token1 per token0; quoting token B in USD inverts it
    invert_price: bool = True


@dataclass(frozen=True)
class Settings:
    """Transport settings for one run."""
    rpc_url: str = DEFAULT_RPC_URL
    coingecko_url: str = DEFAULT_COINGECKO_URL
    chunk_size: int = CHUNK_SIZE
    block_buffer: int = BLOCK_BUFFER
    chunk_delay: float = CHUNK_DELAY
    request_timeout: int = REQUEST_TIMEOUT
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    pool: PoolConfig = field(default_factory=PoolConfig)


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from the environment, loading .env first."""
    load_dotenv(env_file)

    retry = RetryPolicy(
        max_attempts=int(os.getenv("LP_MAX_RETRIES", MAX_RETRIES)),
        base_delay=float(os.getenv("LP_BACKOFF_BASE_DELAY", BACKOFF_BASE_DELAY)),
    )

    return Settings(
        rpc_url=os.getenv("BASE_RPC_URL", DEFAULT_RPC_URL),
        coingecko_url=os.getenv("COINGECKO_API_URL", DEFAULT_COINGECKO_URL),
        chunk_size=int(os.getenv("LP_CHUNK_SIZE", CHUNK_SIZE)),
        block_buffer=int(os.getenv("LP_BLOCK_BUFFER", BLOCK_BUFFER)),
        retry=retry,
    )
