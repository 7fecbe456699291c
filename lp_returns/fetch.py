"""
Transport - pool Swap logs over JSON-RPC and reward token prices from CoinGecko.

Swap logs are fetched in fixed-size block chunks with exponential backoff on
rate limits. Reward prices are best effort: any failure leaves an empty table
and lookups fall back to the fixed price.
"""
import logging
import time
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional, Sequence

import requests
from web3 import Web3

from .config import (
    CHUNK_DELAY,
    CHUNK_SIZE,
    REQUEST_TIMEOUT,
    REWARD_COINGECKO_ID,
    SWAP_EVENT_SIGNATURE,
    PoolConfig,
    RetryPolicy,
    Settings,
)
from .pricing import swaps_from_logs
from .reward_prices import RewardPriceTable
from .swap_index import SwapPriceIndex
from .types import ActionRecord

logger = logging.getLogger(__name__)

RATE_LIMIT_CODES = (-32016, 429)
PRICE_RANGE_BUFFER = 86_400  # seconds added on each side of the action range


class FetchError(Exception):
    """Transport failure that retries could not recover from."""


def swap_topic(signature: str) -> str:
    """Keccak-256 topic hash of an event signature."""
    return Web3.to_hex(Web3.keccak(text=signature))


def is_rate_limited(error: dict) -> bool:
    message = str(error.get("message", "")).lower()
    return error.get("code") in RATE_LIMIT_CODES or "rate limit" in message


def swap_block_range(actions: Sequence[ActionRecord], buffer: int) -> tuple[int, int]:
    """Block range covering every action plus a buffer on each side."""
    blocks = [a.block_number for a in actions]
    return max(0, min(blocks) - buffer), max(blocks) + buffer


# =============================================================================
# Swap Logs
# =============================================================================

class SwapLogFetcher:
    """Fetch and decode a pool's Swap events over eth_getLogs."""

    def __init__(
        self,
        rpc_url: str,
        pool: PoolConfig = PoolConfig(),
        retry: RetryPolicy = RetryPolicy(),
        chunk_size: int = CHUNK_SIZE,
        chunk_delay: float = CHUNK_DELAY,
        timeout: int = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.rpc_url = rpc_url
        self.pool = pool
        self.retry = retry
        self.chunk_size = chunk_size
        self.chunk_delay = chunk_delay
        self.timeout = timeout
        self.session = session or requests.Session()
        self._sleep = sleep
        self.address = Web3.to_checksum_address(pool.pool_address)
        self.topic = swap_topic(SWAP_EVENT_SIGNATURE)

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs) -> "SwapLogFetcher":
        return cls(
            settings.rpc_url,
            pool=settings.pool,
            retry=settings.retry,
            chunk_size=settings.chunk_size,
            chunk_delay=settings.chunk_delay,
            timeout=settings.request_timeout,
            **kwargs,
        )

    def _rpc_call(self, method: str, params: list) -> dict:
        """Make a JSON-RPC call. HTTP 429 is reported as an RPC rate-limit error."""
        response = self.session.post(
            self.rpc_url,
            json={"jsonrpc": "2.0", "method": method, "params": params, "id": 1},
            timeout=self.timeout,
        )
        if response.status_code == 429:
            return {"error": {"code": 429, "message": "rate limit (HTTP 429)"}}
        response.raise_for_status()
        return response.json()

    def _backoff(self, attempt: int, reason: str) -> None:
        if attempt >= self.retry.max_attempts - 1:
            logger.warning(f"{reason} (attempt {attempt + 1}/{self.retry.max_attempts}, giving up)")
            return
        wait = self.retry.delay(attempt)
        logger.warning(
            f"{reason}, waiting {wait:.1f}s (attempt {attempt + 1}/{self.retry.max_attempts})"
        )
        self._sleep(wait)

    def get_logs_with_retry(self, from_block: int, to_block: int) -> list:
        """Fetch one chunk of logs, retrying rate limits and network errors."""
        last_error = None

        for attempt in range(self.retry.max_attempts):
            try:
                result = self._rpc_call("eth_getLogs", [{
                    "address": self.address,
                    "topics": [self.topic],
                    "fromBlock": hex(from_block),
                    "toBlock": hex(to_block),
                }])
            except requests.exceptions.Timeout:
                last_error = f"Timeout on blocks {from_block}-{to_block}"
                self._backoff(attempt, last_error)
                continue
            except requests.exceptions.RequestException as e:
                last_error = f"Request error: {e}"
                self._backoff(attempt, last_error)
                continue

            if "error" in result:
                error = result["error"]
                last_error = error.get("message", str(error))
                if is_rate_limited(error):
                    self._backoff(attempt, "Rate limited")
                    continue
                raise FetchError(f"RPC error for blocks {from_block}-{to_block}: {last_error}")

            return result.get("result") or []

        raise FetchError(f"Failed after {self.retry.max_attempts} attempts: {last_error}")

    def fetch_logs(self, from_block: int, to_block: int) -> list:
        """Fetch all Swap logs in [from_block, to_block], chunk by chunk."""
        total_chunks = (to_block - from_block) // self.chunk_size + 1
        logger.info(
            f"Fetching swaps from block {from_block:,} to {to_block:,} ({total_chunks} chunks)"
        )

        logs: list = []
        for i, start in enumerate(range(from_block, to_block + 1, self.chunk_size)):
            end = min(start + self.chunk_size - 1, to_block)
            chunk = self.get_logs_with_retry(start, end)
            logs.extend(chunk)
            logger.debug(f"[{i + 1}/{total_chunks}] blocks {start:,}-{end:,}: {len(chunk)} swaps")

            if end < to_block and self.chunk_delay:
                self._sleep(self.chunk_delay)

        logger.info(f"Fetched {len(logs)} swap events")
        return logs

    def fetch_swaps(self, from_block: int, to_block: int) -> SwapPriceIndex:
        """Fetch, decode and index all swaps in the block range."""
        logs = self.fetch_logs(from_block, to_block)
        return SwapPriceIndex(swaps_from_logs(logs, self.pool))


# =============================================================================
# Reward Prices
# =============================================================================

class RewardPriceClient:
    """CoinGecko market_chart/range client for the reward token."""

    def __init__(
        self,
        base_url: str,
        coin_id: str = REWARD_COINGECKO_ID,
        timeout: int = REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        self.base_url = base_url.rstrip("/")
        self.coin_id = coin_id
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_range(self, start: datetime, end: datetime) -> RewardPriceTable:
        """
        Fetch USD prices between start and end, padded by one day each side.

        Returns an empty table (fallback pricing) if the request fails.
        """
        params = {
            "vs_currency": "usd",
            "from": int(start.timestamp()) - PRICE_RANGE_BUFFER,
            "to": int(end.timestamp()) + PRICE_RANGE_BUFFER,
        }
        url = f"{self.base_url}/coins/{self.coin_id}/market_chart/range"

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            points = response.json().get("prices", [])
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning(f"Failed to fetch {self.coin_id} prices: {e}. Falling back to fixed price")
            return RewardPriceTable()

        prices = {int(ts_ms) // 1000: Decimal(str(price)) for ts_ms, price in points}
        logger.info(f"Fetched {len(prices)} {self.coin_id} price points")
        return RewardPriceTable(prices)
