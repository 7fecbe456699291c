"""
Price decoding - convert packed sqrtPriceX96 values to decimal prices.

All functions are pure - no side effects, no mutation.
"""
from decimal import Decimal, localcontext

from .config import PoolConfig
from .types import SwapRecord


Q192 = 2 ** 192
PRICE_PRECISION = 50

# Swap event data: amount0, amount1, sqrtPriceX96, liquidity, tick
SLOT_HEX_CHARS = 64
SQRT_PRICE_SLOT = 2


# =============================================================================
# Price Derivation
# =============================================================================

def decode_sqrt_price_x96(
    sqrt_price_x96: int,
    decimals_a: int,
    decimals_b: int,
    invert: bool = False
) -> Decimal:
    """
    Decode sqrtPriceX96 into a decimal-adjusted price.

    sqrtPriceX96 = sqrt(price) * 2^96, where price is raw token B units per
    raw token A unit. The integer is squared exactly and rescaled by 2^192
    once, so no precision is lost before the division.

    Returns token B per token A, or token A per token B when invert is set.
    """
    if sqrt_price_x96 <= 0:
        raise ValueError(f"sqrtPriceX96 must be positive, got {sqrt_price_x96}")

    with localcontext() as ctx:
        ctx.prec = PRICE_PRECISION
        raw_ratio = Decimal(sqrt_price_x96 * sqrt_price_x96) / Decimal(Q192)
        price = raw_ratio * (Decimal(10) ** (decimals_a - decimals_b))
        if invert:
            price = Decimal(1) / price
        return +price


def parse_sqrt_price_x96(data_hex: str) -> int:
    """Extract sqrtPriceX96 (third 32-byte slot) from Swap event data."""
    data = data_hex[2:] if data_hex.startswith("0x") else data_hex
    start = SQRT_PRICE_SLOT * SLOT_HEX_CHARS
    slot = data[start:start + SLOT_HEX_CHARS]
    if len(slot) != SLOT_HEX_CHARS:
        raise ValueError(f"Swap data too short: {len(data)} hex chars")
    return int(slot, 16)


def _hex_or_int(value) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16) if str(value).startswith("0x") else int(value)


def swap_from_log(log: dict, pool: PoolConfig) -> SwapRecord:
    """
    Convert a raw eth_getLogs Swap entry into a SwapRecord.

    Price is USD (token A) per token B when the pool is configured to invert.
    """
    sqrt_price_x96 = parse_sqrt_price_x96(log["data"])
    price = decode_sqrt_price_x96(
        sqrt_price_x96,
        pool.token_a_decimals,
        pool.token_b_decimals,
        invert=pool.invert_price,
    )

    return SwapRecord(
        block_number=_hex_or_int(log["blockNumber"]),
        log_index=_hex_or_int(log["logIndex"]),
        price=price,
        tx_hash=log.get("transactionHash", ""),
        sqrt_price_x96=sqrt_price_x96,
    )


def swaps_from_logs(logs, pool: PoolConfig) -> tuple[SwapRecord, ...]:
    """Convert all logs to swap records."""
    return tuple(swap_from_log(log, pool) for log in logs)
