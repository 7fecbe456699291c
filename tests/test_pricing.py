from decimal import Decimal

import pytest

from lp_returns.config import PoolConfig
from lp_returns.pricing import decode_sqrt_price_x96, parse_sqrt_price_x96, swap_from_log


Q96 = 2 ** 96


def swap_data(sqrt_price_x96: int) -> str:
    slots = [
        (2 ** 256 - 5000),   # amount0 (negative)
        10 ** 6,             # amount1
        sqrt_price_x96,
        10 ** 18,            # liquidity
        (2 ** 256 - 200),    # tick (negative)
    ]
    return "0x" + "".join(format(s, "064x") for s in slots)


class TestDecodeSqrtPrice:

    def test_unit_sqrt_price_is_decimal_adjusted(self):
        # raw ratio 1, scaled by 10^(6-8)
        assert decode_sqrt_price_x96(Q96, 6, 8) == Decimal("0.01")

    def test_inverted_gives_usd_per_token_b(self):
        assert decode_sqrt_price_x96(Q96, 6, 8, invert=True) == Decimal("100")
        assert decode_sqrt_price_x96(2 * Q96, 6, 8, invert=True) == Decimal("25")
        assert decode_sqrt_price_x96(10 * Q96, 6, 8, invert=True) == Decimal("1")

    def test_large_values_keep_precision(self):
        # sqrtPriceX96 for ~60,000 USD per cbBTC is ~3.2e27; squaring overflows floats' precision
        sqrt_price = 3_234_476_458_726_140_000_000_000_000
        price = decode_sqrt_price_x96(sqrt_price, 6, 8, invert=True)
        assert 59_000 < price < 61_000
        assert len(price.as_tuple().digits) > 20

    def test_deterministic(self):
        a = decode_sqrt_price_x96(123456789 * Q96, 6, 8, invert=True)
        b = decode_sqrt_price_x96(123456789 * Q96, 6, 8, invert=True)
        assert a == b

    @pytest.mark.parametrize("value", [0, -1])
    def test_non_positive_rejected(self, value):
        with pytest.raises(ValueError):
            decode_sqrt_price_x96(value, 6, 8)


class TestSwapLogs:

    def test_parse_third_slot(self):
        assert parse_sqrt_price_x96(swap_data(Q96)) == Q96

    def test_parse_without_prefix(self):
        assert parse_sqrt_price_x96(swap_data(Q96)[2:]) == Q96

    def test_short_data_rejected(self):
        with pytest.raises(ValueError):
            parse_sqrt_price_x96("0x" + "00" * 64)

    def test_swap_from_log(self):
        log = {
            "blockNumber": "0x64",
            "logIndex": "0x3",
            "transactionHash": "0xabc",
            "data": swap_data(Q96),
        }
        swap = swap_from_log(log, PoolConfig())

        assert swap.key == (100, 3)
        assert swap.price == Decimal("100")
        assert swap.tx_hash == "0xabc"
        assert swap.sqrt_price_x96 == Q96
