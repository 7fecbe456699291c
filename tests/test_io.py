from datetime import datetime, timezone
from decimal import Decimal

import pandas as pd
import pytest

from lp_returns.io import (
    parse_timestamp,
    read_actions,
    read_earnings,
    read_swaps,
    write_swaps,
)
from lp_returns.types import ActionKind, FailureReason


ACTION_HEADER = (
    "timestamp,block_number,tx_index,tx_hash,action,log_index,token_id,tick_lower,tick_upper,"
    "liquidity,amount0,amount1,amount0_dec,amount1_dec,fee0,fee1,fee0_dec,fee1_dec,details"
)


def write_csv(path, header, rows):
    path.write_text("\n".join([header, *rows]) + "\n")
    return path


class TestParseTimestamp:

    def test_zulu(self):
        assert parse_timestamp("2025-01-01T12:00:00Z") == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        ts = parse_timestamp("2025-01-01T12:00:00+02:00")
        assert ts == datetime(2025, 1, 1, 10, tzinfo=timezone.utc)
        assert ts.tzinfo == timezone.utc

    def test_naive_taken_as_utc(self):
        assert parse_timestamp("2025-01-01 12:00:00") == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)


class TestReadActions:

    def test_rows_parsed(self, tmp_path):
        path = write_csv(tmp_path / "actions.csv", ACTION_HEADER, [
            "2025-01-01T12:00:00Z,100,3,0xaa,mint,5,42,-200,200,1,1,1,1000.5,0.01,,,,,",
            "2025-01-02T12:00:00Z,150,0,0xbb,collect,2,42,,,,,,,,1,1,10,0.0001,",
            "2025-01-03T12:00:00Z,160,0,0xcc,gauge_getReward,4,,,,,,,,,,,,,",
        ])

        actions, failures = read_actions(path)

        assert failures == ()
        mint, collect, claim = actions
        assert mint.kind is ActionKind.MINT
        assert mint.raw_timestamp == "2025-01-01T12:00:00Z"
        assert mint.key == (100, 5)
        assert mint.tx_index == 3
        assert mint.position_id == "42"
        assert mint.tick_lower == "-200"
        assert mint.amount_a == Decimal("1000.5")
        assert mint.amount_b == Decimal("0.01")
        assert collect.fee_b == Decimal("0.0001")
        assert claim.position_id is None
        assert claim.amount_a == 0
        assert [a.sequence for a in actions] == [0, 1, 2]

    def test_irrelevant_kinds_skipped(self, tmp_path):
        path = write_csv(tmp_path / "actions.csv", ACTION_HEADER, [
            "2025-01-01T12:00:00Z,100,0,0xaa,closing_state,5,42,,,,,,,,,,,,",
            "2025-01-01T12:00:00Z,100,0,0xaa,gauge_deposit,6,42,,,,,,,,,,,,",
            "2025-01-01T12:00:00Z,100,0,0xaa,burn,7,42,,,,,,1,0,,,,,",
        ])

        actions, failures = read_actions(path)

        assert [a.kind for a in actions] == [ActionKind.BURN]
        assert failures == ()

    def test_malformed_rows_reported(self, tmp_path):
        path = write_csv(tmp_path / "actions.csv", ACTION_HEADER, [
            "2025-01-01T12:00:00Z,abc,0,0xaa,mint,5,42,,,,,,1,1,,,,,",
            "not-a-date,100,0,0xbb,burn,5,42,,,,,,1,1,,,,,",
            "2025-01-01T12:00:00Z,100,0,0xcc,burn,6,42,,,,,,x,1,,,,,",
            "2025-01-01T12:00:00Z,101,0,0xdd,burn,6,42,,,,,,1,1,,,,,",
        ])

        actions, failures = read_actions(path)

        assert len(actions) == 1
        assert [f.tx_hash for f in failures] == ["0xaa", "0xbb", "0xcc"]
        assert all(f.reason is FailureReason.MALFORMED_ROW for f in failures)

    @pytest.mark.parametrize("amount", ["NaN", "nan", "inf", "-Infinity", "sNaN"])
    def test_non_finite_amounts_rejected(self, tmp_path, amount):
        path = write_csv(tmp_path / "actions.csv", ACTION_HEADER, [
            f"2025-01-01T12:00:00Z,100,0,0xaa,burn,5,42,,,,,,{amount},1,,,,,",
            "2025-01-01T12:00:00Z,101,0,0xbb,burn,6,42,,,,,,1,1,,,,,",
        ])

        actions, failures = read_actions(path)

        assert [a.tx_hash for a in actions] == ["0xbb"]
        (failure,) = failures
        assert failure.reason is FailureReason.MALFORMED_ROW
        assert failure.tx_hash == "0xaa"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_actions(tmp_path / "missing.csv")


class TestReadEarnings:

    def test_rows_parsed(self, tmp_path):
        path = write_csv(tmp_path / "earnings.csv", "timestamp,action,token_id,reward,inpos0,inpos1", [
            "2025-01-01T12:00:00Z,burn,42,1.5,100,0.001",
            "2025-01-01T12:00:00Z,gauge_getReward,,3,,",
        ])

        burn, claim = read_earnings(path)

        assert burn.position_id == "42"
        assert burn.reward == Decimal("1.5")
        assert burn.in_position_b == Decimal("0.001")
        assert claim.position_id is None
        assert claim.reward == 3

    def test_bad_rows_skipped(self, tmp_path):
        path = write_csv(tmp_path / "earnings.csv", "timestamp,action,token_id,reward,inpos0,inpos1", [
            "2025-01-01T12:00:00Z,burn,42,lots,100,0.001",
            "2025-01-01T12:00:00Z,collect,42,1,NaN,",
            "2025-01-02T12:00:00Z,collect,42,2,,",
        ])

        (record,) = read_earnings(path)

        assert record.reward == 2

    def test_missing_columns_skip_every_row(self, tmp_path):
        path = write_csv(tmp_path / "earnings.csv", "token_id,reward", ["42,1"])

        assert read_earnings(path) == ()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_earnings(tmp_path / "missing.csv")


class TestSwapCache:

    def test_prices_kept_exact(self, tmp_path, make_swap):
        price = "65432.123456789012345678901234567890"
        path = write_swaps([make_swap(100, 1, price, tx_hash="0xab")], tmp_path / "swaps.csv")

        (swap,) = read_swaps(path)

        assert swap.price == Decimal(price)
        assert swap.key == (100, 1)
        assert swap.tx_hash == "0xab"
        assert list(pd.read_csv(path).columns) == [
            "block_number", "log_index", "tx_hash", "sqrt_price_x96", "price",
        ]
