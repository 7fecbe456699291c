"""Shared builders for LP returns tests."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from lp_returns.reward_prices import RewardPriceTable
from lp_returns.swap_index import SwapPriceIndex
from lp_returns.types import ActionKind, ActionRecord, SwapRecord
from lp_returns.valuation import resolve_action


T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def _dec(value) -> Decimal:
    return Decimal(str(value))


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def make_action():
    """Build an ActionRecord; timestamps are given as days after T0."""

    def build(
        kind,
        block,
        log_index=0,
        position_id="1",
        day=0,
        amount_a=0,
        amount_b=0,
        fee_a=0,
        fee_b=0,
        reward=0,
        raw_timestamp=None,
        sequence=0,
    ) -> ActionRecord:
        timestamp = T0 + timedelta(days=day)
        return ActionRecord(
            timestamp=timestamp,
            raw_timestamp=raw_timestamp or timestamp.isoformat(),
            block_number=block,
            log_index=log_index,
            kind=ActionKind(kind) if isinstance(kind, str) else kind,
            sequence=sequence,
            tx_hash=f"0x{block:064x}",
            position_id=position_id,
            amount_a=_dec(amount_a),
            amount_b=_dec(amount_b),
            fee_a=_dec(fee_a),
            fee_b=_dec(fee_b),
            reward_amount=_dec(reward),
        )

    return build


@pytest.fixture
def make_swap():
    def build(block, log_index, price, tx_hash="") -> SwapRecord:
        return SwapRecord(block_number=block, log_index=log_index, price=_dec(price), tx_hash=tx_hash)

    return build


@pytest.fixture
def resolve(make_swap):
    """Resolve an action against a single swap at the given price."""

    def build(action, price, reward_price=1):
        if action.kind is ActionKind.MINT:
            swap = make_swap(action.block_number, action.log_index - 1, price)
        else:
            swap = make_swap(action.block_number, action.log_index + 1, price)
        table = RewardPriceTable(fallback=_dec(reward_price))
        return resolve_action(action, SwapPriceIndex([swap]), table)

    return build


@pytest.fixture
def golden_swaps(make_swap):
    """Swaps pricing token B at 60,000 on entry, 62,000 mid-life and 65,000 on exit."""
    return SwapPriceIndex([
        make_swap(100, 1, 60000),
        make_swap(150, 3, 62000),
        make_swap(200, 7, 65000),
    ])


@pytest.fixture
def golden_actions(make_action):
    """
    One complete position: 1000 USDC + 0.01 cbBTC in at 60,000, a fee
    collection, then 500 USDC + 0.008 cbBTC out at 65,000 thirty days later.
    """
    return (
        make_action("mint", 100, 5, day=0, amount_a=1000, amount_b="0.01"),
        make_action("collect", 150, 2, day=10, fee_a=10, fee_b="0.0001"),
        make_action("burn", 200, 5, day=30, amount_a=500, amount_b="0.008"),
    )
