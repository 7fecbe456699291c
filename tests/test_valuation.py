from decimal import Decimal

import pytest

from lp_returns.lifecycle import classify_lifecycle, group_positions
from lp_returns.reward_prices import RewardPriceTable
from lp_returns.swap_index import SwapPriceIndex
from lp_returns.types import FailedAction, FailureReason, LifecycleState, ResolvedAction
from lp_returns.valuation import action_cash_flow, cash_flows, resolve_action, resolve_actions


@pytest.fixture
def prices():
    return RewardPriceTable(fallback=Decimal("2"))


class TestResolveAction:

    def test_matched_swap_is_strictly_ordered(self, make_action, make_swap, prices):
        index = SwapPriceIndex([make_swap(100, 4, 1), make_swap(100, 5, 2), make_swap(100, 6, 3)])

        mint = resolve_action(make_action("mint", 100, 5), index, prices)
        burn = resolve_action(make_action("burn", 100, 5), index, prices)

        assert mint.swap.key < (100, 5)
        assert burn.swap.key > (100, 5)
        assert mint.reference_price == 1
        assert burn.reference_price == 3

    def test_usd_conversion(self, make_action, make_swap, prices):
        index = SwapPriceIndex([make_swap(101, 0, 60000)])
        action = make_action("collect", 100, 5, fee_a=10, fee_b="0.001", reward=3)

        r = resolve_action(action, index, prices)

        assert isinstance(r, ResolvedAction)
        assert r.fee_usd == Decimal("70")
        assert r.reward_price == 2
        assert r.reward_usd == Decimal("6")

    def test_token_a_is_usd(self, make_action, make_swap, prices):
        index = SwapPriceIndex([make_swap(99, 0, 60000)])

        r = resolve_action(make_action("mint", 100, 5, amount_a=1000, amount_b="0.01"), index, prices)

        assert r.amount_a_usd == 1000
        assert r.amount_b_usd == 600
        assert r.value_usd == 1600

    def test_no_swap_found(self, make_action, make_swap, prices):
        index = SwapPriceIndex([make_swap(200, 0, 1)])

        r = resolve_action(make_action("mint", 100, 5), index, prices)

        assert isinstance(r, FailedAction)
        assert r.reason is FailureReason.NO_SWAP_FOUND
        assert r.block == "100"
        assert r.action == "mint"

    def test_processing_error(self, make_action, make_swap, prices):
        index = SwapPriceIndex([make_swap(101, 0, 1)])
        action = make_action("burn", 100, 5, amount_b="sNaN")

        r = resolve_action(action, index, prices)

        assert isinstance(r, FailedAction)
        assert r.reason is FailureReason.PROCESSING_ERROR

    def test_batch_continues_past_failures(self, make_action, make_swap, prices):
        index = SwapPriceIndex([make_swap(150, 0, 1)])
        actions = [
            make_action("mint", 100, 1),    # no swap before
            make_action("burn", 120, 1),
            make_action("burn", 200, 1),    # no swap after
            make_action("collect", 130, 1),
        ]

        resolved, failed = resolve_actions(actions, index, prices)

        assert [r.action.block_number for r in resolved] == [120, 130]
        assert [f.block for f in failed] == ["100", "200"]


class TestCashFlows:

    def test_signs(self, make_action, resolve):
        mint = resolve(make_action("mint", 100, 5, amount_a=1000, amount_b="0.01"), 60000)
        burn = resolve(make_action("burn", 200, 5, amount_a=500, amount_b="0.008", reward=1), 65000)
        collect = resolve(make_action("collect", 150, 5, fee_a=10, fee_b="0.0001"), 62000)
        claim = resolve(make_action("gauge_getReward", 160, 5, reward=4), 62000, reward_price="1.5")

        assert action_cash_flow(mint) == Decimal("-1600")
        assert action_cash_flow(burn) == Decimal("1021")
        assert action_cash_flow(collect) == Decimal("16.2")
        assert action_cash_flow(claim) == Decimal("6")

    def test_zero_flows_dropped(self, make_action, resolve):
        claim = resolve(make_action("gauge_getReward", 160, 5), 62000)
        mint = resolve(make_action("mint", 100, 5, amount_a=1), 60000)

        flows = cash_flows([claim, mint])

        assert len(flows) == 1
        assert flows[0].amount == -1


class TestLifecycle:

    def test_classification(self, make_action, resolve):
        mint = resolve(make_action("mint", 100, 5), 1)
        burn = resolve(make_action("burn", 200, 5), 1)
        collect = resolve(make_action("collect", 150, 5), 1)

        assert classify_lifecycle([mint, burn]) is LifecycleState.COMPLETE
        assert classify_lifecycle([mint, collect]) is LifecycleState.UNCLOSED
        assert classify_lifecycle([burn]) is LifecycleState.PRE_EXISTING
        assert classify_lifecycle([collect]) is LifecycleState.PRE_EXISTING

    def test_grouping(self, make_action, resolve):
        resolved = [
            resolve(make_action("burn", 300, 1, position_id="2", day=3), 1),
            resolve(make_action("mint", 100, 1, position_id="1", day=0), 1),
            resolve(make_action("gauge_getReward", 150, 1, position_id=None, day=1), 1),
            resolve(make_action("burn", 200, 1, position_id="1", day=2), 1),
            resolve(make_action("mint", 50, 1, position_id="1", day=-1), 1),
        ]

        positions, unattributed = group_positions(resolved)

        assert [p.position_id for p in positions] == ["2", "1"]
        assert positions[0].lifecycle is LifecycleState.PRE_EXISTING
        assert positions[1].lifecycle is LifecycleState.COMPLETE
        assert [r.action.block_number for r in positions[1].actions] == [50, 100, 200]
        assert len(unattributed) == 1
        assert unattributed[0].position_id is None
