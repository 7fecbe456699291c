"""
Action valuation - price each action at its reference swap and convert to USD.

Failures are returned as FailedAction values, never raised, so one bad
action does not stop the batch.
"""
import logging
from decimal import Decimal
from typing import Sequence

from .reward_prices import RewardPriceTable
from .swap_index import SwapPriceIndex, reference_swap
from .types import (
    ActionKind,
    ActionRecord,
    CashFlow,
    FailedAction,
    FailureReason,
    Resolution,
    ResolvedAction,
)

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 100


def failed_from_action(action: ActionRecord, reason: FailureReason, detail: str) -> FailedAction:
    return FailedAction(
        reason=reason,
        detail=detail,
        raw_timestamp=action.raw_timestamp,
        block=str(action.block_number),
        tx_hash=action.tx_hash,
        action=action.kind.value,
    )


def resolve_action(
    action: ActionRecord,
    index: SwapPriceIndex,
    reward_prices: RewardPriceTable
) -> Resolution:
    """
    Value a single action.

    Token A is the USD quote, so its amounts are already USD. Token B
    amounts and fees use the matched swap's price; rewards use the reward
    token price closest to the action's timestamp.
    """
    swap = reference_swap(index, action)
    if swap is None:
        direction = "before" if action.kind is ActionKind.MINT else "after"
        return failed_from_action(
            action,
            FailureReason.NO_SWAP_FOUND,
            f"no swap {direction} block {action.block_number} log {action.log_index}",
        )

    try:
        price = swap.price
        reward_price = reward_prices.price_at(action.timestamp)

        return ResolvedAction(
            action=action,
            swap=swap,
            reward_price=reward_price,
            amount_a_usd=action.amount_a,
            amount_b_usd=action.amount_b * price,
            fee_usd=action.fee_a + action.fee_b * price,
            reward_usd=action.reward_amount * reward_price,
        )
    except (ArithmeticError, TypeError) as e:
        return failed_from_action(action, FailureReason.PROCESSING_ERROR, str(e))


def resolve_actions(
    actions: Sequence[ActionRecord],
    index: SwapPriceIndex,
    reward_prices: RewardPriceTable
) -> tuple[tuple[ResolvedAction, ...], tuple[FailedAction, ...]]:
    """Resolve every action; returns (resolved, failed) in log order."""
    resolved: list[ResolvedAction] = []
    failed: list[FailedAction] = []
    total = len(actions)

    for i, action in enumerate(actions):
        if i % PROGRESS_EVERY == 0 or i == total - 1:
            logger.info(f"[{i + 1}/{total}] Resolving actions...")

        result = resolve_action(action, index, reward_prices)
        if isinstance(result, FailedAction):
            logger.warning(
                f"Skipping {action.kind.value} at block {action.block_number}: "
                f"{result.reason.value} ({result.detail})"
            )
            failed.append(result)
        else:
            resolved.append(result)

    logger.info(f"Resolved {len(resolved)} actions, {len(failed)} failed")
    return tuple(resolved), tuple(failed)


def action_cash_flow(resolved: ResolvedAction) -> Decimal:
    """
    Signed USD flow of an action from the wallet's point of view.

    Mints move capital into the pool (negative); burns, fee collection
    and reward claims return it (positive).
    """
    kind = resolved.kind
    flow = resolved.reward_usd
    if kind is ActionKind.MINT:
        flow -= resolved.value_usd
    elif kind is ActionKind.BURN:
        flow += resolved.value_usd
    elif kind is ActionKind.COLLECT:
        flow += resolved.fee_usd
    return flow


def cash_flows(resolved: Sequence[ResolvedAction]) -> tuple[CashFlow, ...]:
    """Non-zero cash flows of a sequence of resolved actions."""
    flows = []
    for r in resolved:
        amount = action_cash_flow(r)
        if amount != 0:
            flows.append(CashFlow(date=r.timestamp, amount=amount))
    return tuple(flows)
