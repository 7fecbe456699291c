"""
Valuation metrics - per-position and wallet totals, impermanent loss, profit.

All functions are pure - no side effects, no mutation.
"""
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from .types import (
    ZERO,
    ActionKind,
    LifecycleState,
    Position,
    PositionMetrics,
    ResolvedAction,
    WalletMetrics,
)
from .valuation import cash_flows
from .xirr import DEFAULT_SOLVER, SECONDS_PER_DAY, SolverConfig, xirr


def _total(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def _seconds_between(start, end) -> Decimal:
    return Decimal(str((end - start).total_seconds()))


# =============================================================================
# Impermanent Loss
# =============================================================================

def weighted_exit_price(burns: Sequence[ResolvedAction]) -> Decimal:
    """
    USD per token B realized across all burns.

    (total withdrawn USD - token A withdrawn) / token B withdrawn, falling
    back to the first burn's reference price when no token B came out.
    """
    if not burns:
        return ZERO

    withdraw_b = _total(b.action.amount_b for b in burns)
    if withdraw_b == 0:
        return burns[0].reference_price

    withdraw_usd = _total(b.value_usd for b in burns)
    withdraw_a = _total(b.action.amount_a for b in burns)
    return (withdraw_usd - withdraw_a) / withdraw_b


def hodl_value_at_exit(deposit_a: Decimal, deposit_b: Decimal, exit_price: Decimal) -> Decimal:
    """Value of the deposited tokens, had they been held, at the exit price."""
    return deposit_a + deposit_b * exit_price


# =============================================================================
# Position Metrics
# =============================================================================

def compute_position_metrics(
    position: Position,
    solver: SolverConfig = DEFAULT_SOLVER
) -> PositionMetrics:
    """
    Compute deposits, withdrawals, fees, rewards, IL and profit for a position.

    IL and profit are only defined for complete positions and are zero
    otherwise. Profit is measured against the deposit's USD value at
    deposit time:

        profit = (withdraw_usd - deposit_usd) + rewards_usd
               = IL + (hodl_at_exit - hodl_at_deposit) + rewards_usd
    """
    mints = position.of_kind(ActionKind.MINT)
    burns = position.of_kind(ActionKind.BURN)
    collects = position.of_kind(ActionKind.COLLECT)

    deposit_a = _total(m.action.amount_a for m in mints)
    deposit_b = _total(m.action.amount_b for m in mints)
    deposit_usd = _total(m.value_usd for m in mints)

    withdraw_a = _total(b.action.amount_a for b in burns)
    withdraw_b = _total(b.action.amount_b for b in burns)
    withdraw_usd = _total(b.value_usd for b in burns)

    fees_usd = _total(c.fee_usd for c in collects)
    reward_amount = _total(r.action.reward_amount for r in position.actions)
    rewards_usd = _total(r.reward_usd for r in position.actions)

    first_mint = mints[0] if mints else None
    first_burn = burns[0] if burns else None

    active_time = ZERO
    if first_mint and first_burn:
        active_time = _seconds_between(first_mint.timestamp, first_burn.timestamp)

    hodl_exit = ZERO
    impermanent_loss = ZERO
    profit = ZERO

    if position.lifecycle is LifecycleState.COMPLETE:
        hodl_exit = hodl_value_at_exit(deposit_a, deposit_b, weighted_exit_price(burns))
        impermanent_loss = withdraw_usd - hodl_exit
        profit = (withdraw_usd - deposit_usd) + rewards_usd

    return PositionMetrics(
        position_id=position.position_id,
        lifecycle=position.lifecycle,
        event_count=len(position.actions),
        mint_count=len(mints),
        burn_count=len(burns),
        collect_count=len(collects),
        first_mint_at=first_mint.timestamp if first_mint else None,
        first_burn_at=first_burn.timestamp if first_burn else None,
        deposit_a=deposit_a,
        deposit_b=deposit_b,
        deposit_usd=deposit_usd,
        entry_price=first_mint.reference_price if first_mint else ZERO,
        withdraw_a=withdraw_a,
        withdraw_b=withdraw_b,
        withdraw_usd=withdraw_usd,
        exit_price=first_burn.reference_price if first_burn else ZERO,
        fees_usd=fees_usd,
        reward_amount=reward_amount,
        rewards_usd=rewards_usd,
        active_time_seconds=active_time,
        hodl_value_at_exit=hodl_exit,
        impermanent_loss_usd=impermanent_loss,
        profit_usd=profit,
        xirr=xirr(cash_flows(position.actions), solver),
    )


def compute_all_position_metrics(
    positions: Sequence[Position],
    solver: SolverConfig = DEFAULT_SOLVER
) -> tuple[PositionMetrics, ...]:
    return tuple(compute_position_metrics(p, solver) for p in positions)


# =============================================================================
# Wallet Metrics
# =============================================================================

def compute_apr(
    profit: Decimal,
    total_deposits: Decimal,
    positions_count: int,
    operating_seconds: Decimal
) -> Optional[Decimal]:
    """
    Annualized simple return on the average deposit per position.

    APR = (profit / (deposits / positions)) * (365 / days_active) * 100;
    None when there are no positions, no deposits or no elapsed time.
    """
    if positions_count == 0 or operating_seconds == 0:
        return None

    avg_deposit = total_deposits / positions_count
    if avg_deposit == 0:
        return None

    days_active = operating_seconds / SECONDS_PER_DAY
    return (profit / avg_deposit) * (Decimal(365) / days_active) * 100


def compute_wallet_metrics(
    positions: Sequence[Position],
    position_metrics: Sequence[PositionMetrics],
    unattributed: Sequence[ResolvedAction],
    resolved: Sequence[ResolvedAction],
    solver: SolverConfig = DEFAULT_SOLVER
) -> WalletMetrics:
    """
    Sum complete positions into wallet totals.

    Pre-existing and unclosed positions are counted but excluded from every
    total. Rewards from actions without a position id are added at wallet
    level.
    """
    complete = [m for m in position_metrics if m.lifecycle is LifecycleState.COMPLETE]
    complete_ids = {m.position_id for m in complete}
    count = len(complete)

    deposit_usd = _total(m.deposit_usd for m in complete)
    profit = _total(m.profit_usd for m in complete)

    operating = ZERO
    if resolved:
        timestamps = [r.timestamp for r in resolved]
        operating = _seconds_between(min(timestamps), max(timestamps))

    flows = list(cash_flows(unattributed))
    for position in positions:
        if position.position_id in complete_ids:
            flows.extend(cash_flows(position.actions))

    return WalletMetrics(
        positions_count=count,
        pre_existing_count=sum(
            1 for m in position_metrics if m.lifecycle is LifecycleState.PRE_EXISTING
        ),
        unclosed_count=sum(
            1 for m in position_metrics if m.lifecycle is LifecycleState.UNCLOSED
        ),
        event_count=len(resolved),
        deposit_a=_total(m.deposit_a for m in complete),
        deposit_b=_total(m.deposit_b for m in complete),
        deposit_usd=deposit_usd,
        withdraw_a=_total(m.withdraw_a for m in complete),
        withdraw_b=_total(m.withdraw_b for m in complete),
        withdraw_usd=_total(m.withdraw_usd for m in complete),
        avg_active_time_seconds=(
            _total(m.active_time_seconds for m in complete) / count if count else ZERO
        ),
        fees_usd=_total(m.fees_usd for m in complete),
        reward_amount=(
            _total(m.reward_amount for m in complete)
            + _total(r.action.reward_amount for r in unattributed)
        ),
        rewards_usd=(
            _total(m.rewards_usd for m in complete)
            + _total(r.reward_usd for r in unattributed)
        ),
        impermanent_loss_usd=_total(m.impermanent_loss_usd for m in complete),
        profit_usd=profit,
        operating_seconds=operating,
        apr=compute_apr(profit, deposit_usd, count, operating),
        xirr=xirr(flows, solver),
    )
