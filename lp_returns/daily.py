"""
Daily aggregation - group resolved actions by UTC calendar day.

All functions are pure - no side effects, no mutation.
"""
from collections import defaultdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Sequence

from .types import ZERO, ActionKind, DailyStats, ResolvedAction


TOTAL_LABEL = "TOTAL"


# =============================================================================
# Daily Grouping
# =============================================================================

def timestamp_to_date(timestamp: datetime) -> str:
    """Convert a tz-aware timestamp to its UTC YYYY-MM-DD string."""
    return timestamp.astimezone(timezone.utc).date().isoformat()


def group_actions_by_date(
    resolved: Sequence[ResolvedAction]
) -> dict[str, list[ResolvedAction]]:
    """Group resolved actions by UTC calendar date."""
    grouped: dict[str, list[ResolvedAction]] = defaultdict(list)

    for r in resolved:
        grouped[timestamp_to_date(r.timestamp)].append(r)

    return dict(grouped)


# =============================================================================
# Daily Stats
# =============================================================================

def compute_day(
    day: str,
    actions: Sequence[ResolvedAction],
    capital_before: Decimal
) -> DailyStats:
    """Aggregate one day's actions on top of the capital deployed so far."""
    mints = [r for r in actions if r.kind is ActionKind.MINT]
    burns = [r for r in actions if r.kind is ActionKind.BURN]

    deposit_usd = sum((m.value_usd for m in mints), ZERO)
    withdraw_usd = sum((b.value_usd for b in burns), ZERO)

    return DailyStats(
        date=day,
        event_count=len(actions),
        positions_opened=len(mints),
        positions_closed=len(burns),
        deposit_a=sum((m.action.amount_a for m in mints), ZERO),
        deposit_b=sum((m.action.amount_b for m in mints), ZERO),
        deposit_usd=deposit_usd,
        withdraw_a=sum((b.action.amount_a for b in burns), ZERO),
        withdraw_b=sum((b.action.amount_b for b in burns), ZERO),
        withdraw_usd=withdraw_usd,
        fees_usd=sum((r.fee_usd for r in actions if r.kind is ActionKind.COLLECT), ZERO),
        reward_amount=sum((r.action.reward_amount for r in actions), ZERO),
        rewards_usd=sum((r.reward_usd for r in actions), ZERO),
        capital_deployed_usd=capital_before + deposit_usd - withdraw_usd,
    )


def aggregate_daily(
    resolved: Sequence[ResolvedAction]
) -> tuple[DailyStats, ...]:
    """
    Build one DailyStats per UTC day that has activity, sorted by date.

    capital_deployed_usd carries the running deposits - withdrawals
    through the end of each day.
    """
    grouped = group_actions_by_date(resolved)

    days = []
    capital = ZERO
    for day in sorted(grouped.keys()):
        stats = compute_day(day, grouped[day], capital)
        capital = stats.capital_deployed_usd
        days.append(stats)

    return tuple(days)


def total_daily(days: Sequence[DailyStats]) -> DailyStats:
    """
    Collapse daily rows into a single TOTAL row.

    Additive columns are summed; capital deployed is the last day's value.
    """
    return DailyStats(
        date=TOTAL_LABEL,
        event_count=sum(d.event_count for d in days),
        positions_opened=sum(d.positions_opened for d in days),
        positions_closed=sum(d.positions_closed for d in days),
        deposit_a=sum((d.deposit_a for d in days), ZERO),
        deposit_b=sum((d.deposit_b for d in days), ZERO),
        deposit_usd=sum((d.deposit_usd for d in days), ZERO),
        withdraw_a=sum((d.withdraw_a for d in days), ZERO),
        withdraw_b=sum((d.withdraw_b for d in days), ZERO),
        withdraw_usd=sum((d.withdraw_usd for d in days), ZERO),
        fees_usd=sum((d.fees_usd for d in days), ZERO),
        reward_amount=sum((d.reward_amount for d in days), ZERO),
        rewards_usd=sum((d.rewards_usd for d in days), ZERO),
        capital_deployed_usd=days[-1].capital_deployed_usd if days else ZERO,
    )
