"""
Full analysis pipeline - ties all modules together.

run_analysis is pure; main() handles files, transport and printing.
"""
import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from .attribution import AttributionFn, attribute_rewards, neighbor_window_attribution, no_attribution
from .config import ATTRIBUTION_WINDOW, PoolConfig, load_settings
from .daily import aggregate_daily, total_daily
from .earnings import EarningsLookup, apply_earnings
from .fetch import FetchError, RewardPriceClient, SwapLogFetcher, swap_block_range
from .io import read_actions, read_earnings, read_swaps, write_reports, write_swaps
from .lifecycle import group_positions
from .metrics import compute_all_position_metrics, compute_wallet_metrics
from .reward_prices import RewardPriceTable
from .swap_index import SwapPriceIndex
from .types import (
    ActionRecord,
    AnalysisResult,
    DailyStats,
    EarningsRecord,
    FailedAction,
    PositionMetrics,
    WalletMetrics,
)
from .valuation import resolve_actions
from .xirr import DEFAULT_SOLVER, SECONDS_PER_DAY, SolverConfig

logger = logging.getLogger(__name__)


# =============================================================================
# Full Analysis Pipeline
# =============================================================================

def run_analysis(
    actions: Sequence[ActionRecord],
    earnings: Sequence[EarningsRecord],
    index: SwapPriceIndex,
    reward_prices: RewardPriceTable,
    attribution: Optional[AttributionFn] = None,
    input_failures: Sequence[FailedAction] = (),
    solver: SolverConfig = DEFAULT_SOLVER
) -> AnalysisResult:
    """
    Run the complete returns analysis.

    Steps:
    1. Attach rewards from the earnings log
    2. Attribute reward claims to positions
    3. Value each action at its reference swap
    4. Group actions into positions and classify them
    5. Position and wallet metrics
    6. Daily stats
    """
    if attribution is None:
        attribution = neighbor_window_attribution()

    with_rewards = apply_earnings(actions, EarningsLookup.from_records(earnings))
    attributed = attribute_rewards(with_rewards, attribution)

    resolved, failed = resolve_actions(attributed, index, reward_prices)

    positions, unattributed = group_positions(resolved)
    position_metrics = compute_all_position_metrics(positions, solver)
    wallet = compute_wallet_metrics(positions, position_metrics, unattributed, resolved, solver)

    daily = aggregate_daily(resolved)

    return AnalysisResult(
        resolved=resolved,
        failed=tuple(input_failures) + failed,
        positions=positions,
        unattributed=unattributed,
        position_metrics=position_metrics,
        wallet=wallet,
        daily=daily,
        daily_total=total_daily(daily),
    )


# =============================================================================
# Reporting Functions
# =============================================================================

def _pct(value) -> str:
    return "N/A" if value is None else f"{float(value):.2f}%"


def _days(seconds) -> str:
    return f"{float(seconds) / SECONDS_PER_DAY:.2f} days"


def format_position_summary(metrics: Sequence[PositionMetrics]) -> str:
    """Format per-position results as a text table."""
    lines = [
        "=" * 70,
        "POSITIONS",
        "=" * 70,
        "",
        f"{'Position':<12} {'State':<13} {'Deposit $':>11} {'Withdraw $':>11} "
        f"{'IL $':>9} {'Profit $':>9}",
        "-" * 70,
    ]

    for m in metrics:
        lines.append(
            f"{m.position_id:<12} "
            f"{m.lifecycle.value:<13} "
            f"{float(m.deposit_usd):>11,.2f} "
            f"{float(m.withdraw_usd):>11,.2f} "
            f"{float(m.impermanent_loss_usd):>9,.2f} "
            f"{float(m.profit_usd):>9,.2f}"
        )

    lines.append("-" * 70)
    return "\n".join(lines)


def format_wallet_summary(wallet: WalletMetrics, pool: PoolConfig = PoolConfig()) -> str:
    """Format wallet totals across complete positions."""
    a = pool.token_a_symbol
    b = pool.token_b_symbol

    lines = [
        "=" * 70,
        "WALLET SUMMARY (complete positions)",
        "=" * 70,
        "",
        f"Complete positions: {wallet.positions_count}",
        f"Excluded:           {wallet.excluded_count} "
        f"({wallet.pre_existing_count} pre-existing, {wallet.unclosed_count} unclosed)",
        f"Events:             {wallet.event_count}",
        f"Operating time:     {_days(wallet.operating_seconds)}",
        f"Avg active time:    {_days(wallet.avg_active_time_seconds)}",
        "",
        f"Deposits:           {float(wallet.deposit_usd):>15,.2f} USD",
        f"Withdrawals:        {float(wallet.withdraw_usd):>15,.2f} USD",
        f"Net {a} change:    {float(wallet.net_a_change):>15,.6f}",
        f"Net {b} change:   {float(wallet.net_b_change):>15,.8f}",
        f"Avg capital:        {float(wallet.avg_capital_deployed):>15,.2f} USD",
        "",
        f"Fees:               {float(wallet.fees_usd):>15,.2f} USD",
        f"Rewards:            {float(wallet.rewards_usd):>15,.2f} USD",
        f"Impermanent loss:   {float(wallet.impermanent_loss_usd):>15,.2f} USD",
        f"Profit:             {float(wallet.profit_usd):>15,.2f} USD",
        f"Total return:       {float(wallet.total_return_usd):>15,.2f} USD",
        "",
        f"APR:                {_pct(wallet.apr):>15}",
        f"XIRR:               {_pct(wallet.xirr):>15}",
    ]

    return "\n".join(lines)


def format_daily_summary(days: Sequence[DailyStats], total: DailyStats) -> str:
    """Format daily activity and income."""
    lines = [
        "=" * 70,
        "DAILY ACTIVITY",
        "=" * 70,
        "",
        f"{'Date':<12} {'Events':>7} {'Open':>5} {'Close':>6} "
        f"{'Income $':>11} {'Capital $':>13}",
        "-" * 70,
    ]

    for d in list(days) + [total]:
        if d is total:
            lines.append("-" * 70)
        lines.append(
            f"{d.date:<12} "
            f"{d.event_count:>7} "
            f"{d.positions_opened:>5} "
            f"{d.positions_closed:>6} "
            f"{float(d.income_usd):>11,.2f} "
            f"{float(d.capital_deployed_usd):>13,.2f}"
        )

    return "\n".join(lines)


def format_full_report(result: AnalysisResult, pool: PoolConfig = PoolConfig()) -> str:
    """Format complete analysis report."""
    sections = [
        "=" * 70,
        f"LP RETURNS ANALYSIS - {pool.token_a_symbol}/{pool.token_b_symbol}",
        f"Pool: {pool.pool_address[:10]}...",
        f"Actions valued: {len(result.resolved)} | Failed: {len(result.failed)}",
        "=" * 70,
        "",
        format_position_summary(result.position_metrics),
        "",
        format_wallet_summary(result.wallet, pool),
        "",
        format_daily_summary(result.daily, result.daily_total),
    ]

    return "\n".join(sections)


# =============================================================================
# Main Entry Point
# =============================================================================

def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lp-returns",
        description="Value LP position actions and compute IL, profit, APR and XIRR",
    )
    parser.add_argument("--actions", required=True, help="Action log CSV")
    parser.add_argument("--earnings", required=True, help="Per-action earnings CSV")
    parser.add_argument("--output-dir", default="output", help="Report directory (default: output)")
    parser.add_argument("--swaps-cache", help="Swap cache CSV; read if present, written after a fetch")
    parser.add_argument("--rpc-url", help="JSON-RPC endpoint (default: $BASE_RPC_URL)")
    parser.add_argument("--no-reward-prices", action="store_true",
                        help="Skip CoinGecko and price rewards at the fallback")
    parser.add_argument("--attribution-window", type=int, default=ATTRIBUTION_WINDOW,
                        help="Neighbour window for reward attribution, 0 to disable")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser.parse_args(argv)


def load_swap_index(actions, settings, cache: Optional[str]) -> SwapPriceIndex:
    """Swaps from the cache when it exists, otherwise fetched over RPC."""
    if cache and Path(cache).is_file():
        return SwapPriceIndex(read_swaps(cache))

    if not actions:
        return SwapPriceIndex()

    from_block, to_block = swap_block_range(actions, settings.block_buffer)
    index = SwapLogFetcher.from_settings(settings).fetch_swaps(from_block, to_block)
    if cache:
        write_swaps(index, cache)
    return index


def load_reward_prices(actions, settings, enabled: bool) -> RewardPriceTable:
    if not enabled or not actions:
        return RewardPriceTable()

    timestamps = [a.timestamp for a in actions]
    client = RewardPriceClient(settings.coingecko_url, timeout=settings.request_timeout)
    return client.fetch_range(min(timestamps), max(timestamps))


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run analysis, write reports and print the summary."""
    args = parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings()
    if args.rpc_url:
        settings = replace(settings, rpc_url=args.rpc_url)

    try:
        actions, input_failures = read_actions(args.actions)
        earnings = read_earnings(args.earnings)
        index = load_swap_index(actions, settings, args.swaps_cache)
    except FileNotFoundError as e:
        logger.error(f"Input file missing: {e}")
        return 1
    except FetchError as e:
        logger.error(f"Swap fetch failed: {e}")
        return 1

    logger.info(f"Swap index: {index!r}")
    reward_prices = load_reward_prices(actions, settings, not args.no_reward_prices)

    attribution = (
        neighbor_window_attribution(args.attribution_window)
        if args.attribution_window > 0 else no_attribution
    )

    result = run_analysis(
        actions,
        earnings,
        index,
        reward_prices,
        attribution=attribution,
        input_failures=input_failures,
    )

    write_reports(result, args.output_dir, settings.pool)
    print(format_full_report(result, settings.pool))
    return 0


if __name__ == "__main__":
    sys.exit(main())
