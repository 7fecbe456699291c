"""
LP Returns Analysis Module

Valuation and returns for concentrated-liquidity LP positions:
deposits, withdrawals, fees, rewards, impermanent loss, profit,
APR and XIRR from a log of position actions.

Pure functional core - side effects live in fetch, io and main().
"""

from .types import (
    SwapRecord,
    ActionKind,
    ActionRecord,
    EarningsRecord,
    ResolvedAction,
    FailureReason,
    FailedAction,
    LifecycleState,
    Position,
    CashFlow,
    PositionMetrics,
    WalletMetrics,
    DailyStats,
    AnalysisResult,
)

from .config import (
    PoolConfig,
    RetryPolicy,
    Settings,
    load_settings,
)

from .pricing import (
    decode_sqrt_price_x96,
    parse_sqrt_price_x96,
    swap_from_log,
)

from .swap_index import (
    SwapPriceIndex,
    reference_swap,
)

from .earnings import (
    EarningsLookup,
    apply_earnings,
)

from .attribution import (
    AttributionFn,
    neighbor_window_attribution,
    no_attribution,
    attribute_rewards,
)

from .reward_prices import RewardPriceTable

from .valuation import (
    resolve_action,
    resolve_actions,
    cash_flows,
)

from .lifecycle import (
    classify_lifecycle,
    group_positions,
)

from .metrics import (
    compute_position_metrics,
    compute_wallet_metrics,
    compute_apr,
)

from .xirr import (
    SolverConfig,
    xirr,
)

from .daily import (
    aggregate_daily,
    total_daily,
)

from .fetch import (
    FetchError,
    SwapLogFetcher,
    RewardPriceClient,
)

from .analysis import (
    run_analysis,
    format_full_report,
)

__all__ = [
    # Types
    "SwapRecord",
    "ActionKind",
    "ActionRecord",
    "EarningsRecord",
    "ResolvedAction",
    "FailureReason",
    "FailedAction",
    "LifecycleState",
    "Position",
    "CashFlow",
    "PositionMetrics",
    "WalletMetrics",
    "DailyStats",
    "AnalysisResult",
    # Config
    "PoolConfig",
    "RetryPolicy",
    "Settings",
    "load_settings",
    # Pricing
    "decode_sqrt_price_x96",
    "parse_sqrt_price_x96",
    "swap_from_log",
    "SwapPriceIndex",
    "reference_swap",
    "RewardPriceTable",
    # Rewards
    "EarningsLookup",
    "apply_earnings",
    "AttributionFn",
    "neighbor_window_attribution",
    "no_attribution",
    "attribute_rewards",
    # Valuation
    "resolve_action",
    "resolve_actions",
    "cash_flows",
    "classify_lifecycle",
    "group_positions",
    "compute_position_metrics",
    "compute_wallet_metrics",
    "compute_apr",
    "SolverConfig",
    "xirr",
    "aggregate_daily",
    "total_daily",
    # Transport
    "FetchError",
    "SwapLogFetcher",
    "RewardPriceClient",
    # Analysis
    "run_analysis",
    "format_full_report",
]
