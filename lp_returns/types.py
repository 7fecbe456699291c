"""
Immutable data types for LP returns analysis.

All types are frozen dataclasses - no mutation allowed.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Union


ZERO = Decimal("0")


# =============================================================================
# Swap Events
# =============================================================================

@dataclass(frozen=True)
class SwapRecord:
    """Swap event reduced to its ordering key and decoded price."""
    block_number: int
    log_index: int
    price: Decimal               # USD per token B at the post-swap pool state
    tx_hash: str = ""
    sqrt_price_x96: int = 0

    @property
    def key(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


# =============================================================================
# Action Log
# =============================================================================

class ActionKind(Enum):
    """Position lifecycle action, valued as it appears in the action log."""
    MINT = "mint"
    BURN = "burn"
    COLLECT = "collect"
    CLAIM_REWARD = "gauge_getReward"


@dataclass(frozen=True)
class ActionRecord:
    """Single row of the action log."""
    timestamp: datetime          # tz-aware, UTC
    raw_timestamp: str           # as read, used for earnings matching
    block_number: int
    log_index: int
    kind: ActionKind
    sequence: int = 0            # position in the input log
    tx_index: int = 0
    tx_hash: str = ""
    position_id: Optional[str] = None
    tick_lower: Optional[str] = None
    tick_upper: Optional[str] = None
    amount_a: Decimal = ZERO     # token A (USD quote), decimal-adjusted
    amount_b: Decimal = ZERO     # token B, decimal-adjusted
    fee_a: Decimal = ZERO
    fee_b: Decimal = ZERO
    reward_amount: Decimal = ZERO
    position_id_inferred: bool = False

    @property
    def key(self) -> tuple[int, int]:
        return (self.block_number, self.log_index)


@dataclass(frozen=True)
class EarningsRecord:
    """Reward earned by an action, from the earnings log."""
    raw_timestamp: str
    action: str
    position_id: Optional[str]
    reward: Decimal
    in_position_a: Decimal = ZERO
    in_position_b: Decimal = ZERO


# =============================================================================
# Resolution Results
# =============================================================================

@dataclass(frozen=True)
class ResolvedAction:
    """Action valued at the reference price of its matched swap."""
    action: ActionRecord
    swap: SwapRecord
    reward_price: Decimal
    amount_a_usd: Decimal
    amount_b_usd: Decimal
    fee_usd: Decimal
    reward_usd: Decimal

    @property
    def reference_price(self) -> Decimal:
        return self.swap.price

    @property
    def kind(self) -> ActionKind:
        return self.action.kind

    @property
    def timestamp(self) -> datetime:
        return self.action.timestamp

    @property
    def position_id(self) -> Optional[str]:
        return self.action.position_id

    @property
    def value_usd(self) -> Decimal:
        """Token A + token B value of the action's principal amounts."""
        return self.amount_a_usd + self.amount_b_usd


class FailureReason(Enum):
    NO_SWAP_FOUND = "no_swap_found"
    MALFORMED_ROW = "malformed_row"
    PROCESSING_ERROR = "processing_error"


@dataclass(frozen=True)
class FailedAction:
    """Action that could not be valued, with the reason it was skipped."""
    reason: FailureReason
    detail: str
    raw_timestamp: str = ""
    block: str = ""
    tx_hash: str = ""
    action: str = ""


Resolution = Union[ResolvedAction, FailedAction]


# =============================================================================
# Positions
# =============================================================================

class LifecycleState(Enum):
    COMPLETE = "complete"          # mint and burn observed
    PRE_EXISTING = "pre_existing"  # opened before the observed window
    UNCLOSED = "unclosed"          # still open at window end


@dataclass(frozen=True)
class Position:
    """Resolved actions sharing a position id."""
    position_id: str
    actions: tuple[ResolvedAction, ...]
    lifecycle: LifecycleState

    @property
    def is_complete(self) -> bool:
        return self.lifecycle is LifecycleState.COMPLETE

    def of_kind(self, kind: ActionKind) -> tuple[ResolvedAction, ...]:
        return tuple(r for r in self.actions if r.kind is kind)


@dataclass(frozen=True)
class CashFlow:
    """Dated flow; negative = capital into the pool, positive = capital back."""
    date: datetime
    amount: Decimal


# =============================================================================
# Metrics
# =============================================================================

@dataclass(frozen=True)
class PositionMetrics:
    """Valuation metrics for a single position."""
    position_id: str
    lifecycle: LifecycleState
    event_count: int
    mint_count: int
    burn_count: int
    collect_count: int
    first_mint_at: Optional[datetime]
    first_burn_at: Optional[datetime]
    deposit_a: Decimal
    deposit_b: Decimal
    deposit_usd: Decimal
    entry_price: Decimal         # first mint's reference price
    withdraw_a: Decimal
    withdraw_b: Decimal
    withdraw_usd: Decimal
    exit_price: Decimal          # first burn's reference price
    fees_usd: Decimal
    reward_amount: Decimal
    rewards_usd: Decimal
    active_time_seconds: Decimal
    hodl_value_at_exit: Decimal
    impermanent_loss_usd: Decimal
    profit_usd: Decimal
    xirr: Optional[Decimal]

    @property
    def hodl_value_at_deposit(self) -> Decimal:
        return self.deposit_usd

    @property
    def price_appreciation_usd(self) -> Decimal:
        """Change in value of the deposited tokens held from entry to exit."""
        if self.lifecycle is not LifecycleState.COMPLETE:
            return ZERO
        return self.hodl_value_at_exit - self.hodl_value_at_deposit

    @property
    def total_return_usd(self) -> Decimal:
        """Profit including collected fees."""
        return self.profit_usd + self.fees_usd


@dataclass(frozen=True)
class WalletMetrics:
    """Wallet totals across complete positions."""
    positions_count: int
    pre_existing_count: int
    unclosed_count: int
    event_count: int
    deposit_a: Decimal
    deposit_b: Decimal
    deposit_usd: Decimal
    withdraw_a: Decimal
    withdraw_b: Decimal
    withdraw_usd: Decimal
    avg_active_time_seconds: Decimal
    fees_usd: Decimal
    reward_amount: Decimal
    rewards_usd: Decimal
    impermanent_loss_usd: Decimal
    profit_usd: Decimal
    operating_seconds: Decimal
    apr: Optional[Decimal]
    xirr: Optional[Decimal]

    @property
    def excluded_count(self) -> int:
        return self.pre_existing_count + self.unclosed_count

    @property
    def net_a_change(self) -> Decimal:
        return self.withdraw_a - self.deposit_a

    @property
    def net_b_change(self) -> Decimal:
        return self.withdraw_b - self.deposit_b

    @property
    def avg_capital_deployed(self) -> Decimal:
        return (self.deposit_usd + self.withdraw_usd) / 2

    @property
    def total_return_usd(self) -> Decimal:
        return self.profit_usd + self.fees_usd


@dataclass(frozen=True)
class DailyStats:
    """Activity and income for one UTC calendar day."""
    date: str                    # YYYY-MM-DD, or "TOTAL"
    event_count: int
    positions_opened: int        # mints
    positions_closed: int        # burns
    deposit_a: Decimal
    deposit_b: Decimal
    deposit_usd: Decimal
    withdraw_a: Decimal
    withdraw_b: Decimal
    withdraw_usd: Decimal
    fees_usd: Decimal
    reward_amount: Decimal
    rewards_usd: Decimal
    capital_deployed_usd: Decimal  # cumulative deposits - withdrawals

    @property
    def income_usd(self) -> Decimal:
        return self.fees_usd + self.rewards_usd


# =============================================================================
# Analysis Outputs
# =============================================================================

@dataclass(frozen=True)
class AnalysisResult:
    """Complete analysis output."""
    resolved: tuple[ResolvedAction, ...]
    failed: tuple[FailedAction, ...]
    positions: tuple[Position, ...]
    unattributed: tuple[ResolvedAction, ...]
    position_metrics: tuple[PositionMetrics, ...]
    wallet: WalletMetrics
    daily: tuple[DailyStats, ...]
    daily_total: DailyStats
