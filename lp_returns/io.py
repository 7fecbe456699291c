"""
CSV input and report output.

Inputs are read as strings (pandas, no NA coercion) and converted to Decimal
so amounts keep their exact representation. Reports are written with
pandas, one row per record, Decimal values as floats.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd

from .config import PoolConfig, REWARD_SYMBOL
from .types import (
    ZERO,
    ActionKind,
    ActionRecord,
    AnalysisResult,
    DailyStats,
    EarningsRecord,
    FailedAction,
    FailureReason,
    PositionMetrics,
    ResolvedAction,
    SwapRecord,
    WalletMetrics,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

RELEVANT_ACTIONS = frozenset(kind.value for kind in ActionKind)
NOT_AVAILABLE = "N/A"
WALLET_ROW = "WALLET_TOTAL"

TRANSACTIONS_FILE = "transaction_details.csv"
POSITIONS_FILE = "analysis_by_position.csv"
DAILY_FILE = "analysis_by_day.csv"
FAILED_FILE = "failed_actions.csv"


# =============================================================================
# Field Parsing
# =============================================================================

def parse_timestamp(raw: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def excel_timestamp(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M")


def _decimal(value: str) -> Decimal:
    text = (value or "").strip()
    if not text:
        return ZERO
    amount = Decimal(text)
    if not amount.is_finite():
        raise ValueError(f"non-finite amount {text!r}")
    return amount


def _optional(value: str) -> Optional[str]:
    text = (value or "").strip()
    return text or None


def _read_table(path: PathLike) -> pd.DataFrame:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"{path} not found")
    return pd.read_csv(path, dtype=str, keep_default_na=False, skip_blank_lines=True)


# =============================================================================
# Inputs
# =============================================================================

def action_from_row(row: dict, sequence: int) -> ActionRecord:
    """Convert one action-log row; raises KeyError/ValueError/ArithmeticError."""
    raw_timestamp = row["timestamp"].strip()

    return ActionRecord(
        timestamp=parse_timestamp(raw_timestamp),
        raw_timestamp=raw_timestamp,
        block_number=int(row["block_number"]),
        log_index=int(row["log_index"]),
        kind=ActionKind(row["action"].strip()),
        sequence=sequence,
        tx_index=int(row.get("tx_index") or 0),
        tx_hash=row.get("tx_hash", "").strip(),
        position_id=_optional(row.get("token_id", "")),
        tick_lower=_optional(row.get("tick_lower", "")),
        tick_upper=_optional(row.get("tick_upper", "")),
        amount_a=_decimal(row.get("amount0_dec", "")),
        amount_b=_decimal(row.get("amount1_dec", "")),
        fee_a=_decimal(row.get("fee0_dec", "")),
        fee_b=_decimal(row.get("fee1_dec", "")),
    )


def read_actions(path: PathLike) -> tuple[tuple[ActionRecord, ...], tuple[FailedAction, ...]]:
    """
    Read the action log.

    Only mint, burn, collect and gauge_getReward rows are kept. Rows that
    cannot be parsed are returned as malformed_row failures.
    """
    df = _read_table(path)

    actions: list[ActionRecord] = []
    failures: list[FailedAction] = []
    skipped = 0

    for row in df.to_dict("records"):
        kind = row.get("action", "").strip()
        if kind not in RELEVANT_ACTIONS:
            skipped += 1
            continue

        try:
            actions.append(action_from_row(row, len(actions)))
        except (KeyError, ValueError, ArithmeticError) as e:
            logger.warning(f"Malformed {kind} row at block {row.get('block_number', '?')}: {e}")
            failures.append(FailedAction(
                reason=FailureReason.MALFORMED_ROW,
                detail=f"{type(e).__name__}: {e}",
                raw_timestamp=row.get("timestamp", ""),
                block=row.get("block_number", ""),
                tx_hash=row.get("tx_hash", ""),
                action=kind,
            ))

    logger.info(
        f"Loaded {len(actions)} actions from {path} "
        f"({skipped} irrelevant, {len(failures)} malformed)"
    )
    return tuple(actions), tuple(failures)


def earnings_from_row(row: dict) -> EarningsRecord:
    """Convert one earnings-log row; raises KeyError/ValueError/ArithmeticError."""
    return EarningsRecord(
        raw_timestamp=row["timestamp"].strip(),
        action=row["action"].strip(),
        position_id=_optional(row.get("token_id", "")),
        reward=_decimal(row.get("reward", "")),
        in_position_a=_decimal(row.get("inpos0", "")),
        in_position_b=_decimal(row.get("inpos1", "")),
    )


def read_earnings(path: PathLike) -> tuple[EarningsRecord, ...]:
    """Read the per-action earnings log. Unparseable rows are logged and skipped."""
    df = _read_table(path)

    records = []
    skipped = 0
    for row in df.to_dict("records"):
        try:
            records.append(earnings_from_row(row))
        except (KeyError, ValueError, ArithmeticError) as e:
            skipped += 1
            logger.warning(f"Skipping earnings row at {row.get('timestamp', '?')}: {type(e).__name__}: {e}")

    logger.info(f"Loaded {len(records)} earnings records from {path} ({skipped} skipped)")
    return tuple(records)


# =============================================================================
# Swap Cache
# =============================================================================

SWAP_COLUMNS = ["block_number", "log_index", "tx_hash", "sqrt_price_x96", "price"]


def read_swaps(path: PathLike) -> tuple[SwapRecord, ...]:
    """Read a swap cache written by write_swaps."""
    df = _read_table(path)

    swaps = tuple(
        SwapRecord(
            block_number=int(row["block_number"]),
            log_index=int(row["log_index"]),
            price=Decimal(row["price"]),
            tx_hash=row["tx_hash"],
            sqrt_price_x96=int(row["sqrt_price_x96"] or 0),
        )
        for row in df.to_dict("records")
    )
    logger.info(f"Loaded {len(swaps)} cached swaps from {path}")
    return swaps


def write_swaps(swaps, path: PathLike) -> Path:
    """Write swaps with prices as exact decimal strings."""
    rows = [
        [s.block_number, s.log_index, s.tx_hash, str(s.sqrt_price_x96), str(s.price)]
        for s in swaps
    ]
    return _write_frame(rows, SWAP_COLUMNS, path)


# =============================================================================
# Reports
# =============================================================================

def _float(value: Decimal) -> float:
    return float(value)


def _rate(value: Optional[Decimal]):
    return NOT_AVAILABLE if value is None else float(value)


def _iso(ts: Optional[datetime]) -> str:
    return ts.isoformat() if ts else ""


def _write_frame(rows: list, columns: list[str], path: PathLike) -> Path:
    path = Path(path)
    pd.DataFrame(rows, columns=columns).to_csv(path, index=False)
    logger.info(f"Wrote {len(rows)} rows to {path}")
    return path


def transaction_columns(pool: PoolConfig) -> list[str]:
    b = pool.token_b_symbol
    r = REWARD_SYMBOL
    return [
        "timestamp", "timestamp_excel", "tx_hash", "block", "block_index",
        "swap_block", "swap_index", "swap_hash", "token_id", "token_id_inferred",
        "action", f"{b}_price", f"{r}_price", "tick_lower", "tick_upper",
        "amount0_dec", "amount1_dec", "fee0_dec", "fee1_dec", "reward",
        "amount0_usd", "amount1_usd", "fee_usd", f"{r}_usd",
    ]


def transaction_row(r: ResolvedAction) -> list:
    a = r.action
    return [
        a.raw_timestamp, excel_timestamp(a.timestamp), a.tx_hash, a.block_number, a.log_index,
        r.swap.block_number, r.swap.log_index, r.swap.tx_hash, a.position_id or "",
        a.position_id_inferred,
        a.kind.value, _float(r.reference_price), _float(r.reward_price),
        a.tick_lower or "", a.tick_upper or "",
        _float(a.amount_a), _float(a.amount_b), _float(a.fee_a), _float(a.fee_b),
        _float(a.reward_amount),
        _float(r.amount_a_usd), _float(r.amount_b_usd), _float(r.fee_usd), _float(r.reward_usd),
    ]


def write_transactions(
    resolved: Sequence[ResolvedAction],
    path: PathLike,
    pool: PoolConfig = PoolConfig()
) -> Path:
    rows = [transaction_row(r) for r in resolved]
    return _write_frame(rows, transaction_columns(pool), path)


def position_columns(pool: PoolConfig) -> list[str]:
    a = pool.token_a_symbol.lower()
    b = pool.token_b_symbol.lower()
    return [
        "row_type", "token_id", "lifecycle", "positions_count", "events_count",
        "mint_count", "burn_count", "collect_count", "active_time_seconds",
        "first_mint_timestamp", "first_burn_timestamp",
        f"total_deposit_{a}", f"total_deposit_{b}", f"{b}_price_at_deposit", "deposit_value_usd",
        f"total_withdraw_{a}", f"total_withdraw_{b}", f"{b}_price_at_withdrawal",
        "withdrawal_value_usd", f"net_{a}_change", f"net_{b}_change",
        "total_fees_usd", "reward_amount", "rewards_usd", "hodl_value_at_exit_usd",
        "impermanent_loss_usd", "price_appreciation_usd", "profit_usd", "total_return_usd",
        "avg_capital_deployed_usd", "operating_seconds", "apr", "xirr",
    ]


def position_row(m: PositionMetrics) -> list:
    return [
        "position", m.position_id, m.lifecycle.value, 1, m.event_count,
        m.mint_count, m.burn_count, m.collect_count, _float(m.active_time_seconds),
        _iso(m.first_mint_at), _iso(m.first_burn_at),
        _float(m.deposit_a), _float(m.deposit_b), _float(m.entry_price), _float(m.deposit_usd),
        _float(m.withdraw_a), _float(m.withdraw_b), _float(m.exit_price),
        _float(m.withdraw_usd), _float(m.withdraw_a - m.deposit_a), _float(m.withdraw_b - m.deposit_b),
        _float(m.fees_usd), _float(m.reward_amount), _float(m.rewards_usd),
        _float(m.hodl_value_at_exit),
        _float(m.impermanent_loss_usd), _float(m.price_appreciation_usd), _float(m.profit_usd),
        _float(m.total_return_usd),
        "", "", "", _rate(m.xirr),
    ]


def wallet_row(w: WalletMetrics) -> list:
    return [
        WALLET_ROW, "", "", w.positions_count, w.event_count,
        "", "", "", _float(w.avg_active_time_seconds),
        "", "",
        _float(w.deposit_a), _float(w.deposit_b), "", _float(w.deposit_usd),
        _float(w.withdraw_a), _float(w.withdraw_b), "",
        _float(w.withdraw_usd), _float(w.net_a_change), _float(w.net_b_change),
        _float(w.fees_usd), _float(w.reward_amount), _float(w.rewards_usd),
        "",
        _float(w.impermanent_loss_usd), "", _float(w.profit_usd), _float(w.total_return_usd),
        _float(w.avg_capital_deployed), _float(w.operating_seconds), _rate(w.apr), _rate(w.xirr),
    ]


def write_positions(
    metrics: Sequence[PositionMetrics],
    wallet: WalletMetrics,
    path: PathLike,
    pool: PoolConfig = PoolConfig()
) -> Path:
    """Per-position rows followed by a WALLET_TOTAL row."""
    rows = [position_row(m) for m in metrics]
    rows.append(wallet_row(wallet))
    return _write_frame(rows, position_columns(pool), path)


def daily_columns(pool: PoolConfig) -> list[str]:
    a = pool.token_a_symbol.lower()
    b = pool.token_b_symbol.lower()
    return [
        "date", "events_count", "positions_opened", "positions_closed",
        f"deposit_{a}", f"deposit_{b}", "deposit_usd",
        f"withdraw_{a}", f"withdraw_{b}", "withdraw_usd",
        "fees_usd", "reward_amount", "rewards_usd", "income_usd", "capital_deployed_usd",
    ]


def daily_row(d: DailyStats) -> list:
    return [
        d.date, d.event_count, d.positions_opened, d.positions_closed,
        _float(d.deposit_a), _float(d.deposit_b), _float(d.deposit_usd),
        _float(d.withdraw_a), _float(d.withdraw_b), _float(d.withdraw_usd),
        _float(d.fees_usd), _float(d.reward_amount), _float(d.rewards_usd),
        _float(d.income_usd), _float(d.capital_deployed_usd),
    ]


def write_daily(
    days: Sequence[DailyStats],
    total: DailyStats,
    path: PathLike,
    pool: PoolConfig = PoolConfig()
) -> Path:
    """Per-day rows followed by a TOTAL row."""
    rows = [daily_row(d) for d in days]
    rows.append(daily_row(total))
    return _write_frame(rows, daily_columns(pool), path)


FAILED_COLUMNS = ["timestamp", "block", "tx_hash", "action", "reason", "detail"]


def write_failed(failed: Sequence[FailedAction], path: PathLike) -> Path:
    rows = [
        [f.raw_timestamp, f.block, f.tx_hash, f.action, f.reason.value, f.detail]
        for f in failed
    ]
    return _write_frame(rows, FAILED_COLUMNS, path)


def write_reports(
    result: AnalysisResult,
    output_dir: PathLike,
    pool: PoolConfig = PoolConfig()
) -> dict[str, Path]:
    """Write all four report files into output_dir, creating it if needed."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)

    return {
        "transactions": write_transactions(result.resolved, out / TRANSACTIONS_FILE, pool),
        "positions": write_positions(result.position_metrics, result.wallet, out / POSITIONS_FILE, pool),
        "daily": write_daily(result.daily, result.daily_total, out / DAILY_FILE, pool),
        "failed": write_failed(result.failed, out / FAILED_FILE),
    }
