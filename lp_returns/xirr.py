"""
XIRR - money-weighted annualized return via Newton-Raphson.

Returns None (not an error) when the cash flows are ill-posed or the
solver does not converge.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

import numpy as np

from .types import CashFlow


SECONDS_PER_DAY = 86_400
DAYS_PER_YEAR = 365


@dataclass(frozen=True)
class SolverConfig:
    """Newton-Raphson parameters. Rates are fractions (0.10 = 10%)."""
    guess: float = 0.10
    tolerance: float = 1e-6
    max_iterations: int = 100
    min_rate: float = -0.99
    max_rate: float = 10.0


DEFAULT_SOLVER = SolverConfig()


def _year_fractions(flows: Sequence[CashFlow]) -> np.ndarray:
    start = flows[0].date
    days = [(f.date - start).total_seconds() / SECONDS_PER_DAY for f in flows]
    return np.array(days, dtype=float) / DAYS_PER_YEAR


def npv(rate: float, amounts: np.ndarray, years: np.ndarray) -> float:
    """Net present value of the flows at an annual rate."""
    return float(np.sum(amounts * np.power(1.0 + rate, -years)))


def npv_derivative(rate: float, amounts: np.ndarray, years: np.ndarray) -> float:
    """d(NPV)/d(rate)."""
    return float(np.sum(-years * amounts * np.power(1.0 + rate, -years - 1.0)))


def xirr(
    flows: Sequence[CashFlow],
    config: SolverConfig = DEFAULT_SOLVER
) -> Optional[Decimal]:
    """
    Solve sum(amount_i * (1 + r)^(-days_i / 365)) = 0 for r.

    days_i is measured from the earliest flow. The rate is clamped to
    [min_rate, max_rate] after every step, which bounds the result to
    -99%..1000%.

    Returns r * 100 (a percentage), or None when there are fewer than two
    flows, no sign change, a zero derivative, or no convergence.
    """
    if len(flows) < 2:
        return None
    if not any(f.amount < 0 for f in flows) or not any(f.amount > 0 for f in flows):
        return None

    # Canonical order so permutations of the input give identical sums
    ordered = sorted(flows, key=lambda f: (f.date, f.amount))
    amounts = np.array([float(f.amount) for f in ordered], dtype=float)
    years = _year_fractions(ordered)

    rate = config.guess

    with np.errstate(over="ignore", invalid="ignore"):
        for _ in range(config.max_iterations):
            value = npv(rate, amounts, years)
            if not np.isfinite(value):
                return None
            if abs(value) < config.tolerance:
                return Decimal(str(rate * 100))

            slope = npv_derivative(rate, amounts, years)
            if slope == 0 or not np.isfinite(slope):
                return None

            rate = rate - value / slope
            rate = min(max(rate, config.min_rate), config.max_rate)

    return None
