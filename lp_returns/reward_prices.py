"""
Reward token spot prices - nearest-timestamp lookup over a sparse series.
"""
from bisect import bisect_left
from datetime import datetime
from decimal import Decimal
from typing import Mapping, Optional

from .config import REWARD_FALLBACK_PRICE


FALLBACK_PRICE = Decimal(REWARD_FALLBACK_PRICE)


class RewardPriceTable:
    """
    Immutable unix-timestamp -> USD price series.

    An empty table prices everything at the fallback (1.0).
    """

    def __init__(self, prices: Optional[Mapping[int, Decimal]] = None, fallback: Decimal = FALLBACK_PRICE):
        items = sorted((prices or {}).items())
        self._timestamps: tuple[int, ...] = tuple(ts for ts, _ in items)
        self._prices: tuple[Decimal, ...] = tuple(Decimal(p) for _, p in items)
        self.fallback = fallback

    def __len__(self) -> int:
        return len(self._timestamps)

    def price_at(self, when: datetime) -> Decimal:
        """Price of the closest point in time; ties go to the earlier point."""
        if not self._timestamps:
            return self.fallback

        target = int(when.timestamp())
        i = bisect_left(self._timestamps, target)

        if i == 0:
            return self._prices[0]
        if i == len(self._timestamps):
            return self._prices[-1]

        before = target - self._timestamps[i - 1]
        after = self._timestamps[i] - target
        return self._prices[i - 1] if before <= after else self._prices[i]
