"""
Swap price index - nearest swap before/after an action.

Built once per run, immutable afterwards, and safe to share across lookups.
"""
from bisect import bisect_left, bisect_right
from typing import Iterable, Iterator, Optional

from .types import ActionKind, ActionRecord, SwapRecord


class SwapPriceIndex:
    """
    Swaps sorted by (block_number, log_index) with no duplicate keys.

    Lookups are strict: a swap at exactly the query key is never returned.
    """

    def __init__(self, swaps: Iterable[SwapRecord] = ()):
        unique: dict[tuple[int, int], SwapRecord] = {}
        for swap in swaps:
            unique.setdefault(swap.key, swap)

        ordered = sorted(unique.values(), key=lambda s: s.key)
        self._swaps: tuple[SwapRecord, ...] = tuple(ordered)
        self._keys: tuple[tuple[int, int], ...] = tuple(s.key for s in ordered)

    def __len__(self) -> int:
        return len(self._swaps)

    def __iter__(self) -> Iterator[SwapRecord]:
        return iter(self._swaps)

    def __repr__(self) -> str:
        return f"SwapPriceIndex({len(self)} swaps, blocks={self.block_range})"

    @property
    def block_range(self) -> Optional[tuple[int, int]]:
        if not self._swaps:
            return None
        return (self._swaps[0].block_number, self._swaps[-1].block_number)

    def nearest_before(self, block_number: int, log_index: int) -> Optional[SwapRecord]:
        """Swap with the greatest key strictly less than the query key."""
        i = bisect_left(self._keys, (block_number, log_index))
        return self._swaps[i - 1] if i > 0 else None

    def nearest_after(self, block_number: int, log_index: int) -> Optional[SwapRecord]:
        """Swap with the smallest key strictly greater than the query key."""
        i = bisect_right(self._keys, (block_number, log_index))
        return self._swaps[i] if i < len(self._swaps) else None


def reference_swap(index: SwapPriceIndex, action: ActionRecord) -> Optional[SwapRecord]:
    """
    Pick the swap that prices an action.

    Mints are valued at the pre-trade price (swap before), burns, collects
    and reward claims at the post-trade price (swap after).
    """
    if action.kind is ActionKind.MINT:
        return index.nearest_before(action.block_number, action.log_index)
    return index.nearest_after(action.block_number, action.log_index)
