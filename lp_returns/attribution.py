"""
Reward attribution strategies.

Reward claims in the action log often carry no position id. A strategy
decides which position, if any, such a claim belongs to.
"""
from dataclasses import replace
from typing import Callable, Optional, Sequence

from .config import ATTRIBUTION_WINDOW
from .types import ActionKind, ActionRecord


# =============================================================================
# Strategy Type
# =============================================================================

# A strategy takes the full action log and the index of an unattributed
# reward claim, and returns the inferred position id (or None)
AttributionFn = Callable[[Sequence[ActionRecord], int], Optional[str]]


# =============================================================================
# Strategies
# =============================================================================

def neighbor_window_attribution(window: int = ATTRIBUTION_WINDOW) -> AttributionFn:
    """
    Attribute a claim to the nearest neighbour sharing its exact timestamp.

    Scans offsets within -window..+window (excluding 0) by distance, earlier
    record first on ties, and takes the first neighbour with the same raw
    timestamp and a position id.
    Ambiguous when several positions claim in the same block.
    """
    offsets = sorted(
        (o for o in range(-window, window + 1) if o != 0),
        key=lambda o: (abs(o), o),
    )

    def by_neighbor(actions: Sequence[ActionRecord], i: int) -> Optional[str]:
        target = actions[i]
        for offset in offsets:
            j = i + offset
            if 0 <= j < len(actions):
                neighbor = actions[j]
                if neighbor.raw_timestamp == target.raw_timestamp and neighbor.position_id:
                    return neighbor.position_id
        return None

    return by_neighbor


def no_attribution(actions: Sequence[ActionRecord], i: int) -> Optional[str]:
    """Leave every unattributed claim at wallet level."""
    return None


# =============================================================================
# Application
# =============================================================================

def attribute_rewards(
    actions: Sequence[ActionRecord],
    strategy: AttributionFn
) -> tuple[ActionRecord, ...]:
    """
    Fill in position ids for reward claims that lack one.

    Claims the strategy cannot place keep position_id=None and count
    toward wallet-level rewards only.
    """
    attributed = []

    for i, action in enumerate(actions):
        if action.kind is ActionKind.CLAIM_REWARD and not action.position_id:
            inferred = strategy(actions, i)
            if inferred:
                action = replace(action, position_id=inferred, position_id_inferred=True)
        attributed.append(action)

    return tuple(attributed)
