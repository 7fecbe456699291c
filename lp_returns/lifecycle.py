"""
Position lifecycle classification - group resolved actions into positions.

All functions are pure - no side effects, no mutation.
"""
from collections import defaultdict
from typing import Sequence

from .types import ActionKind, LifecycleState, Position, ResolvedAction


def _order_key(r: ResolvedAction):
    return (r.timestamp, r.action.block_number, r.action.log_index)


def classify_lifecycle(actions: Sequence[ResolvedAction]) -> LifecycleState:
    """
    Classify a position by the actions observed for it.

    Mint and burn -> COMPLETE; mint only -> UNCLOSED; no mint -> PRE_EXISTING
    (opened before the observed window).
    """
    kinds = {r.kind for r in actions}
    has_mint = ActionKind.MINT in kinds
    has_burn = ActionKind.BURN in kinds

    if has_mint and has_burn:
        return LifecycleState.COMPLETE
    if has_mint:
        return LifecycleState.UNCLOSED
    return LifecycleState.PRE_EXISTING


def group_positions(
    resolved: Sequence[ResolvedAction]
) -> tuple[tuple[Position, ...], tuple[ResolvedAction, ...]]:
    """
    Group resolved actions by position id.

    Returns (positions, unattributed). Actions without a position id never
    form a position; they only count toward wallet-level rewards.
    Positions keep first-seen order; actions inside are time ordered.
    """
    grouped: dict[str, list[ResolvedAction]] = defaultdict(list)
    unattributed: list[ResolvedAction] = []

    for r in resolved:
        if r.position_id:
            grouped[r.position_id].append(r)
        else:
            unattributed.append(r)

    positions = []
    for position_id, actions in grouped.items():
        ordered = tuple(sorted(actions, key=_order_key))
        positions.append(Position(
            position_id=position_id,
            actions=ordered,
            lifecycle=classify_lifecycle(ordered),
        ))

    return tuple(positions), tuple(unattributed)
