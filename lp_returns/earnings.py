"""
Earnings cross-reference - attach reward amounts to actions.
"""
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Sequence

from .types import ZERO, ActionKind, ActionRecord, EarningsRecord


EarningsKey = tuple[str, str, str]


def earnings_key(raw_timestamp: str, action: str, position_id: Optional[str]) -> EarningsKey:
    return (raw_timestamp, action, position_id or "")


@dataclass(frozen=True)
class EarningsLookup:
    """
    Rewards keyed by (timestamp, action, position id).

    Reward claims without a position id are matched on timestamp alone.
    """
    by_key: Mapping[EarningsKey, Decimal]
    claims_by_timestamp: Mapping[str, Decimal]

    @classmethod
    def from_records(cls, records: Iterable[EarningsRecord]) -> "EarningsLookup":
        by_key: dict[EarningsKey, Decimal] = {}
        claims: dict[str, Decimal] = {}

        for row in records:
            by_key[earnings_key(row.raw_timestamp, row.action, row.position_id)] = row.reward
            if row.action == ActionKind.CLAIM_REWARD.value and not row.position_id:
                claims[row.raw_timestamp] = row.reward

        return cls(by_key=by_key, claims_by_timestamp=claims)

    @classmethod
    def empty(cls) -> "EarningsLookup":
        return cls(by_key={}, claims_by_timestamp={})

    def reward_for(self, action: ActionRecord) -> Decimal:
        """Reward earned by an action; zero when the log has no entry."""
        if action.kind is ActionKind.CLAIM_REWARD and not action.position_id:
            return self.claims_by_timestamp.get(action.raw_timestamp, ZERO)

        key = earnings_key(action.raw_timestamp, action.kind.value, action.position_id)
        return self.by_key.get(key, ZERO)


def apply_earnings(
    actions: Sequence[ActionRecord],
    lookup: EarningsLookup
) -> tuple[ActionRecord, ...]:
    """Return actions with reward_amount taken from the earnings log."""
    return tuple(replace(a, reward_amount=lookup.reward_for(a)) for a in actions)
