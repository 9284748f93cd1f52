from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, Mapping

from ..errors import InsufficientInsightError, ValidationError
from ..items.models import BONUS_FLAT, BONUS_PERCENT, DAMAGE_REDUCTION, Item
from ..items.resolver import resolve_effects
from ..utils.numbers import round_half_up

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    LIVES = "lives"
    INSIGHT = "insight"
    RESEARCH_POINTS = "research_points"


@dataclass(frozen=True)
class ResourceLedger:
    """Run resources.

    - lives: clamped to [0, max_lives]; zero means game over.
    - insight: never below zero, no cap.
    - research_points: unbounded either way.
    """

    lives: int = 4
    max_lives: int = 4
    insight: int = 100
    research_points: int = 0

    def __post_init__(self) -> None:
        if self.max_lives < 1:
            raise ValidationError("max_lives must be >= 1")
        if not 0 <= self.lives <= self.max_lives:
            raise ValidationError(f"lives must be within [0, {self.max_lives}], got {self.lives}")
        if self.insight < 0:
            raise ValidationError(f"insight cannot be negative, got {self.insight}")

    @property
    def game_over(self) -> bool:
        return self.lives == 0

    def get(self, kind: ResourceKind) -> int:
        return getattr(self, ResourceKind(kind).value)

    def to_dict(self) -> Dict[str, int]:
        return {
            "lives": self.lives,
            "max_lives": self.max_lives,
            "insight": self.insight,
            "research_points": self.research_points,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ResourceLedger":
        return ResourceLedger(
            lives=int(data["lives"]),
            max_lives=int(data["max_lives"]),
            insight=int(data["insight"]),
            research_points=int(data.get("research_points", 0)),
        )


@dataclass(frozen=True)
class DeltaResult:
    ledger: ResourceLedger
    game_over: bool
    # Change actually made after clamping
    applied: int


def _check_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValidationError(f"Resource amounts must be integers, got {amount!r}")
    return amount


def apply_delta(ledger: ResourceLedger, kind: ResourceKind, amount: int) -> DeltaResult:
    kind = ResourceKind(kind)
    amount = _check_amount(amount)
    old = ledger.get(kind)
    if kind is ResourceKind.LIVES:
        new = min(ledger.max_lives, max(0, old + amount))
    elif kind is ResourceKind.INSIGHT:
        new = max(0, old + amount)
    else:
        new = old + amount
    updated = replace(ledger, **{kind.value: new})
    logger.debug("%s %+d -> %d (requested %+d)", kind.value, new - old, new, amount)
    if updated.game_over and not ledger.game_over:
        logger.info("Lives exhausted")
    return DeltaResult(ledger=updated, game_over=updated.game_over, applied=new - old)


def can_afford(ledger: ResourceLedger, cost: int) -> bool:
    if cost < 0:
        return False
    return ledger.insight >= cost


def spend_insight(ledger: ResourceLedger, cost: int) -> ResourceLedger:
    """Deduct ``cost`` insight, or raise InsufficientInsightError and change nothing."""
    cost = _check_amount(cost)
    if cost < 0:
        raise ValidationError("Cannot spend a negative amount of insight")
    if not can_afford(ledger, cost):
        raise InsufficientInsightError(f"Insufficient insight: have {ledger.insight}, need {cost}")
    logger.debug("Insight spent: -%d; old=%d new=%d", cost, ledger.insight, ledger.insight - cost)
    return replace(ledger, insight=ledger.insight - cost)


def modified_amount(kind: ResourceKind, amount: int, items: Iterable[Item]) -> int:
    """Apply item modifiers to a raw resource change.

    Gains are scaled by ``bonus_percent`` and then raised by ``bonus_flat``
    effects targeting the resource. Life losses shrink by ``damage_reduction``
    effects on "lives" but never turn into a gain. Other losses pass through.
    """
    kind = ResourceKind(kind)
    amount = _check_amount(amount)
    items = list(items)
    if amount > 0:
        pct = resolve_effects(items, kind.value, BONUS_PERCENT)
        flat = resolve_effects(items, kind.value, BONUS_FLAT)
        return max(0, round_half_up(amount * (1 + pct / 100.0) + flat))
    if amount < 0 and kind is ResourceKind.LIVES:
        reduction = resolve_effects(items, kind.value, DAMAGE_REDUCTION)
        return min(0, amount + round_half_up(reduction))
    return amount


def apply_modified_delta(
    ledger: ResourceLedger, kind: ResourceKind, amount: int, items: Iterable[Item]
) -> DeltaResult:
    return apply_delta(ledger, kind, modified_amount(kind, amount, items))


__all__ = [
    "DeltaResult",
    "ResourceKind",
    "ResourceLedger",
    "apply_delta",
    "apply_modified_delta",
    "can_afford",
    "modified_amount",
    "spend_insight",
]
