from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from ..errors import ValidationError

logger = logging.getLogger(__name__)


class ItemCategory(str, Enum):
    KNOWLEDGE = "knowledge"
    TECHNICAL = "technical"
    TEACHING = "teaching"
    PERSONAL = "personal"
    SPECIAL = "special"


class ItemRarity(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    UNIQUE = "unique"
    LEGENDARY = "legendary"


# Modifiers read by the resource ledger
BONUS_PERCENT = "bonus_percent"
BONUS_FLAT = "bonus_flat"
DAMAGE_REDUCTION = "damage_reduction"

# Target that names every challenge kind at once. Matching is literal: an
# effect targeting "all" is only found by a query for "all".
ALL_TARGETS = "all"


@dataclass(frozen=True)
class ItemEffect:
    """One numeric modifier: ``magnitude`` applied as ``modifier`` to ``target``.

    Flag effects (reveal answer, reroll) use a magnitude of 1.
    """

    target: str
    modifier: str
    magnitude: float
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "modifier": self.modifier,
            "magnitude": self.magnitude,
            "description": self.description,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ItemEffect":
        magnitude = data["magnitude"]
        if isinstance(magnitude, bool):
            magnitude = 1.0 if magnitude else 0.0
        return ItemEffect(
            target=str(data["target"]),
            modifier=str(data["modifier"]),
            magnitude=float(magnitude),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True)
class Item:
    id: str
    name: str
    category: ItemCategory
    rarity: ItemRarity = ItemRarity.COMMON
    effects: Tuple[ItemEffect, ...] = ()
    cost: int = 0
    usable: bool = False
    passive: bool = True
    description: str = ""
    flavor_text: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValidationError("Item id must be non-empty")
        if self.cost < 0:
            raise ValidationError(f"Item '{self.id}' cost must be >= 0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "rarity": self.rarity.value,
            "effects": [e.to_dict() for e in self.effects],
            "cost": self.cost,
            "usable": self.usable,
            "passive": self.passive,
            "description": self.description,
            "flavor_text": self.flavor_text,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "Item":
        try:
            return Item(
                id=str(data["id"]),
                name=str(data["name"]),
                category=ItemCategory(data["category"]),
                rarity=ItemRarity(data.get("rarity", ItemRarity.COMMON.value)),
                effects=tuple(ItemEffect.from_dict(e) for e in data.get("effects", [])),
                cost=int(data.get("cost", 0)),
                usable=bool(data.get("usable", False)),
                passive=bool(data.get("passive", True)),
                description=str(data.get("description", "")),
                flavor_text=data.get("flavor_text"),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed item {data.get('id')!r}: {e}") from e
