from .inventory import Inventory
from .models import (
    ALL_TARGETS,
    BONUS_FLAT,
    BONUS_PERCENT,
    DAMAGE_REDUCTION,
    Item,
    ItemCategory,
    ItemEffect,
    ItemRarity,
)
from .resolver import has_effect, resolve_effects

__all__ = [
    "ALL_TARGETS",
    "BONUS_FLAT",
    "BONUS_PERCENT",
    "DAMAGE_REDUCTION",
    "Inventory",
    "Item",
    "ItemCategory",
    "ItemEffect",
    "ItemRarity",
    "has_effect",
    "resolve_effects",
]
