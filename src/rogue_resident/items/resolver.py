from __future__ import annotations

import math
from typing import Iterable

from .models import Item


def resolve_effects(items: Iterable[Item], target: str, modifier: str) -> float:
    """Sum of every effect magnitude matching ``target`` and ``modifier``.

    ``math.fsum`` is exact, so the order of ``items`` never changes the total.
    """
    return math.fsum(
        e.magnitude for item in items for e in item.effects if e.target == target and e.modifier == modifier
    )


def has_effect(items: Iterable[Item], target: str, modifier: str) -> bool:
    return any(
        e.target == target and e.modifier == modifier and e.magnitude != 0
        for item in items
        for e in item.effects
    )


__all__ = ["has_effect", "resolve_effects"]
