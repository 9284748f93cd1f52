from __future__ import annotations

from typing import Dict, Mapping, Optional

from ..utils.numbers import round_half_up
from .models import Grade

# Lower bound of the correctness ratio for each grade, best first
GRADE_THRESHOLDS = ((Grade.S, 0.90), (Grade.A, 0.75), (Grade.B, 0.50))

DEFAULT_BASE_INSIGHT = 50
DEFAULT_GRADE_MULTIPLIERS: Dict[Grade, float] = {Grade.S: 2.0, Grade.A: 1.5, Grade.B: 1.0, Grade.C: 0.5}

GRADE_ORDER = {Grade.C: 0, Grade.B: 1, Grade.A: 2, Grade.S: 3}


def grade_for_ratio(ratio: float) -> Grade:
    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"ratio must be within [0, 1], got {ratio}")
    for grade, floor in GRADE_THRESHOLDS:
        if ratio >= floor:
            return grade
    return Grade.C


def insight_reward(
    grade: Grade, base: int = DEFAULT_BASE_INSIGHT, multipliers: Optional[Mapping[Grade, float]] = None
) -> int:
    table = multipliers or DEFAULT_GRADE_MULTIPLIERS
    return round_half_up(base * table[grade])


__all__ = [
    "DEFAULT_BASE_INSIGHT",
    "DEFAULT_GRADE_MULTIPLIERS",
    "GRADE_ORDER",
    "GRADE_THRESHOLDS",
    "grade_for_ratio",
    "insight_reward",
]
