import pytest

from rogue_resident.challenges.grading import GRADE_ORDER, grade_for_ratio, insight_reward
from rogue_resident.challenges.models import Grade


def test_grade_boundaries():
    assert grade_for_ratio(1.0) is Grade.S
    assert grade_for_ratio(0.9) is Grade.S
    assert grade_for_ratio(0.89) is Grade.A
    assert grade_for_ratio(0.75) is Grade.A
    assert grade_for_ratio(0.5) is Grade.B
    assert grade_for_ratio(0.49) is Grade.C
    assert grade_for_ratio(0.0) is Grade.C


def test_grades_never_drop_as_ratio_rises():
    ranks = [GRADE_ORDER[grade_for_ratio(i / 100)] for i in range(101)]
    assert ranks == sorted(ranks)


@pytest.mark.parametrize("ratio", [-0.01, 1.01])
def test_ratio_out_of_range(ratio):
    with pytest.raises(ValueError):
        grade_for_ratio(ratio)


def test_insight_reward_multipliers():
    assert insight_reward(Grade.S) == 100
    assert insight_reward(Grade.A, 50) == 75
    assert insight_reward(Grade.B, 50) == 50
    assert insight_reward(Grade.C, 50) == 25
    assert insight_reward(Grade.S, 10, {Grade.S: 3.0}) == 30


def test_insight_reward_rounds_halves_up():
    assert insight_reward(Grade.A, 75) == 113
    assert insight_reward(Grade.C, 5) == 3
    assert insight_reward(Grade.A, 1) == 2
