import pytest

from rogue_resident.economy.ledger import (
    ResourceKind,
    ResourceLedger,
    apply_delta,
    apply_modified_delta,
    can_afford,
    modified_amount,
    spend_insight,
)
from rogue_resident.errors import InsufficientInsightError, StateConflictError, ValidationError
from rogue_resident.items.models import Item, ItemCategory, ItemEffect


def with_effects(*effects):
    return Item(id="i", name="i", category=ItemCategory.PERSONAL, effects=tuple(effects))


def test_lives_clamp_at_zero_and_end_the_run():
    result = apply_delta(ResourceLedger(lives=3), ResourceKind.LIVES, -1000000)
    assert result.ledger.lives == 0
    assert result.game_over
    assert result.applied == -3


def test_lives_clamp_at_max():
    result = apply_delta(ResourceLedger(lives=3, max_lives=4), ResourceKind.LIVES, 5)
    assert result.ledger.lives == 4
    assert result.applied == 1
    assert not result.game_over


def test_insight_floors_at_zero():
    assert apply_delta(ResourceLedger(insight=100), ResourceKind.INSIGHT, -500).ledger.insight == 0


def test_research_points_unbounded():
    assert apply_delta(ResourceLedger(), ResourceKind.RESEARCH_POINTS, -10).ledger.research_points == -10


@pytest.mark.parametrize("amount", [1.5, True, "3"])
def test_amounts_must_be_integers(amount):
    with pytest.raises(ValidationError):
        apply_delta(ResourceLedger(), ResourceKind.INSIGHT, amount)


def test_spend_insight_is_all_or_nothing():
    ledger = ResourceLedger(insight=100)
    assert spend_insight(ledger, 40).insight == 60
    with pytest.raises(InsufficientInsightError):
        spend_insight(ledger, 150)
    assert ledger.insight == 100
    assert issubclass(InsufficientInsightError, StateConflictError)


def test_can_afford():
    ledger = ResourceLedger(insight=50)
    assert can_afford(ledger, 50)
    assert not can_afford(ledger, 51)
    assert not can_afford(ledger, -1)


def test_gains_scaled_by_items():
    items = [
        with_effects(ItemEffect("insight", "bonus_percent", 25)),
        with_effects(ItemEffect("insight", "bonus_flat", 10)),
    ]
    assert modified_amount(ResourceKind.INSIGHT, 100, items) == 135
    assert modified_amount(ResourceKind.INSIGHT, 100, []) == 100
    assert modified_amount(ResourceKind.INSIGHT, -30, items) == -30


def test_scaled_gains_round_halves_up():
    items = [with_effects(ItemEffect("insight", "bonus_percent", 25))]
    assert modified_amount(ResourceKind.INSIGHT, 10, items) == 13
    assert modified_amount(ResourceKind.INSIGHT, 2, items) == 3
    halving = [with_effects(ItemEffect("lives", "damage_reduction", 0.5))]
    assert modified_amount(ResourceKind.LIVES, -2, halving) == -1


def test_damage_reduction_never_heals():
    items = [with_effects(ItemEffect("lives", "damage_reduction", 1))]
    assert modified_amount(ResourceKind.LIVES, -1, items) == 0
    assert modified_amount(ResourceKind.LIVES, -3, items) == -2
    assert modified_amount(ResourceKind.RESEARCH_POINTS, -5, items) == -5


def test_apply_modified_delta():
    items = [with_effects(ItemEffect("research_points", "bonus_percent", 20))]
    result = apply_modified_delta(ResourceLedger(), ResourceKind.RESEARCH_POINTS, 25, items)
    assert result.ledger.research_points == 30


def test_ledger_validation_and_round_trip():
    with pytest.raises(ValidationError):
        ResourceLedger(lives=5, max_lives=4)
    with pytest.raises(ValidationError):
        ResourceLedger(insight=-1)
    ledger = ResourceLedger(lives=2, insight=7, research_points=-3)
    assert ResourceLedger.from_dict(ledger.to_dict()) == ledger
    assert ledger.get(ResourceKind.INSIGHT) == 7
