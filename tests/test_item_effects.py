from itertools import permutations

from rogue_resident.items.models import (
    ALL_TARGETS,
    BONUS_FLAT,
    BONUS_PERCENT,
    Item,
    ItemCategory,
    ItemEffect,
)
from rogue_resident.items.resolver import has_effect, resolve_effects


def item(item_id, *effects):
    return Item(id=item_id, name=item_id, category=ItemCategory.KNOWLEDGE, effects=tuple(effects))


def test_effects_add_up():
    items = [
        item("a", ItemEffect("insight", BONUS_PERCENT, 25)),
        item("b", ItemEffect("insight", BONUS_PERCENT, 10), ItemEffect("insight", BONUS_FLAT, 5)),
        item("c", ItemEffect("lives", BONUS_PERCENT, 50)),
    ]
    assert resolve_effects(items, "insight", BONUS_PERCENT) == 35
    assert resolve_effects(items, "insight", BONUS_FLAT) == 5
    assert resolve_effects(items, "research_points", BONUS_PERCENT) == 0


def test_order_does_not_matter():
    items = [
        item("a", ItemEffect("qa", "qa_bonus", 15)),
        item("b", ItemEffect("qa", "qa_bonus", 20)),
        item("c", ItemEffect("qa", "qa_bonus", 5)),
    ]
    totals = {resolve_effects(p, "qa", "qa_bonus") for p in permutations(items)}
    assert totals == {40}


def test_fractional_totals_do_not_depend_on_order():
    items = [
        item("a", ItemEffect("insight", BONUS_PERCENT, 0.1)),
        item("b", ItemEffect("insight", BONUS_PERCENT, 0.2)),
        item("c", ItemEffect("insight", BONUS_PERCENT, 0.3)),
    ]
    totals = {resolve_effects(p, "insight", BONUS_PERCENT) for p in permutations(items)}
    assert len(totals) == 1
    assert totals.pop() == 0.6


def test_all_target_matches_literally():
    items = [item("a", ItemEffect(ALL_TARGETS, "clinical_bonus", 15))]
    assert resolve_effects(items, ALL_TARGETS, "clinical_bonus") == 15
    assert resolve_effects(items, "dose-calculation", "clinical_bonus") == 0


def test_has_effect_ignores_zero_magnitude():
    items = [item("a", ItemEffect("qa", "reveal_answer", 0)), item("b", ItemEffect("qa", "reroll_challenge", 1))]
    assert not has_effect(items, "qa", "reveal_answer")
    assert has_effect(items, "qa", "reroll_challenge")
    assert not has_effect([], "qa", "reroll_challenge")


def test_flag_effect_from_dict():
    effect = ItemEffect.from_dict({"target": "qa", "modifier": "reveal_answer", "magnitude": True})
    assert effect.magnitude == 1.0
