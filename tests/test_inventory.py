import pytest

from rogue_resident.errors import StateConflictError, ValidationError
from rogue_resident.items.inventory import Inventory
from rogue_resident.items.models import Item, ItemCategory, ItemEffect


def passive(item_id):
    return Item(id=item_id, name=item_id, category=ItemCategory.KNOWLEDGE, effects=(ItemEffect("insight", "bonus_flat", 5),))


def tool(item_id):
    return Item(id=item_id, name=item_id, category=ItemCategory.TECHNICAL, usable=True, passive=False)


def test_passive_items_activate_on_add():
    inv = Inventory()
    inv.add(passive("book"))
    inv.add(tool("meter"))
    assert len(inv) == 2
    assert "book" in inv
    assert inv.active_ids == ["book"]
    assert [i.id for i in inv.active_items()] == ["book"]


def test_duplicate_and_capacity():
    inv = Inventory(capacity=2)
    inv.add(passive("a"))
    with pytest.raises(StateConflictError):
        inv.add(passive("a"))
    inv.add(passive("b"))
    assert inv.is_full()
    with pytest.raises(StateConflictError):
        inv.add(passive("c"))
    assert [i.id for i in inv.items] == ["a", "b"]


def test_activate_deactivate():
    inv = Inventory()
    inv.add(tool("meter"))
    inv.activate("meter")
    assert inv.active_ids == ["meter"]
    inv.deactivate("meter")
    assert inv.active_ids == []
    with pytest.raises(StateConflictError):
        inv.activate("missing")


def test_consume_usable_only():
    inv = Inventory()
    inv.add(tool("meter"))
    inv.add(passive("book"))
    assert inv.consume("meter").id == "meter"
    assert "meter" not in inv
    with pytest.raises(StateConflictError):
        inv.consume("book")


def test_remove():
    inv = Inventory()
    inv.add(passive("book"))
    inv.remove("book")
    assert len(inv) == 0
    assert inv.active_ids == []
    with pytest.raises(StateConflictError):
        inv.remove("book")


def test_round_trip_keeps_activation():
    inv = Inventory(capacity=5)
    inv.add(passive("book"))
    inv.add(tool("meter"))
    inv.deactivate("book")
    again = Inventory.from_dict(inv.to_dict())
    assert again.to_dict() == inv.to_dict()
    assert again.active_ids == []


def test_capacity_must_be_positive():
    with pytest.raises(ValidationError):
        Inventory(capacity=0)
