from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Set

from ..errors import StateConflictError, ValidationError
from .models import Item

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 10


class Inventory:
    """Items collected during a run.

    Holds at most ``capacity`` items, keeps insertion order and tracks which
    item ids are active. Only active items feed the effect resolver.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValidationError("Inventory capacity must be >= 1")
        self.capacity = capacity
        self._items: Dict[str, Item] = {}
        self._active: Set[str] = set()

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    @property
    def items(self) -> List[Item]:
        return list(self._items.values())

    @property
    def active_ids(self) -> List[str]:
        return [i for i in self._items if i in self._active]

    def is_full(self) -> bool:
        return len(self._items) >= self.capacity

    def get(self, item_id: str) -> Item:
        try:
            return self._items[item_id]
        except KeyError:
            raise StateConflictError(f"Item '{item_id}' is not in the inventory") from None

    def add(self, item: Item, *, activate: Optional[bool] = None) -> None:
        """Add an item; passive items become active unless ``activate`` says otherwise."""
        if item.id in self._items:
            raise StateConflictError(f"Item '{item.id}' is already in the inventory")
        if self.is_full():
            raise StateConflictError(f"Inventory is full ({self.capacity} items)")
        self._items[item.id] = item
        if (item.passive if activate is None else activate):
            self._active.add(item.id)
        logger.debug("Added item %s (active=%s)", item.id, item.id in self._active)

    def remove(self, item_id: str) -> Item:
        item = self.get(item_id)
        del self._items[item_id]
        self._active.discard(item_id)
        logger.debug("Removed item %s", item_id)
        return item

    def activate(self, item_id: str) -> None:
        self.get(item_id)
        self._active.add(item_id)

    def deactivate(self, item_id: str) -> None:
        self.get(item_id)
        self._active.discard(item_id)

    def consume(self, item_id: str) -> Item:
        """Use up a usable item, removing it. Returns the consumed item."""
        item = self.get(item_id)
        if not item.usable:
            raise StateConflictError(f"Item '{item_id}' is not usable")
        logger.info("Consumed item %s", item_id)
        return self.remove(item_id)

    def active_items(self) -> List[Item]:
        return [item for item_id, item in self._items.items() if item_id in self._active]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "capacity": self.capacity,
            "items": [item.to_dict() for item in self._items.values()],
            "active": self.active_ids,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Inventory":
        inv = cls(capacity=int(data.get("capacity", DEFAULT_CAPACITY)))
        for raw in data.get("items", []):
            inv.add(Item.from_dict(raw), activate=False)
        for item_id in data.get("active", []):
            inv.activate(item_id)
        return inv


__all__ = ["DEFAULT_CAPACITY", "Inventory"]
