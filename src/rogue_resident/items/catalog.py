from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..data.loader import DataLoader, default_loader
from ..errors import ConfigurationError, ValidationError
from .models import Item

logger = logging.getLogger(__name__)


class ItemCatalog:
    """Registry of item definitions keyed by id."""

    def __init__(self, items: Iterable[Item]) -> None:
        self._items: Dict[str, Item] = {}
        for item in items:
            if item.id in self._items:
                raise ConfigurationError(f"Duplicate item id '{item.id}'")
            self._items[item.id] = item

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], loader: Optional[DataLoader] = None) -> "ItemCatalog":
        (loader or default_loader()).validate_data(data, "items")
        try:
            return cls(Item.from_dict(raw) for raw in data["items"])
        except ValidationError as e:
            raise ConfigurationError(f"Invalid item data: {e}") from e

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> Item:
        try:
            return self._items[item_id]
        except KeyError:
            raise KeyError(f"Unknown item '{item_id}'") from None

    def all(self) -> List[Item]:
        return list(self._items.values())


@lru_cache(maxsize=1)
def load_item_catalog() -> ItemCatalog:
    loader = default_loader()
    catalog = ItemCatalog.from_dict(loader.load_resource("items.json"), loader)
    logger.debug("Loaded %d items", len(catalog))
    return catalog


__all__ = ["ItemCatalog", "load_item_catalog"]
