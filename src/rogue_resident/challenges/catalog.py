from __future__ import annotations

import logging
import random
from functools import lru_cache
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..data.loader import DataLoader, default_loader
from ..errors import ConfigurationError, ValidationError
from ..map.models import Difficulty, MapNode, NodeType
from .models import CHALLENGE_VARIANTS, ChallengeDescriptor, descriptor_from_dict

logger = logging.getLogger(__name__)


class ChallengeCatalog:
    """Lookup of challenge descriptors by id and by node type."""

    def __init__(self, descriptors: Iterable[ChallengeDescriptor]) -> None:
        self._by_id: Dict[str, ChallengeDescriptor] = {}
        for d in descriptors:
            if d.id in self._by_id:
                raise ConfigurationError(f"Duplicate challenge id '{d.id}'")
            self._by_id[d.id] = d

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], loader: Optional[DataLoader] = None) -> "ChallengeCatalog":
        (loader or default_loader()).validate_data(data, "challenges")
        try:
            return cls(descriptor_from_dict(raw) for raw in data["challenges"])
        except ValidationError as e:
            raise ConfigurationError(f"Invalid challenge data: {e}") from e

    def __len__(self) -> int:
        return len(self._by_id)

    def __contains__(self, challenge_id: object) -> bool:
        return challenge_id in self._by_id

    def get(self, challenge_id: str) -> ChallengeDescriptor:
        try:
            return self._by_id[challenge_id]
        except KeyError:
            raise KeyError(f"Unknown challenge '{challenge_id}'") from None

    def ids(self) -> List[str]:
        return list(self._by_id)

    def for_type(self, node_type: NodeType, difficulty: Optional[Difficulty] = None) -> List[ChallengeDescriptor]:
        kind = NodeType(node_type)
        return [
            d
            for d in self._by_id.values()
            if d.challenge_type is kind and (difficulty is None or d.difficulty is Difficulty(difficulty))
        ]

    def scenario_pool(self) -> Dict[NodeType, List[str]]:
        """Challenge ids per node type, suitable for ``MapGenerationOptions.scenario_pool``."""
        return {t: [d.id for d in self.for_type(t)] for t in CHALLENGE_VARIANTS if self.for_type(t)}

    def for_node(self, node: MapNode, rng: random.Random) -> Optional[ChallengeDescriptor]:
        """Descriptor for a map node; None for node types that carry no challenge.

        Uses the node's scenario reference when present. Otherwise draws from the
        descriptors of the node's type, preferring its difficulty.
        """
        if node.type not in CHALLENGE_VARIANTS:
            return None
        if node.scenario_id:
            if node.scenario_id not in self._by_id:
                raise ConfigurationError(f"Node {node.id} references unknown scenario '{node.scenario_id}'")
            descriptor = self._by_id[node.scenario_id]
            if descriptor.challenge_type is not node.type:
                raise ConfigurationError(
                    f"Scenario '{node.scenario_id}' is a {descriptor.challenge_type.value} challenge, "
                    f"node {node.id} is {node.type.value}"
                )
            return descriptor
        candidates = self.for_type(node.type, node.difficulty) or self.for_type(node.type)
        if not candidates:
            raise ConfigurationError(f"No challenges available for node type '{node.type.value}'")
        return rng.choice(candidates)


@lru_cache(maxsize=1)
def load_challenge_catalog() -> ChallengeCatalog:
    loader = default_loader()
    catalog = ChallengeCatalog.from_dict(loader.load_resource("challenges.json"), loader)
    logger.debug("Loaded %d challenges", len(catalog))
    return catalog


__all__ = ["ChallengeCatalog", "load_challenge_catalog"]
