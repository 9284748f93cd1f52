from __future__ import annotations

import hashlib
import json
import logging
import random
import secrets
from dataclasses import dataclass
from typing import Any, Mapping, Optional, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K")

# Bumping this changes every derived stream, and so every generated map
STREAM_VERSION = 1


@dataclass(frozen=True)
class RNGManager:
    """Per-run source of independent random streams.

    Each subsystem draws from its own stream, keyed by a domain name and
    optional identifiers, so an extra draw in one never shifts another:

        rngm = RNGManager(42)
        rngm.context_rng("map.types")
        rngm.context_rng("challenge", node_id)
    """

    master_seed: int

    def __post_init__(self) -> None:
        if isinstance(self.master_seed, bool) or not isinstance(self.master_seed, int):
            raise TypeError(f"Seed must be an int, got {type(self.master_seed).__name__}")
        if self.master_seed < 0:
            raise ValueError(f"Seed must be non-negative, got {self.master_seed}")

    def derive_seed(self, domain: str, *identifiers: Any) -> int:
        """64-bit seed for ``domain``; identical inputs give identical seeds on any platform."""
        key = json.dumps(
            [STREAM_VERSION, self.master_seed, domain, list(identifiers)],
            separators=(",", ":"),
            ensure_ascii=False,
        )
        digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "big")

    def context_rng(self, domain: str, *identifiers: Any) -> random.Random:
        return random.Random(self.derive_seed(domain, *identifiers))


def weighted_choice(rng: random.Random, weights: Mapping[K, float]) -> K:
    """Select a key from a mapping of non-negative weights.

    Keys are visited in mapping order, so callers wanting determinism must pass
    an ordered mapping. Raises ValueError when the mapping is empty, holds a
    negative weight, or sums to zero.
    """
    if not weights:
        raise ValueError("weighted_choice requires a non-empty weights mapping")
    if any(w < 0 for w in weights.values()):
        bad = next(k for k, w in weights.items() if w < 0)
        raise ValueError(f"Weight for {bad!r} must be non-negative, got {weights[bad]}")

    live = [(k, w) for k, w in weights.items() if w > 0]
    if not live:
        raise ValueError("All weights are zero; cannot make a weighted choice")

    r = rng.random() * sum(w for _, w in live)
    for k, w in live:
        r -= w
        if r < 0:
            return k
    return live[-1][0]


def resolve_seed(seed: Optional[int]) -> int:
    """Return ``seed`` or, when missing, a fresh 32-bit seed that can be recorded."""
    if seed is not None:
        return seed
    fresh = secrets.randbits(32)
    logger.info("No seed provided; using generated seed %d", fresh)
    return fresh


__all__ = ["RNGManager", "resolve_seed", "weighted_choice"]
