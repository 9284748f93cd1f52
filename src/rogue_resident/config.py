from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from importlib.resources import files as resource_files
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .challenges.models import Grade
from .errors import ConfigurationError
from .map.models import SAMPLED_NODE_TYPES, Difficulty, NodeType
from .map.traversal import RetryPolicy

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "RR_CONFIG"


@dataclass(frozen=True)
class DifficultyProfile:
    """Shape of the generated map for one difficulty.

    - min_layers: lowest total layer count, start and boss layers included.
    - max_layer_width: most nodes an intermediate layer may hold.
    """

    min_layers: int
    max_layer_width: int

    def __post_init__(self) -> None:
        if self.min_layers < 3:
            raise ConfigurationError("min_layers must be >= 3 (start, one intermediate layer, boss)")
        if self.max_layer_width < 1:
            raise ConfigurationError("max_layer_width must be >= 1")


@dataclass(frozen=True)
class StartingResources:
    lives: int = 4
    max_lives: int = 4
    insight: int = 100
    research_points: int = 0


@dataclass(frozen=True)
class RewardConfig:
    base_insight: int = 50
    grade_multipliers: Mapping[Grade, float] = field(
        default_factory=lambda: {Grade.S: 2.0, Grade.A: 1.5, Grade.B: 1.0, Grade.C: 0.5}
    )
    boss_research_points: int = 25


@dataclass(frozen=True)
class GameConfig:
    difficulty_profiles: Mapping[Difficulty, DifficultyProfile]
    node_type_weights: Mapping[NodeType, float]
    difficulty_weight_adjustments: Mapping[Difficulty, Mapping[NodeType, float]]
    retry_policy: RetryPolicy
    starting_resources: StartingResources = field(default_factory=StartingResources)
    rewards: RewardConfig = field(default_factory=RewardConfig)
    failure_damage: int = 1
    inventory_capacity: int = 10
    # Insight for completing start, storage and vendor nodes
    node_insight_rewards: Mapping[NodeType, int] = field(default_factory=dict)
    storage_offer_size: int = 2

    def node_reward(self, node_type: NodeType) -> int:
        return int(self.node_insight_rewards.get(NodeType(node_type), 0))

    def profile_for(self, difficulty: Difficulty) -> DifficultyProfile:
        try:
            return self.difficulty_profiles[Difficulty(difficulty)]
        except KeyError:
            raise ConfigurationError(f"No difficulty profile configured for '{difficulty}'") from None

    def weights_for(self, difficulty: Difficulty) -> Dict[NodeType, float]:
        """Default sampling weights with the difficulty's adjustments applied.

        Adjusted weights never drop below zero. Order follows SAMPLED_NODE_TYPES
        so weighted draws stay deterministic.
        """
        adjustments = self.difficulty_weight_adjustments.get(Difficulty(difficulty), {})
        weights: Dict[NodeType, float] = {}
        for t in SAMPLED_NODE_TYPES:
            weights[t] = max(0.0, float(self.node_type_weights.get(t, 0.0)) + float(adjustments.get(t, 0.0)))
        return weights

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> "GameConfig":
        try:
            profiles = {
                Difficulty(name): DifficultyProfile(
                    min_layers=int(p["min_layers"]),
                    max_layer_width=int(p["max_layer_width"]),
                )
                for name, p in (raw.get("difficulty_profiles") or {}).items()
            }
            weights = {NodeType(k): float(v) for k, v in (raw.get("node_type_weights") or {}).items()}
            adjustments = {
                Difficulty(d): {NodeType(k): float(v) for k, v in (adj or {}).items()}
                for d, adj in (raw.get("difficulty_weight_adjustments") or {}).items()
            }
            retry = RetryPolicy(
                {NodeType(k): bool(v) for k, v in (raw.get("retry_policy") or {}).items()}
            )
            res = raw.get("starting_resources") or {}
            starting = StartingResources(
                lives=int(res.get("lives", 4)),
                max_lives=int(res.get("max_lives", res.get("lives", 4))),
                insight=int(res.get("insight", 100)),
                research_points=int(res.get("research_points", 0)),
            )
            rw = raw.get("rewards") or {}
            multipliers = rw.get("grade_multipliers")
            rewards = RewardConfig(
                base_insight=int(rw.get("base_insight", 50)),
                grade_multipliers=(
                    {Grade(k): float(v) for k, v in multipliers.items()}
                    if multipliers
                    else RewardConfig().grade_multipliers
                ),
                boss_research_points=int(rw.get("boss_research_points", 25)),
            )
            cfg = cls(
                difficulty_profiles=profiles,
                node_type_weights=weights,
                difficulty_weight_adjustments=adjustments,
                retry_policy=retry,
                starting_resources=starting,
                rewards=rewards,
                failure_damage=int(raw.get("failure_damage", 1)),
                inventory_capacity=int(raw.get("inventory_capacity", 10)),
                node_insight_rewards={
                    NodeType(k): int(v) for k, v in (raw.get("node_insight_rewards") or {}).items()
                },
                storage_offer_size=int(raw.get("storage_offer_size", 2)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid game configuration: {e}") from e

        for d in Difficulty:
            if d not in cfg.difficulty_profiles:
                raise ConfigurationError(f"Missing difficulty profile for '{d.value}'")
        if any(w < 0 for w in cfg.node_type_weights.values()):
            raise ConfigurationError("node_type_weights must be non-negative")
        if cfg.starting_resources.lives > cfg.starting_resources.max_lives:
            raise ConfigurationError("starting lives cannot exceed max_lives")
        if set(cfg.rewards.grade_multipliers) != set(Grade):
            raise ConfigurationError("rewards.grade_multipliers must define every grade")
        if any(v < 0 for v in cfg.node_insight_rewards.values()):
            raise ConfigurationError("node_insight_rewards must be non-negative")
        if cfg.storage_offer_size < 1:
            raise ConfigurationError("storage_offer_size must be >= 1")
        return cfg


def _read_default_yaml() -> Dict[str, Any]:
    data = resource_files("rogue_resident.data").joinpath("game.yaml").read_text(encoding="utf-8")
    return yaml.safe_load(data) or {}


def load_game_config(path: Optional[Union[str, Path]] = None) -> GameConfig:
    """Load game configuration from YAML.

    The bundled ``data/game.yaml`` is always read first. When ``path`` (or the
    RR_CONFIG env var) names a file, its top-level keys replace the defaults.
    """
    raw = _read_default_yaml()
    if path is None:
        path = os.getenv(ENV_CONFIG_PATH) or None
    if path is not None:
        p = Path(path)
        if not p.exists():
            raise ConfigurationError(f"Config file not found: {p}")
        try:
            override = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Config file {p} is not valid YAML: {e}") from e
        if not isinstance(override, dict):
            raise ConfigurationError(f"Config file {p} must contain a mapping")
        raw.update(override)
        logger.debug("Loaded game config overrides from %s", p)
    else:
        logger.debug("Loaded embedded game config resource")
    return GameConfig.from_dict(raw)


__all__ = [
    "DifficultyProfile",
    "GameConfig",
    "RewardConfig",
    "StartingResources",
    "load_game_config",
]
