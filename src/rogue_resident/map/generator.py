from __future__ import annotations

import logging
import random
from typing import Dict, List, Optional, Tuple

from ..config import DifficultyProfile, GameConfig, load_game_config
from ..errors import ConfigurationError
from ..rng import RNGManager, resolve_seed, weighted_choice
from .connectivity import find_violations
from .models import (
    SAMPLED_NODE_TYPES,
    GeneratedMap,
    MapEdge,
    MapGenerationOptions,
    MapNode,
    NodeType,
)
from .templates import NodeTemplate, load_node_templates

logger = logging.getLogger(__name__)

# Vertical jitter as a fraction of one layer's height
Y_JITTER = 0.15

CHALLENGE_NODE_TYPES = frozenset({NodeType.CLINICAL, NodeType.QA, NodeType.EDUCATIONAL, NodeType.BOSS})


def plan_layer_widths(
    node_count: int, profile: DifficultyProfile, max_out_degree: int, rng: random.Random
) -> List[int]:
    """Split ``node_count - 2`` nodes over intermediate layers.

    Uses the fewest intermediate layers that satisfy both the profile's minimum
    layer count and its width cap. Every width stays within ``max_out_degree``
    times the width of the layer before it (the start layer has width 1).
    """
    remaining = node_count - 2
    min_intermediate = profile.min_layers - 2
    if remaining < min_intermediate:
        raise ConfigurationError(
            f"node_count={node_count} is too small: this difficulty needs at least "
            f"{min_intermediate + 2} nodes ({profile.min_layers} layers)"
        )

    def capacity(k: int) -> int:
        total, prev = 0, 1
        for _ in range(k):
            prev = min(profile.max_layer_width, max_out_degree * prev)
            total += prev
        return total

    k = min_intermediate
    while capacity(k) < remaining:
        k += 1

    widths = [1] * k
    extra = remaining - k
    while extra > 0:
        open_layers = [
            i
            for i in range(k)
            if widths[i] < min(profile.max_layer_width, max_out_degree * (widths[i - 1] if i else 1))
        ]
        widths[rng.choice(open_layers)] += 1
        extra -= 1
    return widths


class MapGenerator:
    """Deterministic department-map generator.

    All randomness comes from streams derived from one seed, so the same options
    and seed always yield identical nodes, positions, titles and edges.
    """

    def __init__(
        self,
        options: MapGenerationOptions,
        config: GameConfig,
        templates: Optional[Dict[NodeType, NodeTemplate]] = None,
    ) -> None:
        self.options = options
        self.config = config
        self.templates = templates if templates is not None else load_node_templates()

    def generate(self) -> GeneratedMap:
        opts = self.options
        self._validate_options()
        weights = self._sampling_weights()
        profile = self.config.profile_for(opts.difficulty)
        seed = resolve_seed(opts.seed)
        rngm = RNGManager(seed)

        widths = plan_layer_widths(opts.node_count, profile, opts.max_out_degree, rngm.context_rng("map.layers"))
        layer_widths = [1] + widths + [1]
        logger.debug("Layer widths for seed %d: %s", seed, layer_widths)

        layers: List[List[str]] = []
        types: Dict[str, NodeType] = {}
        counter = 0
        types_rng = rngm.context_rng("map.types")
        for li, w in enumerate(layer_widths):
            ids = []
            for _ in range(w):
                counter += 1
                nid = f"node-{counter}"
                if li == 0:
                    types[nid] = NodeType.START
                elif li == len(layer_widths) - 1:
                    types[nid] = NodeType.BOSS
                else:
                    types[nid] = weighted_choice(types_rng, weights)
                ids.append(nid)
            layers.append(ids)

        positions = self._place(layers, rngm.context_rng("map.positions"))
        out_edges = self._connect(layers, positions, rngm.context_rng("map.edges"))
        self._repair(layers, positions, out_edges)

        game_map = self._assemble(layers, types, positions, out_edges, seed, rngm.context_rng("map.content"))
        problems = find_violations(game_map)
        if problems:
            raise ConfigurationError(f"Generated map is invalid: {'; '.join(problems)}")
        logger.info(
            "Generated %s map: seed=%d nodes=%d layers=%d edges=%d",
            opts.difficulty.value,
            seed,
            len(game_map.nodes),
            game_map.layer_count,
            len(game_map.edges),
        )
        return game_map

    # --- Validation ---
    def _validate_options(self) -> None:
        opts = self.options
        if opts.min_out_degree < 1 or opts.min_out_degree > opts.max_out_degree:
            raise ConfigurationError(
                f"Invalid out-degree bounds: min={opts.min_out_degree} max={opts.max_out_degree}"
            )
        if opts.max_repair_passes < 0:
            raise ConfigurationError("max_repair_passes must be >= 0")
        if opts.width <= 0 or opts.height <= 0:
            raise ConfigurationError("Map width and height must be positive")
        if opts.seed is not None and opts.seed < 0:
            raise ConfigurationError(f"Seed must be non-negative, got {opts.seed}")

    def _sampling_weights(self) -> Dict[NodeType, float]:
        if self.options.node_type_weights is None:
            weights = self.config.weights_for(self.options.difficulty)
        else:
            # start/boss are forced, so their entries are ignored
            weights = {t: float(self.options.node_type_weights.get(t, 0.0)) for t in SAMPLED_NODE_TYPES}
        if any(w < 0 for w in weights.values()):
            raise ConfigurationError(f"Node type weights must be non-negative: {weights}")
        if sum(weights.values()) <= 0:
            raise ConfigurationError("All node type weights are zero; nothing can be sampled")
        return weights

    # --- Layout ---
    def _place(self, layers: List[List[str]], rng: random.Random) -> Dict[str, Tuple[float, float]]:
        opts = self.options
        band = opts.height / len(layers)
        positions: Dict[str, Tuple[float, float]] = {}
        for li, ids in enumerate(layers):
            for i, nid in enumerate(ids):
                x = opts.width * (i + 1) / (len(ids) + 1)
                y = band * (li + 0.5)
                if 0 < li < len(layers) - 1:
                    y += rng.uniform(-Y_JITTER, Y_JITTER) * band
                positions[nid] = (round(x, 3), round(y, 3))
        return positions

    def _connect(
        self, layers: List[List[str]], positions: Dict[str, Tuple[float, float]], rng: random.Random
    ) -> Dict[str, List[str]]:
        opts = self.options
        out_edges: Dict[str, List[str]] = {nid: [] for ids in layers for nid in ids}
        for li in range(len(layers) - 1):
            nxt = layers[li + 1]
            for nid in layers[li]:
                degree = min(rng.randint(opts.min_out_degree, opts.max_out_degree), len(nxt))
                out_edges[nid] = _nearest(nxt, positions[nid][0], positions)[:degree]
        return out_edges

    def _repair(
        self, layers: List[List[str]], positions: Dict[str, Tuple[float, float]], out_edges: Dict[str, List[str]]
    ) -> None:
        """Give every non-start node an incoming edge and every non-boss node an outgoing one."""
        max_out = self.options.max_out_degree
        layer_of = {nid: li for li, ids in enumerate(layers) for nid in ids}
        passes = 0
        while True:
            in_degree = {nid: 0 for nid in layer_of}
            for targets in out_edges.values():
                for t in targets:
                    in_degree[t] += 1
            orphans = [nid for ids in layers[1:] for nid in ids if in_degree[nid] == 0]
            dead_ends = [nid for ids in layers[:-1] for nid in ids if not out_edges[nid]]
            if not orphans and not dead_ends:
                return
            if passes >= self.options.max_repair_passes:
                raise ConfigurationError(
                    f"Map repair did not converge after {passes} passes "
                    f"({len(orphans)} nodes without incoming edges, {len(dead_ends)} without outgoing)"
                )
            passes += 1
            logger.debug("Repair pass %d: orphans=%s dead_ends=%s", passes, orphans, dead_ends)

            for nid in orphans:
                li = layer_of[nid]
                x = positions[nid][0]
                source = None
                for pl in range(li - 1, -1, -1):
                    open_sources = [s for s in layers[pl] if len(out_edges[s]) < max_out]
                    if open_sources:
                        source = _nearest(open_sources, x, positions)[0]
                        break
                if source is not None:
                    out_edges[source].append(nid)
                    in_degree[nid] += 1
                    continue
                # Every earlier node is saturated: steal an edge whose target has another parent
                for s in _nearest(layers[li - 1], x, positions):
                    shared = [t for t in out_edges[s] if in_degree[t] >= 2]
                    if shared:
                        victim = shared[0]
                        out_edges[s][out_edges[s].index(victim)] = nid
                        in_degree[victim] -= 1
                        in_degree[nid] += 1
                        break

            for nid in dead_ends:
                li = layer_of[nid]
                target = _nearest(layers[li + 1], positions[nid][0], positions)[0]
                out_edges[nid].append(target)

    # --- Assembly ---
    def _assemble(
        self,
        layers: List[List[str]],
        types: Dict[str, NodeType],
        positions: Dict[str, Tuple[float, float]],
        out_edges: Dict[str, List[str]],
        seed: int,
        rng: random.Random,
    ) -> GeneratedMap:
        opts = self.options
        pool = opts.scenario_pool or {}
        nodes: List[MapNode] = []
        edges: List[MapEdge] = []
        for li, ids in enumerate(layers):
            for nid in ids:
                kind = types[nid]
                template = self.templates.get(kind)
                title = rng.choice(template.titles) if template else kind.value.title()
                description = rng.choice(template.descriptions) if template else ""
                scenarios = pool.get(kind)
                nodes.append(
                    MapNode(
                        id=nid,
                        type=kind,
                        x=positions[nid][0],
                        y=positions[nid][1],
                        layer=li,
                        connections=tuple(out_edges[nid]),
                        title=title,
                        description=description,
                        difficulty=opts.difficulty if kind in CHALLENGE_NODE_TYPES else None,
                        scenario_id=rng.choice(list(scenarios)) if scenarios else None,
                    )
                )
                edges.extend(MapEdge(nid, t) for t in out_edges[nid])
        return GeneratedMap(
            nodes=tuple(nodes),
            edges=tuple(edges),
            start_node_id=layers[0][0],
            boss_node_id=layers[-1][0],
            seed=seed,
            difficulty=opts.difficulty,
        )


def _nearest(candidates: List[str], x: float, positions: Dict[str, Tuple[float, float]]) -> List[str]:
    """Candidates ordered by horizontal distance to ``x``; ties keep layer order."""
    order = {nid: i for i, nid in enumerate(candidates)}
    return sorted(candidates, key=lambda c: (abs(positions[c][0] - x), order[c]))


def generate_map(
    options: Optional[MapGenerationOptions] = None, config: Optional[GameConfig] = None
) -> GeneratedMap:
    """Generate a connected, acyclic department map.

    Raises ConfigurationError when the options cannot produce a valid map.
    """
    return MapGenerator(options or MapGenerationOptions(), config or load_game_config()).generate()


__all__ = ["MapGenerator", "generate_map", "plan_layer_widths"]
