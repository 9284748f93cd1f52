from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple


class Difficulty(str, Enum):
    EASY = "easy"
    NORMAL = "normal"
    HARD = "hard"


class NodeType(str, Enum):
    START = "start"
    CLINICAL = "clinical"
    QA = "qa"
    EDUCATIONAL = "educational"
    STORAGE = "storage"
    VENDOR = "vendor"
    BOSS = "boss"


# Kinds placed by weighted sampling; start and boss are always forced.
SAMPLED_NODE_TYPES: Tuple[NodeType, ...] = (
    NodeType.CLINICAL,
    NodeType.QA,
    NodeType.EDUCATIONAL,
    NodeType.STORAGE,
    NodeType.VENDOR,
)


class NodeStatus(str, Enum):
    LOCKED = "locked"
    AVAILABLE = "available"
    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class MapNode:
    id: str
    type: NodeType
    x: float
    y: float
    layer: int
    connections: Tuple[str, ...] = ()
    title: str = ""
    description: str = ""
    difficulty: Optional[Difficulty] = None
    scenario_id: Optional[str] = None

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "x": self.x,
            "y": self.y,
            "layer": self.layer,
            "connections": list(self.connections),
            "title": self.title,
            "description": self.description,
            "difficulty": self.difficulty.value if self.difficulty else None,
            "scenario_id": self.scenario_id,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "MapNode":
        difficulty = data.get("difficulty")
        return MapNode(
            id=str(data["id"]),
            type=NodeType(data["type"]),
            x=float(data["x"]),
            y=float(data["y"]),
            layer=int(data["layer"]),
            connections=tuple(str(c) for c in data.get("connections", [])),
            title=str(data.get("title", "")),
            description=str(data.get("description", "")),
            difficulty=Difficulty(difficulty) if difficulty else None,
            scenario_id=data.get("scenario_id"),
        )


@dataclass(frozen=True)
class MapEdge:
    source: str
    target: str

    @property
    def id(self) -> str:
        return f"edge-{self.source}-{self.target}"

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "source": self.source, "target": self.target}


@dataclass(frozen=True)
class GeneratedMap:
    """Topology of one run's department map.

    Built once by the generator and never mutated; node status lives in
    ``NodeGraph``. Predecessor lists are computed on construction so traversal
    code never scans the whole edge list.
    """

    nodes: Tuple[MapNode, ...]
    edges: Tuple[MapEdge, ...]
    start_node_id: str
    boss_node_id: str
    seed: int
    difficulty: Difficulty = Difficulty.NORMAL
    _by_id: Dict[str, MapNode] = field(init=False, repr=False, compare=False)
    _predecessors: Dict[str, Tuple[str, ...]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        by_id = {n.id: n for n in self.nodes}
        preds: Dict[str, List[str]] = {n.id: [] for n in self.nodes}
        for e in self.edges:
            preds[e.target].append(e.source)
        object.__setattr__(self, "_by_id", by_id)
        object.__setattr__(self, "_predecessors", {k: tuple(v) for k, v in preds.items()})

    def node(self, node_id: str) -> MapNode:
        try:
            return self._by_id[node_id]
        except KeyError:
            raise KeyError(f"Unknown node '{node_id}'") from None

    def has_node(self, node_id: str) -> bool:
        return node_id in self._by_id

    def predecessors(self, node_id: str) -> Tuple[str, ...]:
        return self._predecessors[node_id]

    def successors(self, node_id: str) -> Tuple[str, ...]:
        return self.node(node_id).connections

    @property
    def layer_count(self) -> int:
        return max(n.layer for n in self.nodes) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "start_node_id": self.start_node_id,
            "boss_node_id": self.boss_node_id,
            "seed": self.seed,
            "difficulty": self.difficulty.value,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "GeneratedMap":
        return GeneratedMap(
            nodes=tuple(MapNode.from_dict(n) for n in data["nodes"]),
            edges=tuple(MapEdge(source=str(e["source"]), target=str(e["target"])) for e in data["edges"]),
            start_node_id=str(data["start_node_id"]),
            boss_node_id=str(data["boss_node_id"]),
            seed=int(data["seed"]),
            difficulty=Difficulty(data.get("difficulty", Difficulty.NORMAL.value)),
        )


@dataclass
class MapGenerationOptions:
    """Inputs for ``generate_map``.

    - node_type_weights: sampling weight per node type. Entries for start and
      boss are ignored. When omitted, the configured defaults adjusted for the
      difficulty are used.
    - scenario_pool: optional scenario ids per node type; each generated node
      of that type references one of them.
    """

    difficulty: Difficulty = Difficulty.NORMAL
    node_count: int = 15
    width: float = 1000.0
    height: float = 600.0
    node_type_weights: Optional[Mapping[NodeType, float]] = None
    seed: Optional[int] = None
    scenario_pool: Optional[Mapping[NodeType, Sequence[str]]] = None
    min_out_degree: int = 1
    max_out_degree: int = 3
    max_repair_passes: int = 3

    def __post_init__(self) -> None:
        self.difficulty = Difficulty(self.difficulty)
        if self.node_type_weights is not None:
            self.node_type_weights = {NodeType(k): float(v) for k, v in self.node_type_weights.items()}
        if self.scenario_pool is not None:
            self.scenario_pool = {NodeType(k): tuple(v) for k, v in self.scenario_pool.items()}
