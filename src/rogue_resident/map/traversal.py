from __future__ import annotations

import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional

from ..errors import PersistenceError, StateConflictError, ValidationError
from .models import GeneratedMap, NodeStatus, NodeType

logger = logging.getLogger(__name__)


class RetryPolicy:
    """Per-node-type switch deciding whether a failed node may be attempted again.

    Types missing from the mapping are retryable.
    """

    def __init__(self, retryable: Optional[Mapping[NodeType, bool]] = None) -> None:
        self._retryable: Dict[NodeType, bool] = {NodeType(k): bool(v) for k, v in (retryable or {}).items()}

    def is_retryable(self, node_type: NodeType) -> bool:
        return self._retryable.get(NodeType(node_type), True)

    def to_dict(self) -> Dict[str, bool]:
        return {t.value: v for t, v in self._retryable.items()}

    def __repr__(self) -> str:
        return f"RetryPolicy({self.to_dict()!r})"


class NodeGraph:
    """Status layer over an immutable ``GeneratedMap``.

    Every transition returns a new NodeGraph and leaves the receiver untouched,
    so a failed transition never leaves a half-applied change behind.

    Invariants:
      - at most one node is ACTIVE;
      - a node that is neither ACTIVE, COMPLETED nor sealed is AVAILABLE iff
        all of its direct predecessors are COMPLETED (the start node has none).

    A *sealed* node failed under a non-retryable policy; it stays LOCKED for the
    rest of the run.
    """

    def __init__(
        self,
        game_map: GeneratedMap,
        statuses: Optional[Mapping[str, NodeStatus]] = None,
        *,
        retry_policy: Optional[RetryPolicy] = None,
        sealed: Iterable[str] = (),
    ) -> None:
        self.map = game_map
        self.retry_policy = retry_policy or RetryPolicy()
        self._sealed: FrozenSet[str] = frozenset(sealed)
        if statuses is None:
            statuses = {
                n.id: (NodeStatus.AVAILABLE if n.id == game_map.start_node_id else NodeStatus.LOCKED)
                for n in game_map.nodes
            }
        self._statuses: Dict[str, NodeStatus] = dict(statuses)
        active = [nid for nid, s in self._statuses.items() if s is NodeStatus.ACTIVE]
        if len(active) > 1:
            raise StateConflictError(f"More than one active node: {sorted(active)}")
        self._active: Optional[str] = active[0] if active else None

    # --- Queries ---
    def status_of(self, node_id: str) -> NodeStatus:
        if not self.map.has_node(node_id):
            raise ValidationError(f"Unknown node '{node_id}'")
        return self._statuses[node_id]

    @property
    def statuses(self) -> Dict[str, NodeStatus]:
        return dict(self._statuses)

    @property
    def active_node_id(self) -> Optional[str]:
        return self._active

    @property
    def sealed(self) -> FrozenSet[str]:
        return self._sealed

    def available_nodes(self) -> List[str]:
        return [n.id for n in self.map.nodes if self._statuses[n.id] is NodeStatus.AVAILABLE]

    def is_victory(self) -> bool:
        return self._statuses[self.map.boss_node_id] is NodeStatus.COMPLETED

    def is_stuck(self) -> bool:
        """True when no progress is possible: nothing available or active and the boss unbeaten."""
        return self._active is None and not self.available_nodes() and not self.is_victory()

    # --- Transitions ---
    def select(self, node_id: str) -> "NodeGraph":
        status = self.status_of(node_id)
        if self._active is not None:
            raise StateConflictError(
                f"Cannot select '{node_id}': node '{self._active}' is already active"
            )
        if status is not NodeStatus.AVAILABLE:
            raise StateConflictError(f"Cannot select '{node_id}': node is {status.value}")
        statuses = dict(self._statuses)
        statuses[node_id] = NodeStatus.ACTIVE
        logger.debug("Node %s activated", node_id)
        return self._derive(statuses)

    def complete(self, node_id: str, success: bool) -> "NodeGraph":
        self._require_active(node_id, "complete")
        statuses = dict(self._statuses)
        sealed = set(self._sealed)
        if success:
            statuses[node_id] = NodeStatus.COMPLETED
            # Only direct successors can change availability
            for succ in self.map.successors(node_id):
                if statuses[succ] is NodeStatus.LOCKED and succ not in sealed and all(
                    statuses[p] is NodeStatus.COMPLETED for p in self.map.predecessors(succ)
                ):
                    statuses[succ] = NodeStatus.AVAILABLE
                    logger.debug("Node %s unlocked", succ)
            logger.info("Node %s completed", node_id)
        elif self.retry_policy.is_retryable(self.map.node(node_id).type):
            statuses[node_id] = NodeStatus.AVAILABLE
            logger.info("Node %s failed; retry permitted", node_id)
        else:
            statuses[node_id] = NodeStatus.LOCKED
            sealed.add(node_id)
            logger.info("Node %s failed; sealed (non-retryable)", node_id)
        return self._derive(statuses, sealed)

    def cancel(self, node_id: str) -> "NodeGraph":
        self._require_active(node_id, "cancel")
        statuses = dict(self._statuses)
        statuses[node_id] = NodeStatus.AVAILABLE
        logger.debug("Node %s cancelled", node_id)
        return self._derive(statuses)

    # --- Persistence helpers ---
    def to_dict(self) -> Dict[str, Any]:
        return {
            "statuses": {nid: s.value for nid, s in self._statuses.items()},
            "sealed": sorted(self._sealed),
        }

    @classmethod
    def from_dict(
        cls, game_map: GeneratedMap, data: Mapping[str, Any], *, retry_policy: Optional[RetryPolicy] = None
    ) -> "NodeGraph":
        raw = data.get("statuses", {})
        if set(raw) != {n.id for n in game_map.nodes}:
            raise PersistenceError("Saved node statuses do not match the map")
        return cls(
            game_map,
            {nid: NodeStatus(s) for nid, s in raw.items()},
            retry_policy=retry_policy,
            sealed=data.get("sealed", ()),
        )

    # --- Internal helpers ---
    def _require_active(self, node_id: str, verb: str) -> None:
        status = self.status_of(node_id)
        if status is not NodeStatus.ACTIVE:
            raise StateConflictError(f"Cannot {verb} '{node_id}': node is {status.value}, not active")

    def _derive(self, statuses: Dict[str, NodeStatus], sealed: Optional[Iterable[str]] = None) -> "NodeGraph":
        return NodeGraph(
            self.map,
            statuses,
            retry_policy=self.retry_policy,
            sealed=self._sealed if sealed is None else sealed,
        )


def select_node(graph: NodeGraph, node_id: str) -> NodeGraph:
    return graph.select(node_id)


def complete_node(graph: NodeGraph, node_id: str, success: bool) -> NodeGraph:
    return graph.complete(node_id, success)


def cancel_node(graph: NodeGraph, node_id: str) -> NodeGraph:
    return graph.cancel(node_id)


__all__ = ["NodeGraph", "RetryPolicy", "cancel_node", "complete_node", "select_node"]
