"""Department map: topology models, generation and traversal state.

``generate_map`` lives in ``rogue_resident.map.generator``; it is not re-exported
here because it depends on the configuration layer.
"""

from .models import (
    SAMPLED_NODE_TYPES,
    Difficulty,
    GeneratedMap,
    MapEdge,
    MapGenerationOptions,
    MapNode,
    NodeStatus,
    NodeType,
)
from .traversal import NodeGraph, RetryPolicy, cancel_node, complete_node, select_node

__all__ = [
    "SAMPLED_NODE_TYPES",
    "Difficulty",
    "GeneratedMap",
    "MapEdge",
    "MapGenerationOptions",
    "MapNode",
    "NodeGraph",
    "NodeStatus",
    "NodeType",
    "RetryPolicy",
    "cancel_node",
    "complete_node",
    "select_node",
]
