from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Mapping, Set

from .models import GeneratedMap


def reachable_from(adjacency: Mapping[str, Iterable[str]], start: str) -> Set[str]:
    """Breadth-first search over an adjacency mapping; returns every id reachable from ``start``."""
    seen = {start}
    q = deque([start])
    while q:
        cur = q.popleft()
        for nxt in adjacency.get(cur, ()):
            if nxt not in seen:
                seen.add(nxt)
                q.append(nxt)
    return seen


def reverse_adjacency(game_map: GeneratedMap) -> Dict[str, List[str]]:
    rev: Dict[str, List[str]] = {n.id: [] for n in game_map.nodes}
    for e in game_map.edges:
        rev[e.target].append(e.source)
    return rev


def is_acyclic(game_map: GeneratedMap) -> bool:
    """Kahn's algorithm: acyclic iff every node can be removed in topological order."""
    indeg = {n.id: 0 for n in game_map.nodes}
    for e in game_map.edges:
        indeg[e.target] += 1
    q = deque(nid for nid, d in indeg.items() if d == 0)
    removed = 0
    while q:
        cur = q.popleft()
        removed += 1
        for nxt in game_map.successors(cur):
            indeg[nxt] -= 1
            if indeg[nxt] == 0:
                q.append(nxt)
    return removed == len(indeg)


def find_violations(game_map: GeneratedMap) -> List[str]:
    """Describe every structural invariant the map breaks; empty when the map is sound."""
    problems: List[str] = []
    ids = {n.id for n in game_map.nodes}
    if len(ids) != len(game_map.nodes):
        problems.append("duplicate node ids")

    for e in game_map.edges:
        if e.source not in ids or e.target not in ids:
            problems.append(f"edge {e.id} references an unknown node")
            return problems
        if game_map.node(e.source).layer >= game_map.node(e.target).layer:
            problems.append(f"edge {e.id} does not point to a later layer")

    for n in game_map.nodes:
        if set(n.connections) != {e.target for e in game_map.edges if e.source == n.id}:
            problems.append(f"node {n.id} connections disagree with the edge list")

    roots = [n.id for n in game_map.nodes if not game_map.predecessors(n.id)]
    sinks = [n.id for n in game_map.nodes if not n.connections]
    if roots != [game_map.start_node_id]:
        problems.append(f"expected only the start node without incoming edges, found {roots}")
    if sinks != [game_map.boss_node_id]:
        problems.append(f"expected only the boss node without outgoing edges, found {sinks}")

    forward = {n.id: n.connections for n in game_map.nodes}
    if reachable_from(forward, game_map.start_node_id) != ids:
        problems.append("not every node is reachable from the start node")
    if reachable_from(reverse_adjacency(game_map), game_map.boss_node_id) != ids:
        problems.append("the boss node is not reachable from every node")
    if not is_acyclic(game_map):
        problems.append("graph contains a cycle")
    return problems


__all__ = ["find_violations", "is_acyclic", "reachable_from", "reverse_adjacency"]
