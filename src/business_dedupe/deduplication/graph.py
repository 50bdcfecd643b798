"""Match graph and union-find utilities for clustering duplicates."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from business_dedupe.entities.core import PairEvidence
from business_dedupe.utils.helpers import ordered_pair


class UnionFind:
    """Disjoint-set data structure with path compression."""

    def __init__(self) -> None:
        self._parent: Dict[str, str] = {}
        self._rank: Dict[str, int] = {}

    def add(self, item: str) -> None:
        if item not in self._parent:
            self._parent[item] = item
            self._rank[item] = 0

    def find(self, item: str) -> str:
        parent = self._parent.get(item)
        if parent is None:
            self.add(item)
            return item
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: str, b: str) -> bool:
        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return False
        rank_a = self._rank[root_a]
        rank_b = self._rank[root_b]
        if rank_a < rank_b:
            self._parent[root_a] = root_b
        elif rank_a > rank_b:
            self._parent[root_b] = root_a
        else:
            self._parent[root_b] = root_a
            self._rank[root_a] += 1
        return True

    def components(self) -> List[List[str]]:
        """Components in order of their first member; members in insertion order."""

        groups: Dict[str, List[str]] = {}
        for item in self._parent:
            groups.setdefault(self.find(item), []).append(item)
        return list(groups.values())


class MatchGraph:
    """Records as nodes, accepted pairwise matches as edges."""

    def __init__(self) -> None:
        self.edges: Dict[Tuple[str, str], PairEvidence] = {}
        self._uf = UnionFind()

    def add_node(self, node_id: str) -> None:
        self._uf.add(node_id)

    def add_edge(self, evidence: PairEvidence) -> None:
        if evidence.left_id == evidence.right_id:
            return
        key = ordered_pair(evidence.left_id, evidence.right_id)
        self.add_node(evidence.left_id)
        self.add_node(evidence.right_id)
        existing = self.edges.get(key)
        if existing is None or evidence.score > existing.score:
            self.edges[key] = evidence
        self._uf.union(evidence.left_id, evidence.right_id)

    def get_edge(self, node_a: str, node_b: str) -> Optional[PairEvidence]:
        return self.edges.get(ordered_pair(node_a, node_b))

    def connected_components(self) -> List[List[str]]:
        return self._uf.components()

    def component_of(self, node_id: str) -> str:
        return self._uf.find(node_id)

    def edges_by_component(self) -> Dict[str, List[PairEvidence]]:
        """Group edges under their component root, sorted by node pair."""

        grouped: Dict[str, List[PairEvidence]] = {}
        for key in sorted(self.edges):
            grouped.setdefault(self._uf.find(key[0]), []).append(self.edges[key])
        return grouped

    def stats(self) -> Dict[str, int]:
        components = self.connected_components()
        return {
            "nodes": sum(len(component) for component in components),
            "edges": len(self.edges),
            "components": len(components),
            "largest_component": max((len(component) for component in components), default=0),
        }


__all__ = ["MatchGraph", "UnionFind"]
