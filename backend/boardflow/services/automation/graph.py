"""Directed graph index for automation graphs.

Automation definitions are stored as flat node and edge lists; this module
builds an id-indexed adjacency structure over them so validation and
execution never need nodes that reference each other.

Time Complexity:
- Node/Edge addition: O(1)
- Successor/predecessor lookup: O(1)

Space Complexity: O(V + E)
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Hashable, Iterable, Iterator
from typing import Generic, TypeVar

NodeId = TypeVar("NodeId", bound=Hashable)


class Graph(Generic[NodeId]):
    """Directed graph with forward and reverse adjacency lists.

    Node iteration follows insertion order, which keeps topological levels
    and reported cycles deterministic for a given definition.

    Example:
        >>> graph = Graph[str]()
        >>> graph.add_edge("trigger-0", "notify")
        >>> graph.get_successors("trigger-0")
        ['notify']
    """

    __slots__ = ("_adjacency", "_edge_count", "_nodes", "_reverse_adjacency")

    def __init__(self) -> None:
        self._adjacency: defaultdict[NodeId, list[NodeId]] = defaultdict(list)
        self._reverse_adjacency: defaultdict[NodeId, list[NodeId]] = defaultdict(list)
        # dict used as an ordered set
        self._nodes: dict[NodeId, None] = {}
        self._edge_count: int = 0

    @classmethod
    def from_edges(
        cls,
        nodes: Iterable[NodeId],
        edges: Iterable[tuple[NodeId, NodeId]],
    ) -> Graph[NodeId]:
        """Build a graph from node ids and (source, target) pairs."""
        graph = cls()
        for node_id in nodes:
            graph.add_node(node_id)
        for source, target in edges:
            graph.add_edge(source, target)
        return graph

    @property
    def node_count(self) -> int:
        """Get the number of nodes in the graph."""
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        """Get the number of edges in the graph."""
        return self._edge_count

    @property
    def nodes(self) -> list[NodeId]:
        """Node ids in insertion order."""
        return list(self._nodes)

    def add_node(self, node_id: NodeId) -> None:
        """Add a node to the graph; no-op if it already exists."""
        self._nodes.setdefault(node_id, None)

    def add_edge(self, source: NodeId, target: NodeId) -> None:
        """Add a directed edge from source to target.

        Both nodes are added if missing. Duplicate edges are kept; the
        traversal algorithms tolerate them.
        """
        self.add_node(source)
        self.add_node(target)
        self._adjacency[source].append(target)
        self._reverse_adjacency[target].append(source)
        self._edge_count += 1

    def has_edge(self, source: NodeId, target: NodeId) -> bool:
        """Check if an edge exists from source to target."""
        return target in self._adjacency.get(source, [])

    def get_successors(self, node_id: NodeId) -> list[NodeId]:
        """Outgoing neighbours; empty list if none."""
        return self._adjacency.get(node_id, [])

    def get_predecessors(self, node_id: NodeId) -> list[NodeId]:
        """Incoming neighbours; empty list if none."""
        return self._reverse_adjacency.get(node_id, [])

    def get_in_degree(self, node_id: NodeId) -> int:
        """Number of incoming edges."""
        return len(self._reverse_adjacency.get(node_id, []))

    def get_out_degree(self, node_id: NodeId) -> int:
        """Number of outgoing edges."""
        return len(self._adjacency.get(node_id, []))

    def subgraph(self, node_ids: Iterable[NodeId]) -> Graph[NodeId]:
        """Induced subgraph over ``node_ids``, keeping this graph's node order."""
        keep = set(node_ids)
        sub = Graph[NodeId]()
        for node in self._nodes:
            if node in keep:
                sub.add_node(node)
        for node in list(sub._nodes):
            for successor in self.get_successors(node):
                if successor in keep:
                    sub.add_edge(node, successor)
        return sub

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[NodeId]:
        return iter(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def __repr__(self) -> str:
        return f"Graph(nodes={self.node_count}, edges={self.edge_count})"


__all__ = [
    "Graph",
    "NodeId",
]
