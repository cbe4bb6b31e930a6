"""Graph algorithms for automation validation and execution planning.

- Cycle detection using DFS with a recursion stack and path tracking
- Level-based topological sort using Kahn's algorithm
- Reachability and descendant search using BFS

Time Complexity: O(V + E) for every algorithm.
Space Complexity: O(V + E).
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from boardflow.services.automation.graph import Graph

NodeId = TypeVar("NodeId")


class GraphAlgorithms(Generic[NodeId]):
    """Static graph algorithms over ``Graph``.

    Example:
        >>> graph = Graph[str]()
        >>> graph.add_edge("a", "b")
        >>> graph.add_edge("b", "a")
        >>> GraphAlgorithms.detect_cycle_from(graph, "a")
        ['a', 'b', 'a']
    """

    @staticmethod
    def detect_cycle_from(graph: Graph[NodeId], start: NodeId) -> list[NodeId] | None:
        """Find a cycle reachable from ``start``.

        Depth-first search keeping the current path on a recursion stack; an
        edge into a node still on the stack is a back-edge.

        Returns:
            The cycle as node ids with the re-entered node repeated at the end
            (``[a, b, c, a]``), or None if no cycle is reachable.
        """
        if start not in graph:
            return None

        visited: set[NodeId] = set()
        on_stack: set[NodeId] = set()
        path: list[NodeId] = []

        def dfs(node: NodeId) -> list[NodeId] | None:
            visited.add(node)
            on_stack.add(node)
            path.append(node)

            for neighbor in graph.get_successors(node):
                if neighbor in on_stack:
                    cycle_start = path.index(neighbor)
                    return [*path[cycle_start:], neighbor]
                if neighbor not in visited:
                    result = dfs(neighbor)
                    if result:
                        return result

            path.pop()
            on_stack.remove(node)
            return None

        return dfs(start)

    @staticmethod
    def detect_cycle(graph: Graph[NodeId]) -> list[NodeId] | None:
        """Find any cycle in the graph, trying every node as a start."""
        for node in graph:
            cycle = GraphAlgorithms.detect_cycle_from(graph, node)
            if cycle:
                return cycle
        return None

    @staticmethod
    def topological_sort_levels(graph: Graph[NodeId]) -> list[list[NodeId]] | None:
        """Kahn's algorithm grouping nodes into parallelizable levels.

        Nodes in the same level have all predecessors in earlier levels.

        Returns:
            Levels of node ids, or None if the graph contains a cycle.

        Example:
            >>> # a -> b, a -> c, b -> d, c -> d
            >>> GraphAlgorithms.topological_sort_levels(graph)
            [['a'], ['b', 'c'], ['d']]
        """
        in_degree: dict[NodeId, int] = {node: graph.get_in_degree(node) for node in graph}
        current: list[NodeId] = [node for node in graph if in_degree[node] == 0]
        levels: list[list[NodeId]] = []
        placed = 0

        while current:
            levels.append(current)
            placed += len(current)
            next_level: list[NodeId] = []
            for node in current:
                for successor in graph.get_successors(node):
                    in_degree[successor] -= 1
                    if in_degree[successor] == 0:
                        next_level.append(successor)
            current = next_level

        if placed != len(graph):
            return None
        return levels

    @staticmethod
    def find_reachable_from(
        graph: Graph[NodeId],
        start_nodes: Iterable[NodeId],
    ) -> set[NodeId]:
        """Nodes reachable from any start node (start nodes included)."""
        reachable: set[NodeId] = set()
        queue: deque[NodeId] = deque(node for node in start_nodes if node in graph)

        while queue:
            current = queue.popleft()
            if current in reachable:
                continue
            reachable.add(current)
            for successor in graph.get_successors(current):
                if successor not in reachable:
                    queue.append(successor)

        return reachable

    @staticmethod
    def find_unreachable_from(
        graph: Graph[NodeId],
        start_nodes: Iterable[NodeId],
    ) -> list[NodeId]:
        """Nodes not reachable from any start node, in graph order."""
        reachable = GraphAlgorithms.find_reachable_from(graph, start_nodes)
        return [node for node in graph if node not in reachable]

    @staticmethod
    def find_descendants(graph: Graph[NodeId], node: NodeId) -> set[NodeId]:
        """Every node reachable from ``node``, excluding ``node`` itself."""
        return GraphAlgorithms.find_reachable_from(graph, graph.get_successors(node))

    @staticmethod
    def find_ancestors(graph: Graph[NodeId], node: NodeId) -> set[NodeId]:
        """Every node that can reach ``node``, excluding ``node`` itself."""
        ancestors: set[NodeId] = set()
        queue: deque[NodeId] = deque(graph.get_predecessors(node))

        while queue:
            current = queue.popleft()
            if current in ancestors:
                continue
            ancestors.add(current)
            queue.extend(
                parent for parent in graph.get_predecessors(current) if parent not in ancestors
            )

        return ancestors

    @staticmethod
    def find_sinks(graph: Graph[NodeId]) -> list[NodeId]:
        """Nodes with no outgoing edges, in graph order."""
        return [node for node in graph if graph.get_out_degree(node) == 0]


__all__ = [
    "GraphAlgorithms",
]
