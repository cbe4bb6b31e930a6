"""Structural validation of automation graphs.

Rules run in a fixed order and the first blocking rule that fails ends the
pass, so the editor always gets one precise error with the offending node:

1. exactly one trigger node          -> MISSING_OR_MULTIPLE_TRIGGER
2. node ids are unique               -> DUPLICATE_NODE_ID
3. edges reference existing nodes    -> DANGLING_EDGE
4. no cycle in the graph             -> CYCLE_DETECTED
   (cycles reachable from the trigger are reported first)

Advisory warnings (unreachable nodes, edges into the trigger from outside
the reachable graph, unregistered node types) never block a save.

The validator is pure: no database access, no clock.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from boardflow.models.enums import GraphErrorCode, NodeKind
from boardflow.schemas.graph import AutomationGraph
from boardflow.schemas.validation import GraphIssue, GraphValidationResult
from boardflow.services.automation.algorithms import GraphAlgorithms
from boardflow.services.automation.exceptions import (
    CycleDetectedError,
    GraphValidationError,
)
from boardflow.services.automation.graph import Graph

# Node type used when a trigger/condition node leaves ``type`` empty
DEFAULT_NODE_TYPES: dict[NodeKind, str] = {
    NodeKind.TRIGGER: "manual",
    NodeKind.CONDITION: "field_compare",
}


def node_type_of(kind: NodeKind | str, type_name: str | None) -> str | None:
    """Effective registry key for a node."""
    return type_name or DEFAULT_NODE_TYPES.get(NodeKind(kind))


def index_graph(graph: AutomationGraph) -> Graph[str]:
    """Adjacency index over a graph whose edges reference existing nodes."""
    return Graph[str].from_edges(
        (node.id for node in graph.nodes),
        ((edge.source, edge.target) for edge in graph.edges),
    )


class GraphValidator:
    """Validate automation graphs.

    Args:
        known_types: Optional registered type names per node kind. When given,
            nodes whose type is not registered produce UNKNOWN_NODE_TYPE
            warnings.

    Example:
        >>> result = GraphValidator().validate(graph)
        >>> if not result.is_valid:
        ...     print(result.errors[0].code, result.errors[0].node_id)
    """

    def __init__(
        self,
        known_types: Mapping[NodeKind, Iterable[str]] | None = None,
    ) -> None:
        self.known_types = (
            {NodeKind(kind): set(types) for kind, types in known_types.items()}
            if known_types is not None
            else None
        )

    def validate(self, graph: AutomationGraph) -> GraphValidationResult:
        """Run every rule and collect the result."""
        error = self._first_structural_error(graph)
        if error is not None:
            return GraphValidationResult(is_valid=False, errors=[error])

        trigger_id = graph.trigger_nodes()[0].id
        index = index_graph(graph)

        cycle = GraphAlgorithms.detect_cycle_from(
            index, trigger_id
        ) or GraphAlgorithms.detect_cycle(index)
        if cycle:
            return GraphValidationResult(
                is_valid=False,
                errors=[
                    GraphIssue(
                        code=GraphErrorCode.CYCLE_DETECTED,
                        message=f"Cycle detected: {' -> '.join(cycle)}",
                        node_id=cycle[-1],
                        details={"cycle_path": cycle},
                    )
                ],
            )

        reachable = GraphAlgorithms.find_reachable_from(index, [trigger_id])
        warnings = [
            *self._reachability_warnings(graph, index, trigger_id, reachable),
            *self._type_warnings(graph),
        ]
        levels = GraphAlgorithms.topological_sort_levels(index.subgraph(reachable)) or []

        return GraphValidationResult(
            is_valid=True,
            warnings=warnings,
            execution_order=levels,
        )

    def validate_or_raise(self, graph: AutomationGraph) -> GraphValidationResult:
        """Validate and raise on the first blocking error.

        Raises:
            CycleDetectedError: If the graph contains a cycle.
            GraphValidationError: For every other blocking rule.
        """
        result = self.validate(graph)
        error = result.first_error
        if error is None:
            return result
        if error.code == GraphErrorCode.CYCLE_DETECTED:
            raise CycleDetectedError(error.details["cycle_path"])
        raise GraphValidationError(
            error.code,
            error.message,
            node_id=error.node_id,
            details=error.details,
        )

    # =========================================================================
    # Blocking rules
    # =========================================================================

    def _first_structural_error(self, graph: AutomationGraph) -> GraphIssue | None:
        triggers = graph.trigger_nodes()
        if len(triggers) != 1:
            return GraphIssue(
                code=GraphErrorCode.MISSING_OR_MULTIPLE_TRIGGER,
                message=(
                    "Automation has no trigger node"
                    if not triggers
                    else f"Automation has {len(triggers)} trigger nodes; exactly one is allowed"
                ),
                node_id=triggers[1].id if len(triggers) > 1 else None,
                details={"trigger_ids": [node.id for node in triggers]},
            )

        seen: set[str] = set()
        for node in graph.nodes:
            if node.id in seen:
                return GraphIssue(
                    code=GraphErrorCode.DUPLICATE_NODE_ID,
                    message=f"Duplicate node id '{node.id}'",
                    node_id=node.id,
                )
            seen.add(node.id)

        for edge in graph.edges:
            for endpoint in (edge.source, edge.target):
                if endpoint not in seen:
                    return GraphIssue(
                        code=GraphErrorCode.DANGLING_EDGE,
                        message=(
                            f"Edge {edge.source} -> {edge.target} references "
                            f"missing node '{endpoint}'"
                        ),
                        node_id=endpoint,
                        details={
                            "edge_id": edge.id,
                            "source": edge.source,
                            "target": edge.target,
                        },
                    )

        return None

    # =========================================================================
    # Advisory rules
    # =========================================================================

    def _reachability_warnings(
        self,
        graph: AutomationGraph,
        index: Graph[str],
        trigger_id: str,
        reachable: set[str],
    ) -> list[GraphIssue]:
        warnings = [
            GraphIssue(
                code=GraphErrorCode.UNREACHABLE_NODE,
                message=f"Node '{node_id}' is not reachable from the trigger and will never run",
                node_id=node_id,
            )
            for node_id in GraphAlgorithms.find_unreachable_from(index, [trigger_id])
        ]
        warnings.extend(
            GraphIssue(
                code=GraphErrorCode.TRIGGER_HAS_INCOMING_EDGE,
                message=f"Edge {source} -> {trigger_id} points into the trigger",
                node_id=source,
            )
            for source in index.get_predecessors(trigger_id)
            if source not in reachable
        )
        return warnings

    def _type_warnings(self, graph: AutomationGraph) -> list[GraphIssue]:
        if self.known_types is None:
            return []
        warnings: list[GraphIssue] = []
        for node in graph.nodes:
            type_name = node_type_of(node.kind, node.type)
            if type_name not in self.known_types.get(NodeKind(node.kind), set()):
                warnings.append(
                    GraphIssue(
                        code=GraphErrorCode.UNKNOWN_NODE_TYPE,
                        message=f"No {node.kind} registered for type '{type_name}'",
                        node_id=node.id,
                        details={"type": type_name},
                    )
                )
        return warnings


__all__ = [
    "DEFAULT_NODE_TYPES",
    "GraphValidator",
    "index_graph",
    "node_type_of",
]
