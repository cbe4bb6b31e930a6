"""Automation graph schemas.

A graph is stored as two flat lists: nodes keyed by id and edges that refer
to node ids. Nodes never reference each other directly; the executor and
validator build their own adjacency index from the edge list.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from boardflow.models.enums import NodeKind
from boardflow.schemas.base import BaseSchema

DEFAULT_TRIGGER_NODE_ID = "trigger-0"


class GraphNode(BaseSchema):
    """Single node of an automation graph."""

    id: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Node id, unique within the graph",
        examples=["trigger-0"],
    )
    kind: NodeKind = Field(
        ...,
        description="trigger, condition or action",
    )
    type: str | None = Field(
        default=None,
        max_length=100,
        description=(
            "Registry key of the trigger matcher, condition evaluator or "
            "action handler. Defaults per kind when omitted."
        ),
        examples=["status_change", "field_compare", "assign_user"],
    )
    label: str = Field(
        default="",
        max_length=255,
        description="Display label; also used for trigger conflict detection",
    )
    description: str | None = Field(
        default=None,
        description="Optional free-form description",
    )
    config: dict[str, Any] = Field(
        default_factory=dict,
        description="Node configuration passed to its matcher/evaluator/handler",
        examples=[{"field": "priority", "to": "urgent"}],
    )
    optional: bool = Field(
        default=False,
        description=(
            "Optional terminal actions do not affect the overall success "
            "of an execution"
        ),
    )
    position: dict[str, float] | None = Field(
        default=None,
        description="Editor canvas position (ignored by the engine)",
        examples=[{"x": 120.0, "y": 40.0}],
    )


class GraphEdge(BaseSchema):
    """Directed edge between two nodes."""

    id: str | None = Field(
        default=None,
        max_length=255,
        description="Optional edge id assigned by the editor",
    )
    source: str = Field(
        ...,
        min_length=1,
        description="Source node id",
    )
    target: str = Field(
        ...,
        min_length=1,
        description="Target node id",
    )
    label: str | None = Field(
        default=None,
        description="Optional display label",
    )
    branch_key: str | None = Field(
        default=None,
        description="Optional editor branch handle",
    )


class AutomationGraph(BaseSchema):
    """Nodes and edges of one automation version."""

    nodes: list[GraphNode] = Field(
        default_factory=list,
        description="Graph nodes",
    )
    edges: list[GraphEdge] = Field(
        default_factory=list,
        description="Directed edges between node ids",
    )

    def trigger_nodes(self) -> list[GraphNode]:
        """Return every node of kind trigger."""
        return [node for node in self.nodes if node.kind == NodeKind.TRIGGER]

    def node_index(self) -> dict[str, GraphNode]:
        """Map node id to node (last one wins on duplicate ids)."""
        return {node.id: node for node in self.nodes}

    def to_definition(self) -> dict[str, Any]:
        """Serialize to the JSON snapshot stored on a version."""
        return self.model_dump(mode="json")

    @classmethod
    def from_definition(cls, definition: dict[str, Any] | None) -> AutomationGraph:
        """Load a stored version snapshot."""
        return cls.model_validate(definition or {})

    @classmethod
    def default(cls, label: str = "Trigger") -> AutomationGraph:
        """A new automation's starting graph: a lone manual trigger."""
        return cls(
            nodes=[
                GraphNode(
                    id=DEFAULT_TRIGGER_NODE_ID,
                    kind=NodeKind.TRIGGER,
                    type="manual",
                    label=label,
                )
            ]
        )


__all__ = [
    "DEFAULT_TRIGGER_NODE_ID",
    "AutomationGraph",
    "GraphEdge",
    "GraphNode",
]
