"""Pydantic schemas for graph validation results.

Blocking issues land in ``errors``; advisory ones in ``warnings``. A graph
with any error cannot be saved as a version.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from boardflow.models.enums import GraphErrorCode
from boardflow.schemas.base import BaseSchema
from boardflow.schemas.graph import AutomationGraph


class GraphIssue(BaseSchema):
    """Single validation error or warning."""

    code: GraphErrorCode = Field(
        ...,
        description="Machine-readable issue code",
    )
    message: str = Field(
        ...,
        description="Human-readable message",
    )
    node_id: str | None = Field(
        default=None,
        description="Offending node id, when the rule points at one",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional context (e.g. cycle path, edge)",
    )


class GraphValidationResult(BaseSchema):
    """Outcome of validating an automation graph."""

    is_valid: bool = Field(
        ...,
        description="True when there are no blocking errors",
    )
    errors: list[GraphIssue] = Field(
        default_factory=list,
        description="Blocking errors (validation stops at the first rule that fails)",
    )
    warnings: list[GraphIssue] = Field(
        default_factory=list,
        description="Advisory warnings",
    )
    execution_order: list[list[str]] = Field(
        default_factory=list,
        description="Reachable node ids grouped by topological level",
    )

    @property
    def first_error(self) -> GraphIssue | None:
        """First blocking error, if any."""
        return self.errors[0] if self.errors else None


class ValidateGraphRequest(BaseSchema):
    """Request body for on-demand validation from the editor."""

    graph: AutomationGraph = Field(
        ...,
        description="Graph to validate",
    )


__all__ = [
    "GraphIssue",
    "GraphValidationResult",
    "ValidateGraphRequest",
]
