"""Automation, version and editor schemas."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Required at runtime for Pydantic
from uuid import UUID  # noqa: TC003 - Required at runtime for Pydantic

from pydantic import Field

from boardflow.models.enums import ConflictSeverity
from boardflow.schemas.base import BaseResponse, BaseSchema
from boardflow.schemas.execution import ExecutionResponse
from boardflow.schemas.graph import AutomationGraph
from boardflow.schemas.validation import GraphIssue, GraphValidationResult

# =============================================================================
# Conflicts
# =============================================================================


class AutomationConflict(BaseSchema):
    """Advisory trigger conflict with a sibling automation."""

    automation_id: UUID = Field(..., description="Automation being checked")
    conflicting_automation_id: UUID = Field(..., description="Sibling automation")
    conflicting_automation_name: str | None = Field(
        default=None,
        description="Sibling automation name",
    )
    reason: str = Field(
        ...,
        description="Human-readable reason",
        examples=['Shares trigger "Priority changed" with Escalate urgent.'],
    )
    severity: ConflictSeverity = Field(..., description="warning or error")


# =============================================================================
# Versions
# =============================================================================


class AutomationVersionResponse(BaseResponse):
    """Version summary (without the graph)."""

    automation_id: UUID
    version_number: int
    name: str
    notes: str | None = None
    is_enabled: bool
    created_by: str | None = None


class AutomationVersionDetail(AutomationVersionResponse):
    """Version including its graph snapshot."""

    definition: AutomationGraph


class ToggleVersionRequest(BaseSchema):
    is_enabled: bool = Field(..., description="Enable or disable the version")


# =============================================================================
# Automations
# =============================================================================


class AutomationResponse(BaseResponse):
    """Automation without graph or history."""

    project_id: UUID
    name: str
    description: str | None = None
    is_active: bool
    current_version_id: UUID | None = None
    created_by: str | None = None
    updated_at: datetime


class SetActiveRequest(BaseSchema):
    is_active: bool = Field(..., description="Enable or disable the automation")


class SaveAutomationRequest(BaseSchema):
    """Save a graph as a new version, creating the automation if needed."""

    automation_id: UUID | None = Field(
        default=None,
        description="Existing automation to add a version to; omit to create one",
    )
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(default=None)
    is_active: bool = Field(default=True)
    graph: AutomationGraph = Field(..., description="Graph to snapshot")
    version_name: str | None = Field(
        default=None,
        max_length=255,
        description="Display name of the new version (defaults to v{n})",
    )
    version_notes: str | None = Field(default=None, description="Change notes")
    make_current: bool = Field(
        default=True,
        description="Point the automation at the new version",
    )
    created_by: str | None = Field(default=None, description="Author id")


class SaveAutomationResponse(BaseSchema):
    """Result of saving a graph."""

    automation: AutomationResponse
    version: AutomationVersionResponse
    warnings: list[GraphIssue] = Field(
        default_factory=list,
        description="Advisory validation warnings",
    )
    conflicts: list[AutomationConflict] = Field(
        default_factory=list,
        description="Advisory trigger conflicts",
    )


class EditorDataResponse(BaseSchema):
    """Everything the automation editor needs for one project."""

    automations: list[AutomationResponse] = Field(
        default_factory=list,
        description="All automations of the project, newest first",
    )
    automation: AutomationResponse | None = Field(
        default=None,
        description="Selected automation (requested one, else the newest)",
    )
    graph: AutomationGraph = Field(
        default_factory=AutomationGraph,
        description="Active graph of the selected automation",
    )
    versions: list[AutomationVersionResponse] = Field(default_factory=list)
    run_history: list[ExecutionResponse] = Field(default_factory=list)
    conflicts: list[AutomationConflict] = Field(default_factory=list)
    validation: GraphValidationResult | None = Field(
        default=None,
        description="Validation result of the active graph",
    )


__all__ = [
    "AutomationConflict",
    "AutomationResponse",
    "AutomationVersionDetail",
    "AutomationVersionResponse",
    "EditorDataResponse",
    "SaveAutomationRequest",
    "SaveAutomationResponse",
    "SetActiveRequest",
    "ToggleVersionRequest",
]
