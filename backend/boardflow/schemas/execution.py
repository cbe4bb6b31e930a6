"""Schemas for events, executions and run history.

``AutomationEvent`` is the payload that starts an automation. Executions and
run logs are read-only views over the append-only history tables.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import UUID  # noqa: TC003 - Required at runtime for Pydantic

from pydantic import Field

from boardflow.models.enums import ExecutionStatus, NodeKind, RunStepStatus
from boardflow.schemas.base import BaseResponse, BaseSchema

# =============================================================================
# Events
# =============================================================================


class FieldChange(BaseSchema):
    """Before/after values of a changed item field."""

    from_value: Any = Field(
        default=None,
        alias="from",
        description="Value before the change",
    )
    to: Any = Field(
        default=None,
        description="Value after the change",
    )


class AutomationEvent(BaseSchema):
    """Task event delivered to the automations of a project.

    Example:
        {
            "event_type": "field_update",
            "item": {"id": "t-1", "priority": "urgent", "status": "todo"},
            "changes": {"priority": {"from": "high", "to": "urgent"}},
            "actor_id": "u-42"
        }
    """

    event_type: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description=(
            "Event kind, e.g. field_update, task_created, comment_added, "
            "time_logged, due_date_approaching, manual"
        ),
    )
    item: dict[str, Any] = Field(
        default_factory=dict,
        description="Snapshot of the task after the event",
    )
    changes: dict[str, FieldChange] = Field(
        default_factory=dict,
        description="Changed fields keyed by field name",
    )
    actor_id: str | None = Field(
        default=None,
        description="User (or automation) that caused the event",
    )
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Event-specific extras (comment body, logged minutes, ...)",
    )
    occurred_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="When the event happened",
    )

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe dict using the wire field names (``from`` not ``from_value``)."""
        return self.model_dump(mode="json", by_alias=True)


class DispatchEventRequest(BaseSchema):
    """Request body for delivering an event to a project's automations."""

    event: AutomationEvent = Field(
        ...,
        description="Event to dispatch",
    )
    causation_chain: list[UUID] = Field(
        default_factory=list,
        description=(
            "Automation ids that led to this event, oldest first. Empty for "
            "events caused directly by a user."
        ),
    )


# =============================================================================
# History
# =============================================================================


class RunLogResponse(BaseResponse):
    """One condition/action step of an execution."""

    execution_id: UUID
    node_id: str
    node_kind: NodeKind
    node_type: str | None = None
    sequence: int
    status: RunStepStatus
    input: dict[str, Any] = Field(default_factory=dict)
    output: dict[str, Any] | None = None
    duration_ms: int
    success: bool
    error_code: str | None = None
    error_message: str | None = None


class ExecutionResponse(BaseResponse):
    """Execution record with its run logs."""

    automation_id: UUID
    version_id: UUID | None = None
    status: ExecutionStatus
    success: bool
    started_at: datetime
    ended_at: datetime
    duration_ms: int
    trigger_payload: dict[str, Any] = Field(default_factory=dict)
    is_simulation: bool
    requested_by: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    causation_id: UUID | None = None
    causation_chain: list[str] = Field(default_factory=list)
    logs: list[RunLogResponse] = Field(default_factory=list)


class DispatchResultResponse(BaseSchema):
    """Executions produced by dispatching one event (including cascades)."""

    executions: list[ExecutionResponse] = Field(
        default_factory=list,
        description="Recorded executions, in the order they finished",
    )


# =============================================================================
# Dry run
# =============================================================================


class DryRunRequest(BaseSchema):
    """Request body for simulating an automation."""

    sample_item: AutomationEvent | None = Field(
        default=None,
        description=(
            "Event to simulate with. When omitted a matching sample event is "
            "built from the trigger configuration."
        ),
    )
    version_id: UUID | None = Field(
        default=None,
        description="Version to simulate; defaults to the current version",
    )
    requested_by: str | None = Field(
        default=None,
        description="Who requested the simulation",
    )


class DryRunResponse(BaseSchema):
    """Outcome of a dry run."""

    matched: bool = Field(
        ...,
        description="Whether the trigger accepted the sample event",
    )
    reason: str | None = Field(
        default=None,
        description="Why the trigger rejected the sample, when it did",
    )
    sample_event: dict[str, Any] = Field(
        default_factory=dict,
        description="Event the simulation ran against",
    )
    execution: ExecutionResponse | None = Field(
        default=None,
        description="Simulated execution (absent when the trigger did not match)",
    )


__all__ = [
    "AutomationEvent",
    "DispatchEventRequest",
    "DispatchResultResponse",
    "DryRunRequest",
    "DryRunResponse",
    "ExecutionResponse",
    "FieldChange",
    "RunLogResponse",
]
