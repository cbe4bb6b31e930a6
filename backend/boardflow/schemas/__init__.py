"""Pydantic schemas for request/response validation."""

from boardflow.schemas.automation import (
    AutomationConflict,
    AutomationResponse,
    AutomationVersionDetail,
    AutomationVersionResponse,
    EditorDataResponse,
    SaveAutomationRequest,
    SaveAutomationResponse,
    SetActiveRequest,
    ToggleVersionRequest,
)
from boardflow.schemas.base import (
    BaseResponse,
    BaseSchema,
    ErrorResponse,
    MessageResponse,
)
from boardflow.schemas.execution import (
    AutomationEvent,
    DispatchEventRequest,
    DispatchResultResponse,
    DryRunRequest,
    DryRunResponse,
    ExecutionResponse,
    FieldChange,
    RunLogResponse,
)
from boardflow.schemas.graph import AutomationGraph, GraphEdge, GraphNode
from boardflow.schemas.validation import (
    GraphIssue,
    GraphValidationResult,
    ValidateGraphRequest,
)

__all__ = [
    # Base
    "BaseResponse",
    "BaseSchema",
    "ErrorResponse",
    "MessageResponse",
    # Graph
    "AutomationGraph",
    "GraphEdge",
    "GraphNode",
    "GraphIssue",
    "GraphValidationResult",
    "ValidateGraphRequest",
    # Automation
    "AutomationConflict",
    "AutomationResponse",
    "AutomationVersionDetail",
    "AutomationVersionResponse",
    "EditorDataResponse",
    "SaveAutomationRequest",
    "SaveAutomationResponse",
    "SetActiveRequest",
    "ToggleVersionRequest",
    # Execution
    "AutomationEvent",
    "DispatchEventRequest",
    "DispatchResultResponse",
    "DryRunRequest",
    "DryRunResponse",
    "ExecutionResponse",
    "FieldChange",
    "RunLogResponse",
]
