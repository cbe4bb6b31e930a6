"""Automation graph, versioning and execution exceptions.

Validation errors carry the violation code plus the offending node id so the
editor can highlight it. Execution errors are mostly caught by the executor
and turned into failed run logs; they only escape for engine-level failures.
"""

from typing import Any
from uuid import UUID

from boardflow.core.exceptions import AppError, ResourceNotFoundError
from boardflow.models.enums import GraphErrorCode, RunErrorCode

# ============================================================================
# Base
# ============================================================================


class AutomationError(AppError):
    """Base exception for the automation engine."""

    error_code = "AUTOMATION_ERROR"


class AutomationNotFoundError(ResourceNotFoundError, AutomationError):
    """Automation does not exist or is soft-deleted."""

    def __init__(self, automation_id: UUID) -> None:
        super().__init__("automation", automation_id)
        self.automation_id = automation_id


class VersionNotFoundError(ResourceNotFoundError, AutomationError):
    """Automation version does not exist."""

    def __init__(self, version_id: UUID) -> None:
        super().__init__("automation version", version_id)
        self.version_id = version_id


# ============================================================================
# Graph Validation
# ============================================================================


class GraphValidationError(AutomationError):
    """Raised when a graph violates a structural rule and cannot be saved.

    Attributes:
        code: Violation code (see ``GraphErrorCode``).
        node_id: Offending node id, when the rule points at one.
    """

    def __init__(
        self,
        code: GraphErrorCode | str,
        message: str,
        node_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        code = GraphErrorCode(code)
        super().__init__(
            message,
            error_code=code.value,
            details={**(details or {}), "node_id": node_id},
        )
        self.code = code
        self.node_id = node_id


class CycleDetectedError(GraphValidationError):
    """Raised when a back-edge is found while walking from the trigger.

    Attributes:
        cycle_path: Node ids forming the cycle, first id repeated at the end.
    """

    def __init__(self, cycle_path: list[str]) -> None:
        super().__init__(
            GraphErrorCode.CYCLE_DETECTED,
            f"Cycle detected: {' -> '.join(cycle_path)}",
            node_id=cycle_path[-1] if cycle_path else None,
            details={"cycle_path": cycle_path},
        )
        self.cycle_path = cycle_path


# ============================================================================
# Versioning
# ============================================================================


class VersionConflictError(AutomationError):
    """Raised when a version slot could not be claimed after all retries."""

    error_code = "VERSION_CONFLICT"

    def __init__(self, automation_id: UUID, attempts: int) -> None:
        super().__init__(
            f"Could not allocate a version number for automation "
            f"{automation_id} after {attempts} attempts",
            details={"automation_id": str(automation_id), "attempts": attempts},
        )
        self.automation_id = automation_id
        self.attempts = attempts


class VersionDisabledError(AutomationError):
    """Raised when a disabled version is promoted to current."""

    error_code = "VERSION_DISABLED"

    def __init__(self, version_id: UUID) -> None:
        super().__init__(
            f"Version {version_id} is disabled and cannot become current",
            details={"version_id": str(version_id)},
        )
        self.version_id = version_id


class NoActiveVersionError(AutomationError):
    """Raised when an automation has no version to run or simulate."""

    error_code = "NO_ACTIVE_VERSION"

    def __init__(self, automation_id: UUID) -> None:
        super().__init__(
            f"Automation {automation_id} has no saved version",
            details={"automation_id": str(automation_id)},
        )
        self.automation_id = automation_id


# ============================================================================
# Execution
# ============================================================================


class ExecutionError(AutomationError):
    """Base exception for run-time errors.

    ``error_code`` is always a ``RunErrorCode`` value so the executor can copy
    it straight onto the run log or execution record.
    """

    error_code = RunErrorCode.ENGINE_FAILURE.value


class NodeTimeoutError(ExecutionError):
    """Raised when a node exceeds its own timeout."""

    error_code = RunErrorCode.TIMEOUT.value

    def __init__(self, node_id: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Node {node_id} timed out after {timeout_seconds}s",
            details={"node_id": node_id, "timeout_seconds": timeout_seconds},
        )
        self.node_id = node_id
        self.timeout_seconds = timeout_seconds


class HandlerNotFoundError(ExecutionError):
    """Raised when no handler/matcher/evaluator is registered for a type."""

    error_code = RunErrorCode.HANDLER_NOT_FOUND.value

    def __init__(self, kind: str, type_name: str, available: list[str]) -> None:
        super().__init__(
            f"No {kind} registered for type '{type_name}'. "
            f"Available: {', '.join(sorted(available)) or 'none'}",
            details={"kind": kind, "type": type_name},
        )
        self.kind = kind
        self.type_name = type_name


class ConditionEvaluationError(ExecutionError):
    """Raised when a condition predicate cannot be evaluated."""

    error_code = RunErrorCode.CONDITION_ERROR.value

    def __init__(self, node_id: str, reason: str) -> None:
        super().__init__(
            f"Condition node {node_id} evaluation failed: {reason}",
            details={"node_id": node_id, "reason": reason},
        )
        self.node_id = node_id
        self.reason = reason


class HandlerConfigurationError(ExecutionError):
    """Raised when a node config does not satisfy its handler's schema."""

    error_code = RunErrorCode.HANDLER_ERROR.value

    def __init__(self, type_name: str, errors: list[dict[str, Any]]) -> None:
        super().__init__(
            f"Invalid configuration for '{type_name}': {errors}",
            details={"type": type_name, "errors": errors},
        )
        self.type_name = type_name
        self.errors = errors


__all__ = [
    "AutomationError",
    "AutomationNotFoundError",
    "ConditionEvaluationError",
    "CycleDetectedError",
    "ExecutionError",
    "GraphValidationError",
    "HandlerConfigurationError",
    "HandlerNotFoundError",
    "NoActiveVersionError",
    "NodeTimeoutError",
    "VersionConflictError",
    "VersionDisabledError",
    "VersionNotFoundError",
]
