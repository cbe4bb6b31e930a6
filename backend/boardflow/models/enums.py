"""Enum definitions for database models and DTOs.

All enums inherit from ``str`` so they serialize cleanly to JSON and store
as plain strings in the database.
"""

from enum import Enum


class NodeKind(str, Enum):
    """Role of a node inside an automation graph.

    - TRIGGER: Root node; decides whether an event starts the automation
    - CONDITION: Predicate gate; a false result prunes its descendants
    - ACTION: Side effect performed through a registered handler
    """

    TRIGGER = "trigger"
    CONDITION = "condition"
    ACTION = "action"

    def __str__(self) -> str:
        return self.value


class ExecutionStatus(str, Enum):
    """Overall status of an automation execution."""

    COMPLETED = "completed"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value


class RunStepStatus(str, Enum):
    """Status of a single node step inside an execution.

    - COMPLETED: Condition evaluated or action succeeded
    - FAILED: Action/condition failed, timed out or had no handler
    - SKIPPED: Never started because the execution budget ran out
    """

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value


class ConflictSeverity(str, Enum):
    """Severity of a trigger conflict between sibling automations."""

    WARNING = "warning"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


class GraphErrorCode(str, Enum):
    """Structural validation codes for automation graphs."""

    # Blocking
    MISSING_OR_MULTIPLE_TRIGGER = "MISSING_OR_MULTIPLE_TRIGGER"
    DUPLICATE_NODE_ID = "DUPLICATE_NODE_ID"
    DANGLING_EDGE = "DANGLING_EDGE"
    CYCLE_DETECTED = "CYCLE_DETECTED"
    # Advisory
    UNREACHABLE_NODE = "UNREACHABLE_NODE"
    TRIGGER_HAS_INCOMING_EDGE = "TRIGGER_HAS_INCOMING_EDGE"
    UNKNOWN_NODE_TYPE = "UNKNOWN_NODE_TYPE"

    def __str__(self) -> str:
        return self.value


class RunErrorCode(str, Enum):
    """Error codes recorded on executions and run logs."""

    ENGINE_FAILURE = "ENGINE_FAILURE"
    CYCLE_GUARD_TRIGGERED = "CYCLE_GUARD_TRIGGERED"
    TIMEOUT = "TIMEOUT"
    SKIPPED_BUDGET_EXCEEDED = "SKIPPED_BUDGET_EXCEEDED"
    HANDLER_NOT_FOUND = "HANDLER_NOT_FOUND"
    HANDLER_ERROR = "HANDLER_ERROR"
    ACTION_FAILED = "ACTION_FAILED"
    CONDITION_ERROR = "CONDITION_ERROR"

    def __str__(self) -> str:
        return self.value
