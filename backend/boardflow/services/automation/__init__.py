"""Automation engine package.

Components:
- Graph / GraphAlgorithms: directed graph structure and traversal helpers
- GraphValidator: structural rules for automation graphs
- VersionStore: immutable, gaplessly numbered graph snapshots
- ConflictDetector: advisory trigger overlap between sibling automations
- AutomationExecutor: level-by-level graph execution (also used for dry runs)
- RunHistoryStore: append-only executions and run logs
- handlers: trigger matchers, condition evaluators and action handlers

Example:
    >>> from boardflow.services.automation import AutomationExecutor, VersionStore
    >>> version = await VersionStore(db).create_version(automation.id, graph, promote=True)
    >>> result = await AutomationExecutor(db).execute(automation, event)
"""

from boardflow.services.automation.algorithms import GraphAlgorithms
from boardflow.services.automation.conflicts import ConflictDetector, TriggerSnapshot
from boardflow.services.automation.context import (
    CausationChain,
    ExecutionContext,
    NodeContext,
)
from boardflow.services.automation.exceptions import (
    AutomationError,
    AutomationNotFoundError,
    ConditionEvaluationError,
    CycleDetectedError,
    ExecutionError,
    GraphValidationError,
    HandlerConfigurationError,
    HandlerNotFoundError,
    NoActiveVersionError,
    NodeTimeoutError,
    VersionConflictError,
    VersionDisabledError,
    VersionNotFoundError,
)
from boardflow.services.automation.executor import (
    AutomationExecutor,
    ExecutionResult,
)
from boardflow.services.automation.graph import Graph
from boardflow.services.automation.history import RunHistoryStore
from boardflow.services.automation.validator import GraphValidator
from boardflow.services.automation.versioning import VersionStore

__all__ = [
    "AutomationError",
    "AutomationExecutor",
    "AutomationNotFoundError",
    "CausationChain",
    "ConditionEvaluationError",
    "ConflictDetector",
    "CycleDetectedError",
    "ExecutionContext",
    "ExecutionError",
    "ExecutionResult",
    "Graph",
    "GraphAlgorithms",
    "GraphValidationError",
    "GraphValidator",
    "HandlerConfigurationError",
    "HandlerNotFoundError",
    "NoActiveVersionError",
    "NodeContext",
    "NodeTimeoutError",
    "RunHistoryStore",
    "TriggerSnapshot",
    "VersionConflictError",
    "VersionDisabledError",
    "VersionNotFoundError",
    "VersionStore",
]
