"""SQLAlchemy models.

This package contains all database models.
"""

from boardflow.models.automation import Automation, AutomationVersion
from boardflow.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin
from boardflow.models.enums import (
    ConflictSeverity,
    ExecutionStatus,
    GraphErrorCode,
    NodeKind,
    RunErrorCode,
    RunStepStatus,
)
from boardflow.models.execution import AutomationExecution, RunLog

__all__ = [
    # Base classes
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    # Enums
    "ConflictSeverity",
    "ExecutionStatus",
    "GraphErrorCode",
    "NodeKind",
    "RunErrorCode",
    "RunStepStatus",
    # Models
    "Automation",
    "AutomationVersion",
    "AutomationExecution",
    "RunLog",
]
