"""Run history models.

``AutomationExecution`` records one attempt to run an automation against an
event; ``RunLog`` records one condition or action step inside it. Both are
append-only: they are written once when the execution finishes and any later
column update is rejected by a ``before_update`` hook.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from boardflow.core.exceptions import ImmutableRecordError
from boardflow.models.automation import changed_columns
from boardflow.models.base import GUID, Base, CreatedAtMixin, JSONType, UUIDMixin
from boardflow.models.enums import ExecutionStatus, NodeKind, RunStepStatus

if TYPE_CHECKING:
    from boardflow.models.automation import Automation, AutomationVersion


class AutomationExecution(UUIDMixin, CreatedAtMixin, Base):
    """A single execution (or dry run) of an automation.

    Attributes:
        id: UUID primary key (from UUIDMixin)
        automation_id: Executed automation
        version_id: Version pinned at start; never re-resolved mid-run.
            Nullable for engine failures where no version could be loaded.
        status: COMPLETED or FAILED
        success: True when every required terminal action succeeded
        started_at / ended_at: Wall-clock bounds of the run
        duration_ms: Elapsed milliseconds
        trigger_payload: Redacted event that started the run
        is_simulation: Dry runs are stored but hidden from run history
        requested_by: Who asked for the dry run (or dispatched the event)
        error_code: Top-level failure code (``RunErrorCode``)
        error_message: Top-level failure message
        causation_id: Execution whose action emitted the triggering event
        causation_chain: Automation ids that led to this run, oldest first
        logs: Relationship to RunLog, in execution order
    """

    __tablename__ = "automation_executions"

    automation_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("automations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    version_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(),
        ForeignKey("automation_versions.id"),
        nullable=True,
        index=True,
    )

    status: Mapped[ExecutionStatus] = mapped_column(
        String(20),
        nullable=False,
    )

    success: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
    )

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    ended_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    duration_ms: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    trigger_payload: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )

    is_simulation: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    requested_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    error_code: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    causation_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(),
        nullable=True,
    )

    causation_chain: Mapped[list[str]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
    )

    automation: Mapped[Automation] = relationship(
        "Automation",
        back_populates="executions",
    )

    version: Mapped[AutomationVersion | None] = relationship("AutomationVersion")

    logs: Mapped[list[RunLog]] = relationship(
        "RunLog",
        back_populates="execution",
        cascade="all, delete-orphan",
        order_by="RunLog.sequence",
    )

    __table_args__ = (
        Index(
            "ix_automation_executions_history",
            "automation_id",
            "is_simulation",
            "started_at",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AutomationExecution(id={self.id}, automation_id={self.automation_id}, "
            f"status={self.status}, success={self.success}, "
            f"is_simulation={self.is_simulation})>"
        )


class RunLog(UUIDMixin, CreatedAtMixin, Base):
    """One executed (or skipped) condition/action step.

    Attributes:
        execution_id: Parent execution
        node_id: Node id inside the pinned version's graph
        node_kind: CONDITION or ACTION (the trigger is not logged)
        node_type: Registry key of the evaluator/handler
        sequence: Order in which the step finished
        status: COMPLETED, FAILED or SKIPPED
        input: Redacted node input (config + branch context)
        output: Redacted node output
        duration_ms: Step duration
        success: Whether the step succeeded
        error_code / error_message: Failure detail (``RunErrorCode``)
    """

    __tablename__ = "automation_run_logs"

    execution_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("automation_executions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    node_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    node_kind: Mapped[NodeKind] = mapped_column(
        String(20),
        nullable=False,
    )

    node_type: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )

    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    status: Mapped[RunStepStatus] = mapped_column(
        String(20),
        nullable=False,
    )

    input: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
    )

    output: Mapped[dict[str, Any] | None] = mapped_column(
        JSONType,
        nullable=True,
    )

    duration_ms: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    success: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
    )

    error_code: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    execution: Mapped[AutomationExecution] = relationship(
        "AutomationExecution",
        back_populates="logs",
    )

    def __repr__(self) -> str:
        return (
            f"<RunLog(id={self.id}, node_id='{self.node_id}', "
            f"status={self.status}, duration_ms={self.duration_ms})>"
        )


@event.listens_for(AutomationExecution, "before_update")
@event.listens_for(RunLog, "before_update")
def _reject_history_update(
    mapper: Any,  # noqa: ARG001
    connection: Any,  # noqa: ARG001
    target: AutomationExecution | RunLog,
) -> None:
    changed = changed_columns(target)
    if changed:
        raise ImmutableRecordError(type(target).__name__, sorted(changed))


__all__ = [
    "AutomationExecution",
    "RunLog",
]
