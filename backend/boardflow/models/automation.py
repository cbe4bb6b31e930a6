"""Automation and AutomationVersion models.

An ``Automation`` is a named rule scoped to a project. Its graph lives in
``AutomationVersion`` rows: immutable, gaplessly numbered snapshots of nodes
and edges. ``Automation.current_version_id`` points at the version that
events execute against.
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    inspect,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from boardflow.core.exceptions import ImmutableRecordError
from boardflow.models.base import (
    GUID,
    Base,
    CreatedAtMixin,
    JSONType,
    SoftDeleteMixin,
    TimestampMixin,
    UUIDMixin,
)

if TYPE_CHECKING:
    from boardflow.models.execution import AutomationExecution


class Automation(UUIDMixin, TimestampMixin, SoftDeleteMixin, Base):
    """Automation rule model.

    Attributes:
        id: UUID primary key (from UUIDMixin)
        project_id: Scope the automation belongs to; conflicts and event
            fan-out are computed per scope
        name: Display name
        description: Optional description
        is_active: Enabled flag; inactive automations ignore events
        current_version_id: Version that events execute against (nullable)
        created_by: Opaque id of the author
        created_at / updated_at: Timestamps (from TimestampMixin)
        deleted_at: Soft-delete marker (from SoftDeleteMixin)
        versions: Relationship to AutomationVersion, oldest first
    """

    __tablename__ = "automations"

    project_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default=true(),
        nullable=False,
    )

    # No FK: versions already reference automations, and the pointer is only
    # ever set to a version of this automation by VersionStore.
    current_version_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(),
        nullable=True,
    )

    created_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    versions: Mapped[list[AutomationVersion]] = relationship(
        "AutomationVersion",
        back_populates="automation",
        cascade="all, delete-orphan",
        order_by="AutomationVersion.version_number",
    )

    executions: Mapped[list[AutomationExecution]] = relationship(
        "AutomationExecution",
        back_populates="automation",
        cascade="all, delete-orphan",
        order_by="AutomationExecution.started_at.desc()",
    )

    __table_args__ = (
        Index("ix_automations_project_active", "project_id", "is_active"),
    )

    def __repr__(self) -> str:
        return (
            f"<Automation(id={self.id}, name='{self.name}', "
            f"current_version_id={self.current_version_id})>"
        )


class AutomationVersion(UUIDMixin, CreatedAtMixin, Base):
    """Immutable snapshot of an automation graph.

    Only ``is_enabled`` (and the display ``name``/``notes``) may change after
    insert; the ``before_update`` hook below rejects edits to the graph or
    the numbering.

    Attributes:
        id: UUID primary key
        automation_id: Owning automation
        version_number: Monotonic per automation, starting at 1
        name: Display name, defaults to ``v{version_number}``
        notes: Free-form change notes
        definition: Graph snapshot ``{"nodes": [...], "edges": [...]}``
        is_enabled: Disabled versions never execute and cannot be promoted
        created_by: Opaque id of the author
        created_at: Timestamp of creation
    """

    __tablename__ = "automation_versions"

    automation_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("automations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    version_number: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    notes: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    definition: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
    )

    is_enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default=true(),
        nullable=False,
    )

    created_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    automation: Mapped[Automation] = relationship(
        "Automation",
        back_populates="versions",
    )

    __table_args__ = (
        UniqueConstraint(
            "automation_id",
            "version_number",
            name="uq_automation_versions_automation_number",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AutomationVersion(id={self.id}, automation_id={self.automation_id}, "
            f"version_number={self.version_number}, is_enabled={self.is_enabled})>"
        )


FROZEN_VERSION_FIELDS = frozenset({"automation_id", "version_number", "definition"})


def changed_columns(target: Any) -> set[str]:
    """Names of column attributes with pending changes on a mapped instance."""
    state = inspect(target)
    return {
        attr.key
        for attr in state.mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    }


@event.listens_for(AutomationVersion, "before_update")
def _reject_version_graph_update(
    mapper: Any,  # noqa: ARG001
    connection: Any,  # noqa: ARG001
    target: AutomationVersion,
) -> None:
    frozen = changed_columns(target) & FROZEN_VERSION_FIELDS
    if frozen:
        raise ImmutableRecordError("AutomationVersion", sorted(frozen))


__all__ = [
    "Automation",
    "AutomationVersion",
    "changed_columns",
]
