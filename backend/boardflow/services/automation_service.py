"""Automation service layer.

Entry point used by the API routers. Combines the validator, version store,
conflict detector, executor and run history into the operations the editor
and the event intake need. The service flushes but never commits; the
request-scoped session in ``get_db`` owns the transaction.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from sqlalchemy import select

from boardflow.core.logging import get_logger
from boardflow.models.automation import Automation, AutomationVersion
from boardflow.models.enums import NodeKind
from boardflow.schemas.automation import (
    AutomationResponse,
    AutomationVersionResponse,
    EditorDataResponse,
    SaveAutomationRequest,
    SaveAutomationResponse,
)
from boardflow.schemas.execution import DryRunRequest, DryRunResponse, ExecutionResponse
from boardflow.schemas.graph import AutomationGraph
from boardflow.services.automation.conflicts import ConflictDetector
from boardflow.services.automation.context import CausationChain
from boardflow.services.automation.exceptions import (
    AutomationNotFoundError,
    NoActiveVersionError,
    VersionNotFoundError,
)
from boardflow.services.automation.executor import AutomationExecutor
from boardflow.services.automation.handlers.registry import (
    ActionHandlerRegistry,
    ConditionRegistry,
    TriggerMatcherRegistry,
    get_action_registry,
    get_condition_registry,
    get_trigger_registry,
)
from boardflow.services.automation.history import RunHistoryStore
from boardflow.services.automation.validator import GraphValidator, node_type_of
from boardflow.services.automation.versioning import VersionStore

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from boardflow.models.execution import AutomationExecution
    from boardflow.schemas.execution import AutomationEvent
    from boardflow.schemas.validation import GraphValidationResult

logger = get_logger(__name__)


class AutomationService:
    """Service for automation CRUD, versioning, dry runs and event dispatch.

    Args:
        db: Async database session.
        trigger_registry / condition_registry / action_registry: Handler
            registries; the global ones by default.
    """

    def __init__(
        self,
        db: AsyncSession,
        *,
        trigger_registry: TriggerMatcherRegistry | None = None,
        condition_registry: ConditionRegistry | None = None,
        action_registry: ActionHandlerRegistry | None = None,
    ) -> None:
        self.db = db
        self.triggers = trigger_registry or get_trigger_registry()
        self.conditions = condition_registry or get_condition_registry()
        self.actions = action_registry or get_action_registry()
        self.validator = GraphValidator(
            known_types={
                NodeKind.TRIGGER: self.triggers.list_registered(),
                NodeKind.CONDITION: self.conditions.list_registered(),
                NodeKind.ACTION: self.actions.list_registered(),
            }
        )
        self.versions = VersionStore(db, validator=self.validator)
        self.conflicts = ConflictDetector(db)
        self.history = RunHistoryStore(db)
        self.executor = AutomationExecutor(
            db,
            trigger_registry=self.triggers,
            condition_registry=self.conditions,
            action_registry=self.actions,
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_automation(self, automation_id: UUID) -> Automation:
        """Load a non-deleted automation.

        Raises:
            AutomationNotFoundError: If missing or soft-deleted.
        """
        automation = await self.db.get(Automation, automation_id)
        if automation is None or automation.deleted_at is not None:
            raise AutomationNotFoundError(automation_id)
        return automation

    async def list_automations(self, project_id: UUID) -> list[Automation]:
        """Non-deleted automations of a project, newest first."""
        result = await self.db.execute(
            select(Automation)
            .where(
                Automation.project_id == project_id,
                Automation.deleted_at.is_(None),
            )
            .order_by(Automation.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_active_version(self, automation: Automation) -> AutomationVersion | None:
        """Current version, or the latest one when none is current."""
        current = await self.versions.get_current_version(automation)
        if current is not None:
            return current
        return await self.versions.get_latest_version(automation.id)

    # =========================================================================
    # Editor
    # =========================================================================

    async def load_editor_data(
        self,
        project_id: UUID,
        automation_id: UUID | None = None,
    ) -> EditorDataResponse:
        """Everything the editor shows for a project.

        Selects ``automation_id`` when given, otherwise the newest automation.
        Conflicts and validation are computed against the selected
        automation's active graph.

        Raises:
            AutomationNotFoundError: If ``automation_id`` is not in the project.
        """
        automations = await self.list_automations(project_id)
        if not automations:
            return EditorDataResponse(graph=AutomationGraph.default())

        if automation_id is None:
            selected = automations[0]
        else:
            selected = next((a for a in automations if a.id == automation_id), None)
            if selected is None:
                raise AutomationNotFoundError(automation_id)

        version = await self.get_active_version(selected)
        graph = (
            AutomationGraph.from_definition(version.definition)
            if version is not None
            else AutomationGraph.default()
        )
        versions = await self.versions.list_versions(selected.id)
        runs = await self.history.list_runs(selected.id)
        conflicts = await self.conflicts.detect_for(selected, graph)

        return EditorDataResponse(
            automations=[AutomationResponse.model_validate(a) for a in automations],
            automation=AutomationResponse.model_validate(selected),
            graph=graph,
            versions=[AutomationVersionResponse.model_validate(v) for v in versions],
            run_history=[ExecutionResponse.model_validate(run) for run in runs],
            conflicts=conflicts,
            validation=self.validator.validate(graph),
        )

    def validate_graph(self, graph: AutomationGraph) -> GraphValidationResult:
        """Validate a graph without saving it."""
        return self.validator.validate(graph)

    async def save_graph(
        self,
        project_id: UUID,
        data: SaveAutomationRequest,
    ) -> SaveAutomationResponse:
        """Save a graph as a new version, creating the automation if needed.

        Raises:
            GraphValidationError: If the graph is invalid; nothing is written.
            AutomationNotFoundError: If ``data.automation_id`` is not in the
                project.
            VersionConflictError: If no version number could be claimed.
        """
        validation = self.validator.validate_or_raise(data.graph)

        if data.automation_id is None:
            automation = Automation(
                project_id=project_id,
                name=data.name,
                description=data.description,
                is_active=data.is_active,
                created_by=data.created_by,
            )
            self.db.add(automation)
            await self.db.flush()
        else:
            automation = await self.get_automation(data.automation_id)
            if automation.project_id != project_id:
                raise AutomationNotFoundError(data.automation_id)
            automation.name = data.name
            automation.description = data.description
            automation.is_active = data.is_active

        version = await self.versions.create_version(
            automation.id,
            data.graph,
            notes=data.version_notes,
            name=data.version_name,
            promote=data.make_current,
            created_by=data.created_by,
        )
        await self.db.refresh(automation)
        conflicts = await self.conflicts.detect_for(automation, data.graph)

        logger.info(
            f"Saved automation '{automation.name}' as version {version.version_number}",
            extra={
                "context": {
                    "action": "save_graph",
                    "automation_id": str(automation.id),
                    "version_id": str(version.id),
                    "conflicts": len(conflicts),
                }
            },
        )
        return SaveAutomationResponse(
            automation=AutomationResponse.model_validate(automation),
            version=AutomationVersionResponse.model_validate(version),
            warnings=validation.warnings,
            conflicts=conflicts,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def toggle_version(self, version_id: UUID, enabled: bool) -> AutomationVersion:
        return await self.versions.toggle_version(version_id, enabled)

    async def promote_version(self, version_id: UUID) -> Automation:
        return await self.versions.promote_version(version_id)

    async def set_active(self, automation_id: UUID, is_active: bool) -> Automation:
        """Enable or disable an automation."""
        automation = await self.get_automation(automation_id)
        automation.is_active = is_active
        await self.db.flush()
        await self.db.refresh(automation)
        return automation

    async def delete_automation(self, automation_id: UUID) -> Automation:
        """Soft-delete an automation; its versions and history are kept."""
        automation = await self.get_automation(automation_id)
        automation.soft_delete()
        await self.db.flush()
        logger.info(
            f"Deleted automation {automation_id}",
            extra={"context": {"action": "delete_automation"}},
        )
        return automation

    # =========================================================================
    # History
    # =========================================================================

    async def list_runs(
        self,
        automation_id: UUID,
        limit: int | None = None,
    ) -> list[AutomationExecution]:
        await self.get_automation(automation_id)
        return await self.history.list_runs(automation_id, limit)

    async def list_simulations(
        self,
        automation_id: UUID,
        requested_by: str | None = None,
        limit: int | None = None,
    ) -> list[AutomationExecution]:
        await self.get_automation(automation_id)
        return await self.history.list_simulations(automation_id, requested_by, limit)

    # =========================================================================
    # Execution
    # =========================================================================

    async def dry_run(self, automation_id: UUID, data: DryRunRequest) -> DryRunResponse:
        """Simulate an automation without side effects.

        When ``data.sample_item`` is omitted, a sample event the trigger
        accepts is built from its configuration. A supplied sample the
        trigger rejects yields ``matched=False`` and records nothing.

        Raises:
            AutomationNotFoundError: If the automation does not exist.
            VersionNotFoundError: If ``data.version_id`` is not one of its
                versions.
            NoActiveVersionError: If the automation has no version at all.
        """
        automation = await self.get_automation(automation_id)
        if data.version_id is not None:
            version = await self.versions.get_version(data.version_id)
            if version.automation_id != automation.id:
                raise VersionNotFoundError(data.version_id)
        else:
            version = await self.get_active_version(automation)
            if version is None:
                raise NoActiveVersionError(automation.id)

        graph = AutomationGraph.from_definition(version.definition)
        self.validator.validate_or_raise(graph)
        trigger = graph.trigger_nodes()[0]
        matcher = self.triggers.get(node_type_of(trigger.kind, trigger.type))
        event = data.sample_item or matcher.sample_event(trigger.config)
        match = matcher.matches(event, trigger.config)
        if not match.matched:
            return DryRunResponse(
                matched=False,
                reason=match.reason,
                sample_event=event.to_payload(),
            )

        result = await self.executor.execute(
            automation,
            event,
            CausationChain(),
            simulate=True,
            requested_by=data.requested_by,
            version=version,
        )
        return DryRunResponse(
            matched=True,
            sample_event=event.to_payload(),
            execution=(
                ExecutionResponse.model_validate(result.execution)
                if result is not None
                else None
            ),
        )

    async def handle_event(
        self,
        project_id: UUID,
        event: AutomationEvent,
        chain: CausationChain | None = None,
    ) -> list[AutomationExecution]:
        """Deliver an event to every active automation of a project.

        Events emitted by actions are delivered afterwards, breadth first,
        each carrying the causation chain of the execution that emitted it.
        The loop guard in the executor bounds the cascade.

        Returns:
            Every recorded execution, in the order they finished.
        """
        pending: deque[tuple[AutomationEvent, CausationChain]] = deque(
            [(event, chain if chain is not None else CausationChain())]
        )
        executions: list[AutomationExecution] = []
        while pending:
            current, current_chain = pending.popleft()
            for automation in await self._active_automations(project_id):
                result = await self.executor.execute(automation, current, current_chain)
                if result is None:
                    continue
                executions.append(result.execution)
                pending.extend((emitted, result.chain) for emitted in result.emitted_events)

        logger.info(
            f"Dispatched '{event.event_type}' event to project {project_id}",
            extra={"context": {"executions": len(executions)}},
        )
        return executions

    async def _active_automations(self, project_id: UUID) -> list[Automation]:
        result = await self.db.execute(
            select(Automation)
            .where(
                Automation.project_id == project_id,
                Automation.is_active.is_(True),
                Automation.deleted_at.is_(None),
            )
            .order_by(Automation.created_at)
        )
        return list(result.scalars().all())


__all__ = [
    "AutomationService",
]
