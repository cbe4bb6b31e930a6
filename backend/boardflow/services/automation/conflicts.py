"""Trigger conflict detection between automations of the same project.

Conflicts are advisory: they are computed when a graph is saved or the
editor loads, returned alongside the result and never persisted or used to
block anything. Two rules, applied to every sibling:

- same trigger label                       -> warning
- any trigger config key with equal value  -> error
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import select

from boardflow.models.automation import Automation, AutomationVersion
from boardflow.models.enums import ConflictSeverity
from boardflow.schemas.automation import AutomationConflict
from boardflow.schemas.graph import AutomationGraph, GraphNode

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession


@dataclass(frozen=True)
class TriggerSnapshot:
    """An automation's active trigger node."""

    automation_id: UUID
    automation_name: str
    trigger: GraphNode


def config_overlaps(first: dict[str, Any] | None, second: dict[str, Any] | None) -> bool:
    """True if any key present in both configs holds an equal value."""
    if not first or not second:
        return False
    return any(key in second and first[key] == second[key] for key in first)


class ConflictDetector:
    """Pairwise trigger comparison; linear in the number of siblings.

    The pure ``detect`` works on snapshots; ``detect_for`` loads the
    project's other automations first.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @staticmethod
    def detect(
        target: TriggerSnapshot,
        siblings: Iterable[TriggerSnapshot],
    ) -> list[AutomationConflict]:
        """Compare the target trigger with each sibling trigger."""
        conflicts: list[AutomationConflict] = []
        for sibling in siblings:
            if sibling.automation_id == target.automation_id:
                continue
            if sibling.trigger.label == target.trigger.label:
                conflicts.append(
                    AutomationConflict(
                        automation_id=target.automation_id,
                        conflicting_automation_id=sibling.automation_id,
                        conflicting_automation_name=sibling.automation_name,
                        reason=(
                            f'Shares trigger "{target.trigger.label}" '
                            f"with {sibling.automation_name}."
                        ),
                        severity=ConflictSeverity.WARNING,
                    )
                )
            if config_overlaps(target.trigger.config, sibling.trigger.config):
                conflicts.append(
                    AutomationConflict(
                        automation_id=target.automation_id,
                        conflicting_automation_id=sibling.automation_id,
                        conflicting_automation_name=sibling.automation_name,
                        reason=(
                            "Potential overlap on trigger configuration "
                            f"with {sibling.automation_name}."
                        ),
                        severity=ConflictSeverity.ERROR,
                    )
                )
        return conflicts

    async def detect_for(
        self,
        automation: Automation,
        graph: AutomationGraph,
    ) -> list[AutomationConflict]:
        """Conflicts between ``graph``'s trigger and the project's other automations.

        Args:
            automation: Target automation (its id and project are used).
            graph: Target graph, usually the version just saved.
        """
        triggers = graph.trigger_nodes()
        if not triggers:
            return []
        target = TriggerSnapshot(automation.id, automation.name, triggers[0])
        siblings = await self.load_sibling_triggers(automation.project_id, automation.id)
        return self.detect(target, siblings)

    async def load_sibling_triggers(
        self,
        project_id: UUID,
        exclude_id: UUID | None = None,
    ) -> list[TriggerSnapshot]:
        """Active trigger of every other non-deleted automation in the project.

        The active graph is the current version, or the latest version when
        no version is current. Automations without a trigger are skipped.
        """
        query = select(Automation).where(
            Automation.project_id == project_id,
            Automation.deleted_at.is_(None),
        )
        if exclude_id is not None:
            query = query.where(Automation.id != exclude_id)
        automations = list((await self.db.execute(query)).scalars().all())
        if not automations:
            return []

        versions = await self._active_versions(automations)
        snapshots: list[TriggerSnapshot] = []
        for automation in automations:
            version = versions.get(automation.id)
            if version is None:
                continue
            triggers = AutomationGraph.from_definition(version.definition).trigger_nodes()
            if triggers:
                snapshots.append(
                    TriggerSnapshot(automation.id, automation.name, triggers[0])
                )
        return snapshots

    async def _active_versions(
        self,
        automations: list[Automation],
    ) -> dict[UUID, AutomationVersion]:
        result = await self.db.execute(
            select(AutomationVersion)
            .where(AutomationVersion.automation_id.in_([a.id for a in automations]))
            .order_by(AutomationVersion.version_number)
        )
        by_id = {version.id: version for version in result.scalars().all()}

        active: dict[UUID, AutomationVersion] = {}
        # Ascending order, so the last one written per automation is the latest
        for version in by_id.values():
            active[version.automation_id] = version
        for automation in automations:
            current = by_id.get(automation.current_version_id)  # type: ignore[arg-type]
            if current is not None:
                active[automation.id] = current
        return active


__all__ = [
    "ConflictDetector",
    "TriggerSnapshot",
    "config_overlaps",
]
