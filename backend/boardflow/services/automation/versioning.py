"""Immutable, gaplessly numbered automation versions.

Version numbers are ``max(existing) + 1`` per automation. Two writers racing
for the same number are serialized by the
``(automation_id, version_number)`` unique constraint: the loser's insert
fails inside a SAVEPOINT, the savepoint is rolled back and the number is
recomputed. No in-process counter is kept, so this also holds across
processes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from boardflow.core.config import settings
from boardflow.core.logging import get_logger
from boardflow.models.automation import Automation, AutomationVersion
from boardflow.schemas.graph import AutomationGraph
from boardflow.services.automation.exceptions import (
    AutomationNotFoundError,
    VersionConflictError,
    VersionDisabledError,
    VersionNotFoundError,
)
from boardflow.services.automation.validator import GraphValidator

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class VersionStore:
    """Create, toggle and promote automation versions.

    Args:
        db: Async database session. The store flushes but never commits.
        validator: Graph validator used before a snapshot is written.
        max_retries: Attempts at claiming a version number before giving up.
    """

    def __init__(
        self,
        db: AsyncSession,
        validator: GraphValidator | None = None,
        max_retries: int | None = None,
    ) -> None:
        self.db = db
        self.validator = validator or GraphValidator()
        self.max_retries = max_retries or settings.AUTOMATION_VERSION_MAX_RETRIES

    async def create_version(
        self,
        automation_id: UUID,
        graph: AutomationGraph,
        *,
        notes: str | None = None,
        name: str | None = None,
        promote: bool = False,
        created_by: str | None = None,
    ) -> AutomationVersion:
        """Snapshot ``graph`` as the automation's next version.

        Args:
            automation_id: Owning automation.
            graph: Graph to snapshot; must pass validation.
            notes: Change notes.
            name: Display name, ``v{n}`` when omitted.
            promote: Point the automation at the new version.
            created_by: Author id.

        Returns:
            The flushed version.

        Raises:
            GraphValidationError: If the graph is structurally invalid.
            AutomationNotFoundError: If the automation does not exist.
            VersionConflictError: If every attempt lost the number race.
        """
        self.validator.validate_or_raise(graph)
        automation = await self._get_automation(automation_id)
        definition = graph.to_definition()

        for attempt in range(1, self.max_retries + 1):
            number = await self._next_version_number(automation_id)
            version = AutomationVersion(
                automation_id=automation_id,
                version_number=number,
                name=name or f"v{number}",
                notes=notes,
                definition=definition,
                is_enabled=True,
                created_by=created_by,
            )
            try:
                async with self.db.begin_nested():
                    self.db.add(version)
                    await self.db.flush()
            except IntegrityError:
                logger.warning(
                    f"Version number {number} already taken, retrying",
                    extra={
                        "context": {
                            "automation_id": str(automation_id),
                            "version_number": number,
                            "attempt": attempt,
                        }
                    },
                )
                continue

            if promote:
                automation.current_version_id = version.id
                await self.db.flush()

            logger.info(
                f"Created version {number} of automation {automation_id}",
                extra={
                    "context": {
                        "action": "create_version",
                        "automation_id": str(automation_id),
                        "version_id": str(version.id),
                        "promoted": promote,
                    }
                },
            )
            return version

        raise VersionConflictError(automation_id, self.max_retries)

    async def toggle_version(self, version_id: UUID, enabled: bool) -> AutomationVersion:
        """Enable or disable a version. Nothing else about it changes.

        Disabling the current version stops the automation from executing
        until another version is promoted or this one is re-enabled.
        """
        version = await self.get_version(version_id)
        version.is_enabled = enabled
        await self.db.flush()
        logger.info(
            f"Version {version_id} {'enabled' if enabled else 'disabled'}",
            extra={"context": {"action": "toggle_version", "version_id": str(version_id)}},
        )
        return version

    async def promote_version(self, version_id: UUID) -> Automation:
        """Make an existing version current (e.g. to roll back).

        Raises:
            VersionNotFoundError: If the version does not exist.
            VersionDisabledError: If the version is disabled.
        """
        version = await self.get_version(version_id)
        if not version.is_enabled:
            raise VersionDisabledError(version_id)
        automation = await self._get_automation(version.automation_id)
        automation.current_version_id = version.id
        await self.db.flush()
        await self.db.refresh(automation)
        logger.info(
            f"Promoted version {version.version_number} of automation {automation.id}",
            extra={
                "context": {
                    "action": "promote_version",
                    "automation_id": str(automation.id),
                    "version_id": str(version_id),
                }
            },
        )
        return automation

    async def get_version(self, version_id: UUID) -> AutomationVersion:
        """Load a version by id.

        Raises:
            VersionNotFoundError: If it does not exist.
        """
        version = await self.db.get(AutomationVersion, version_id)
        if version is None:
            raise VersionNotFoundError(version_id)
        return version

    async def list_versions(self, automation_id: UUID) -> list[AutomationVersion]:
        """All versions of an automation, newest first."""
        result = await self.db.execute(
            select(AutomationVersion)
            .where(AutomationVersion.automation_id == automation_id)
            .order_by(AutomationVersion.version_number.desc())
        )
        return list(result.scalars().all())

    async def get_current_version(self, automation: Automation) -> AutomationVersion | None:
        """Version the automation currently points at, if any."""
        if automation.current_version_id is None:
            return None
        return await self.db.get(AutomationVersion, automation.current_version_id)

    async def get_latest_version(self, automation_id: UUID) -> AutomationVersion | None:
        result = await self.db.execute(
            select(AutomationVersion)
            .where(AutomationVersion.automation_id == automation_id)
            .order_by(AutomationVersion.version_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _next_version_number(self, automation_id: UUID) -> int:
        result = await self.db.execute(
            select(func.max(AutomationVersion.version_number)).where(
                AutomationVersion.automation_id == automation_id
            )
        )
        return (result.scalar_one_or_none() or 0) + 1

    async def _get_automation(self, automation_id: UUID) -> Automation:
        automation = await self.db.get(Automation, automation_id)
        if automation is None or automation.deleted_at is not None:
            raise AutomationNotFoundError(automation_id)
        return automation


__all__ = [
    "VersionStore",
]
