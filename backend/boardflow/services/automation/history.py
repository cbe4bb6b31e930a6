"""Append-only run history.

Executions and their run logs are inserted once, together, when an execution
finishes. There is no update or delete API and the models reject column
updates.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from boardflow.core.config import settings
from boardflow.core.logging import get_logger
from boardflow.models.execution import AutomationExecution, RunLog

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


class RunHistoryStore:
    """Read and append execution records.

    Args:
        db: Async database session. The store flushes but never commits.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def append(
        self,
        execution: AutomationExecution,
        logs: Sequence[RunLog] = (),
    ) -> AutomationExecution:
        """Insert an execution with its run logs.

        Returns:
            The execution reloaded with ``logs`` populated.
        """
        execution.logs = list(logs)
        self.db.add(execution)
        await self.db.flush()

        logger.debug(
            f"Recorded execution {execution.id} with {len(logs)} run logs",
            extra={
                "context": {
                    "automation_id": str(execution.automation_id),
                    "execution_id": str(execution.id),
                    "is_simulation": execution.is_simulation,
                }
            },
        )
        return await self.get_execution(execution.id)  # type: ignore[return-value]

    async def get_execution(self, execution_id: UUID) -> AutomationExecution | None:
        """Execution with its run logs, or None."""
        result = await self.db.execute(
            select(AutomationExecution)
            .options(selectinload(AutomationExecution.logs))
            .where(AutomationExecution.id == execution_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_runs(
        self,
        automation_id: UUID,
        limit: int | None = None,
    ) -> list[AutomationExecution]:
        """Real executions of an automation, newest first, simulations excluded.

        Args:
            automation_id: Automation to list.
            limit: Max records; defaults to ``AUTOMATION_RUN_HISTORY_LIMIT``.
        """
        result = await self.db.execute(
            select(AutomationExecution)
            .options(selectinload(AutomationExecution.logs))
            .where(
                AutomationExecution.automation_id == automation_id,
                AutomationExecution.is_simulation.is_(False),
            )
            .order_by(AutomationExecution.started_at.desc())
            .limit(limit or settings.AUTOMATION_RUN_HISTORY_LIMIT)
        )
        return list(result.scalars().all())

    async def list_simulations(
        self,
        automation_id: UUID,
        requested_by: str | None = None,
        limit: int | None = None,
    ) -> list[AutomationExecution]:
        """Dry runs of an automation, newest first.

        Args:
            automation_id: Automation to list.
            requested_by: Only return dry runs requested by this user.
            limit: Max records; defaults to ``AUTOMATION_RUN_HISTORY_LIMIT``.
        """
        query = (
            select(AutomationExecution)
            .options(selectinload(AutomationExecution.logs))
            .where(
                AutomationExecution.automation_id == automation_id,
                AutomationExecution.is_simulation.is_(True),
            )
        )
        if requested_by is not None:
            query = query.where(AutomationExecution.requested_by == requested_by)
        result = await self.db.execute(
            query.order_by(AutomationExecution.started_at.desc()).limit(
                limit or settings.AUTOMATION_RUN_HISTORY_LIMIT
            )
        )
        return list(result.scalars().all())


__all__ = [
    "RunHistoryStore",
]
