"""API dependencies.

Common dependencies for API routes: database sessions and the automation
service bound to the request session.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from boardflow.db.session import get_db
from boardflow.services.automation_service import AutomationService

# =============================================================================
# Database Session Dependency
# =============================================================================

DBSession = Annotated[AsyncSession, Depends(get_db)]
"""Type alias for database session dependency injection.

Usage:
    @router.get("/items")
    async def get_items(db: DBSession):
        result = await db.execute(select(Item))
        return result.scalars().all()
"""


# =============================================================================
# Service Dependencies
# =============================================================================


def get_automation_service(db: DBSession) -> AutomationService:
    """Automation service using the global handler registries."""
    return AutomationService(db)


AutomationServiceDep = Annotated[AutomationService, Depends(get_automation_service)]
