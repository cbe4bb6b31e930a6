"""API v1 routing configuration.

This module defines all v1 API routes.
"""

from fastapi import APIRouter

from boardflow.api.v1 import automations

router = APIRouter()

# Domain routers
router.include_router(automations.router, tags=["Automations"])


@router.get("/status", tags=["Status"])
async def api_status() -> dict[str, str]:
    """API v1 status check."""
    return {"status": "ok", "version": "v1"}
