"""Automation API Router.

REST endpoints for the automation editor (load, validate, save, version
management, dry runs, run history) and for delivering task events to a
project's automations.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, HTTPException, Query, Response, status

from boardflow.api.deps import (  # noqa: TC001 - Required at runtime for FastAPI
    AutomationServiceDep,
)
from boardflow.core.exceptions import AppError, ResourceNotFoundError
from boardflow.schemas.automation import (
    AutomationResponse,
    AutomationVersionDetail,
    AutomationVersionResponse,
    EditorDataResponse,
    SaveAutomationRequest,
    SaveAutomationResponse,
    SetActiveRequest,
    ToggleVersionRequest,
)
from boardflow.schemas.execution import (
    DispatchEventRequest,
    DispatchResultResponse,
    DryRunRequest,
    DryRunResponse,
    ExecutionResponse,
)
from boardflow.schemas.validation import GraphValidationResult, ValidateGraphRequest
from boardflow.services.automation.context import CausationChain
from boardflow.services.automation.exceptions import (
    ExecutionError,
    GraphValidationError,
    NoActiveVersionError,
    VersionConflictError,
    VersionDisabledError,
)

router = APIRouter()


# =============================================================================
# Exception to HTTP Status Mapping
# =============================================================================


def to_http_error(error: AppError) -> HTTPException:
    """Map a service exception to an HTTPException.

    Graph validation errors keep their code and node id so the editor can
    highlight the offending node.
    """
    if isinstance(error, ResourceNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, VersionConflictError | VersionDisabledError | NoActiveVersionError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(error, GraphValidationError | ExecutionError):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    else:
        status_code = status.HTTP_400_BAD_REQUEST

    detail = error.to_dict()
    if isinstance(error, GraphValidationError):
        detail["node_id"] = error.node_id
    return HTTPException(status_code=status_code, detail=detail)


# =============================================================================
# Project Endpoints
# =============================================================================


@router.get(
    "/projects/{project_id}/automations/editor",
    response_model=EditorDataResponse,
    summary="Load automation editor",
    description=(
        "All automations of a project plus the selected automation's graph, "
        "versions, run history, conflicts and validation result."
    ),
)
async def load_editor(
    project_id: UUID,
    service: AutomationServiceDep,
    automation_id: Annotated[
        UUID | None,
        Query(description="Automation to select (defaults to the newest)"),
    ] = None,
) -> EditorDataResponse:
    try:
        return await service.load_editor_data(project_id, automation_id)
    except AppError as e:
        raise to_http_error(e) from e


@router.post(
    "/projects/{project_id}/automations",
    response_model=SaveAutomationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save automation graph",
    description=(
        "Validate and save a graph as a new immutable version, creating the "
        "automation when no automation_id is given."
    ),
)
async def save_automation(
    project_id: UUID,
    data: SaveAutomationRequest,
    service: AutomationServiceDep,
) -> SaveAutomationResponse:
    try:
        return await service.save_graph(project_id, data)
    except AppError as e:
        raise to_http_error(e) from e


@router.post(
    "/projects/{project_id}/events",
    response_model=DispatchResultResponse,
    summary="Dispatch event",
    description="Deliver a task event to every active automation of the project.",
)
async def dispatch_event(
    project_id: UUID,
    data: DispatchEventRequest,
    service: AutomationServiceDep,
) -> DispatchResultResponse:
    try:
        executions = await service.handle_event(
            project_id,
            data.event,
            CausationChain.from_ids(data.causation_chain),
        )
    except AppError as e:
        raise to_http_error(e) from e
    return DispatchResultResponse(
        executions=[ExecutionResponse.model_validate(run) for run in executions]
    )


# =============================================================================
# Automation Endpoints
# =============================================================================


@router.post(
    "/automations/validate",
    response_model=GraphValidationResult,
    summary="Validate graph",
    description="Validate a graph without saving it.",
)
async def validate_graph(
    data: ValidateGraphRequest,
    service: AutomationServiceDep,
) -> GraphValidationResult:
    return service.validate_graph(data.graph)


@router.get(
    "/automations/versions/{version_id}",
    response_model=AutomationVersionDetail,
    summary="Get version",
)
async def get_version(
    version_id: UUID,
    service: AutomationServiceDep,
) -> AutomationVersionDetail:
    try:
        version = await service.versions.get_version(version_id)
    except AppError as e:
        raise to_http_error(e) from e
    return AutomationVersionDetail.model_validate(version)


@router.patch(
    "/automations/versions/{version_id}",
    response_model=AutomationVersionResponse,
    summary="Enable or disable version",
)
async def toggle_version(
    version_id: UUID,
    data: ToggleVersionRequest,
    service: AutomationServiceDep,
) -> AutomationVersionResponse:
    try:
        version = await service.toggle_version(version_id, data.is_enabled)
    except AppError as e:
        raise to_http_error(e) from e
    return AutomationVersionResponse.model_validate(version)


@router.post(
    "/automations/versions/{version_id}/promote",
    response_model=AutomationResponse,
    summary="Make version current",
    description="Point the automation at an existing enabled version (rollback).",
)
async def promote_version(
    version_id: UUID,
    service: AutomationServiceDep,
) -> AutomationResponse:
    try:
        automation = await service.promote_version(version_id)
    except AppError as e:
        raise to_http_error(e) from e
    return AutomationResponse.model_validate(automation)


@router.get(
    "/automations/{automation_id}",
    response_model=AutomationResponse,
    summary="Get automation",
)
async def get_automation(
    automation_id: UUID,
    service: AutomationServiceDep,
) -> AutomationResponse:
    try:
        automation = await service.get_automation(automation_id)
    except AppError as e:
        raise to_http_error(e) from e
    return AutomationResponse.model_validate(automation)


@router.delete(
    "/automations/{automation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete automation",
    description="Soft-delete an automation. Versions and run history are kept.",
)
async def delete_automation(
    automation_id: UUID,
    service: AutomationServiceDep,
) -> Response:
    try:
        await service.delete_automation(automation_id)
    except AppError as e:
        raise to_http_error(e) from e
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/automations/{automation_id}/active",
    response_model=AutomationResponse,
    summary="Enable or disable automation",
)
async def set_active(
    automation_id: UUID,
    data: SetActiveRequest,
    service: AutomationServiceDep,
) -> AutomationResponse:
    try:
        automation = await service.set_active(automation_id, data.is_active)
    except AppError as e:
        raise to_http_error(e) from e
    return AutomationResponse.model_validate(automation)


@router.get(
    "/automations/{automation_id}/versions",
    response_model=list[AutomationVersionResponse],
    summary="List versions",
    description="All versions of an automation, newest first.",
)
async def list_versions(
    automation_id: UUID,
    service: AutomationServiceDep,
) -> list[AutomationVersionResponse]:
    try:
        await service.get_automation(automation_id)
        versions = await service.versions.list_versions(automation_id)
    except AppError as e:
        raise to_http_error(e) from e
    return [AutomationVersionResponse.model_validate(v) for v in versions]


@router.post(
    "/automations/{automation_id}/dry-run",
    response_model=DryRunResponse,
    summary="Simulate automation",
    description=(
        "Run the automation against a sample event without side effects. "
        "The simulated execution is stored but excluded from run history."
    ),
)
async def dry_run(
    automation_id: UUID,
    service: AutomationServiceDep,
    data: Annotated[DryRunRequest | None, Body()] = None,
) -> DryRunResponse:
    try:
        return await service.dry_run(automation_id, data or DryRunRequest())
    except AppError as e:
        raise to_http_error(e) from e


@router.get(
    "/automations/{automation_id}/runs",
    response_model=list[ExecutionResponse],
    summary="List runs",
    description="Executions newest first, with run logs. Dry runs are excluded.",
)
async def list_runs(
    automation_id: UUID,
    service: AutomationServiceDep,
    limit: Annotated[
        int | None,
        Query(ge=1, le=500, description="Maximum number of executions"),
    ] = None,
) -> list[ExecutionResponse]:
    try:
        runs = await service.list_runs(automation_id, limit)
    except AppError as e:
        raise to_http_error(e) from e
    return [ExecutionResponse.model_validate(run) for run in runs]


@router.get(
    "/automations/{automation_id}/simulations",
    response_model=list[ExecutionResponse],
    summary="List dry runs",
)
async def list_simulations(
    automation_id: UUID,
    service: AutomationServiceDep,
    requested_by: Annotated[
        str | None,
        Query(description="Only dry runs requested by this user"),
    ] = None,
    limit: Annotated[
        int | None,
        Query(ge=1, le=500, description="Maximum number of executions"),
    ] = None,
) -> list[ExecutionResponse]:
    try:
        runs = await service.list_simulations(automation_id, requested_by, limit)
    except AppError as e:
        raise to_http_error(e) from e
    return [ExecutionResponse.model_validate(run) for run in runs]
