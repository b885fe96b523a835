from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, Request

from coi_compliance.dependencies import get_activity_emitter, get_request_context, get_sweep_service
from coi_compliance.schemas.context import RequestContext
from coi_compliance.schemas.responses import ApiResponse
from coi_compliance.services.compliance.activity_emitter import ActivityEmitter
from coi_compliance.services.compliance.expiration_sweep import ExpirationSweepService
from coi_compliance.utils.responses import create_api_response

router = APIRouter()


@router.post(
    "/sweep",
    response_model=ApiResponse,
    summary="Re-project statuses for expiring certificates",
    operation_id="run_expiration_sweep",
)
async def run_expiration_sweep(
    request: Request,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[ExpirationSweepService, Depends(get_sweep_service)],
    today: Optional[date] = Query(None, description="Reference date, defaults to today (UTC)"),
) -> ApiResponse:
    summary = await service.run(today=today, organization_id=context.organization_id)
    return create_api_response(
        data=summary,
        message=f"{len(summary.status_changes)} status changes applied",
        request=request,
    )


@router.get(
    "/activity",
    response_model=ApiResponse,
    summary="Recent activity of the organization",
    operation_id="list_activity",
)
async def list_activity(
    request: Request,
    context: Annotated[RequestContext, Depends(get_request_context)],
    emitter: Annotated[ActivityEmitter, Depends(get_activity_emitter)],
    limit: int = Query(100, ge=1, le=500),
) -> ApiResponse:
    entries = await emitter.recent(context.organization_id, limit=limit)
    return create_api_response(data=entries, message="Activity retrieved", request=request)
