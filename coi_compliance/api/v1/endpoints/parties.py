from typing import Annotated, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from coi_compliance.dependencies import get_party_service, get_request_context
from coi_compliance.schemas.context import RequestContext
from coi_compliance.schemas.enums import PartyType
from coi_compliance.schemas.responses import ApiResponse
from coi_compliance.services.party_service import PartyService
from coi_compliance.utils.responses import create_api_response

router = APIRouter()


class TemplateAssignment(BaseModel):
    template_id: Optional[UUID] = None


@router.put(
    "/{party_type}/{party_id}/template",
    response_model=ApiResponse,
    summary="Assign a requirement template",
    operation_id="assign_template",
)
async def assign_template(
    request: Request,
    party_type: PartyType,
    party_id: UUID,
    payload: TemplateAssignment,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[PartyService, Depends(get_party_service)],
) -> ApiResponse:
    change = await service.assign_template(
        context.organization_id, context.actor_id, party_type, party_id, payload.template_id
    )
    return create_api_response(data=change, message="Template assigned", request=request)
