from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status

from coi_compliance.dependencies import get_request_context, get_template_service
from coi_compliance.schemas.context import RequestContext
from coi_compliance.schemas.responses import ApiResponse
from coi_compliance.schemas.templates import CreateTemplateInput, UpdateTemplateInput
from coi_compliance.services.template_service import TemplateService
from coi_compliance.utils.responses import create_api_response

router = APIRouter()


@router.get(
    "/",
    response_model=ApiResponse,
    summary="List templates",
    operation_id="list_templates",
)
async def list_templates(
    request: Request,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ApiResponse:
    """List the organization's templates and the system defaults."""
    templates = await service.list_templates(context.organization_id)
    return create_api_response(
        data=templates, message="Templates retrieved successfully", request=request
    )


@router.post(
    "/",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create template",
    operation_id="create_template",
)
async def create_template(
    request: Request,
    payload: CreateTemplateInput,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ApiResponse:
    template = await service.create_template(context.organization_id, context.actor_id, payload)
    return create_api_response(data=template, message="Template created", request=request)


@router.get(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Get template",
    operation_id="get_template",
)
async def get_template(
    request: Request,
    template_id: UUID,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ApiResponse:
    template = await service.get_template(context.organization_id, template_id)
    return create_api_response(data=template, message="Template retrieved", request=request)


@router.put(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Replace template metadata and requirements",
    operation_id="update_template",
)
async def update_template(
    request: Request,
    template_id: UUID,
    payload: UpdateTemplateInput,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ApiResponse:
    """Save the template, then recalculate every entity bound to it.

    A recalculation problem is reported in ``recalculation_error``; the save
    itself has already succeeded.
    """
    outcome = await service.update_template(
        context.organization_id, context.actor_id, template_id, payload
    )
    message = (
        "Template saved; compliance recalculation reported errors"
        if outcome.recalculation_error
        else "Template saved and compliance recalculated"
    )
    return create_api_response(data=outcome, message=message, request=request)


@router.post(
    "/{template_id}/duplicate",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Duplicate template",
    operation_id="duplicate_template",
)
async def duplicate_template(
    request: Request,
    template_id: UUID,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ApiResponse:
    template = await service.duplicate_template(
        context.organization_id, context.actor_id, template_id
    )
    return create_api_response(data=template, message="Template duplicated", request=request)


@router.delete(
    "/{template_id}",
    response_model=ApiResponse,
    summary="Delete template",
    operation_id="delete_template",
)
async def delete_template(
    request: Request,
    template_id: UUID,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ApiResponse:
    await service.delete_template(context.organization_id, context.actor_id, template_id)
    return create_api_response(
        data={"template_id": str(template_id)}, message="Template deleted", request=request
    )


@router.get(
    "/{template_id}/usage",
    response_model=ApiResponse,
    summary="Count entities using a template",
    operation_id="get_template_usage",
)
async def get_template_usage(
    request: Request,
    template_id: UUID,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[TemplateService, Depends(get_template_service)],
) -> ApiResponse:
    usage = await service.get_template_usage(context.organization_id, template_id)
    return create_api_response(data=usage, message="Template usage retrieved", request=request)
