from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status

from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import ValidationError
from coi_compliance.dependencies import (
    get_certificate_service,
    get_extraction_service,
    get_request_context,
)
from coi_compliance.schemas.context import RequestContext
from coi_compliance.schemas.enums import PartyType
from coi_compliance.schemas.responses import ApiResponse
from coi_compliance.services.certificate_service import CertificateService
from coi_compliance.services.extraction.extraction_service import ExtractionService
from coi_compliance.utils.logging import get_logger
from coi_compliance.utils.responses import create_api_response

LOGGER = get_logger(__name__)

router = APIRouter()


@router.post(
    "/",
    response_model=ApiResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a certificate of insurance",
    operation_id="upload_certificate",
)
async def upload_certificate(
    request: Request,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[ExtractionService, Depends(get_extraction_service)],
    party_type: PartyType = Form(...),
    party_id: UUID = Form(...),
    file: UploadFile = File(..., description="Certificate PDF"),
) -> ApiResponse:
    """Upload a PDF and extract its coverages for review."""
    max_bytes = settings.extraction.max_document_bytes
    content = await file.read(max_bytes + 1)
    if len(content) > max_bytes:
        raise ValidationError(
            f"File is too large. Maximum allowed size is {max_bytes / (1024 * 1024):g}MB."
        )
    outcome = await service.upload_certificate(
        context.organization_id,
        context.actor_id,
        party_type,
        party_id,
        file.filename or "certificate.pdf",
        content,
    )
    return create_api_response(
        data=outcome, message="Certificate extracted and ready for review", request=request
    )


@router.post(
    "/{certificate_id}/confirm",
    response_model=ApiResponse,
    summary="Confirm reviewed extraction",
    operation_id="confirm_certificate",
)
async def confirm_certificate(
    request: Request,
    certificate_id: UUID,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[CertificateService, Depends(get_certificate_service)],
) -> ApiResponse:
    outcome = await service.confirm_certificate(
        context.organization_id, context.actor_id, certificate_id
    )
    return create_api_response(data=outcome, message="Certificate confirmed", request=request)


@router.get(
    "/{certificate_id}/compliance",
    response_model=ApiResponse,
    summary="Get stored compliance results",
    operation_id="get_certificate_compliance",
)
async def get_certificate_compliance(
    request: Request,
    certificate_id: UUID,
    context: Annotated[RequestContext, Depends(get_request_context)],
    service: Annotated[CertificateService, Depends(get_certificate_service)],
) -> ApiResponse:
    view = await service.get_certificate_compliance(context.organization_id, certificate_id)
    return create_api_response(data=view, message="Compliance retrieved", request=request)
