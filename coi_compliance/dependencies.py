"""Centralized dependency injection for the FastAPI application.

Services receive a session factory rather than a request-scoped session:
template saves, per-entity recalculation and activity records each commit
in their own transaction.
"""

from functools import lru_cache
from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coi_compliance.core.database import async_session_maker
from coi_compliance.core.exceptions import ValidationError
from coi_compliance.core.extraction_client import ExtractionGateway, LLMExtractionGateway
from coi_compliance.schemas.context import RequestContext
from coi_compliance.services.certificate_service import CertificateService
from coi_compliance.services.compliance.activity_emitter import ActivityEmitter
from coi_compliance.services.compliance.expiration_sweep import ExpirationSweepService
from coi_compliance.services.compliance.recalculator import ComplianceRecalculator
from coi_compliance.services.extraction.extraction_service import ExtractionService
from coi_compliance.services.party_service import PartyService
from coi_compliance.services.template_service import TemplateService

SessionFactory = async_sessionmaker[AsyncSession]


def get_session_factory() -> SessionFactory:
    return async_session_maker


@lru_cache
def get_extraction_gateway() -> ExtractionGateway:
    """Get the process-wide extraction gateway.

    Raises:
        ConfigurationError: If no API key is configured
    """
    return LLMExtractionGateway()


def _parse_uuid(value: Optional[str], header: str) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(value)
    except ValueError as e:
        raise ValidationError(f"{header} must be a UUID", original_error=e) from e


async def get_request_context(
    x_organization_id: Annotated[Optional[str], Header()] = None,
    x_actor_id: Annotated[Optional[str], Header()] = None,
) -> RequestContext:
    """Caller identity from the ``X-Organization-Id`` and ``X-Actor-Id`` headers."""
    organization_id = _parse_uuid(x_organization_id, "X-Organization-Id")
    if organization_id is None:
        raise ValidationError("X-Organization-Id header is required")
    return RequestContext(
        organization_id=organization_id,
        actor_id=_parse_uuid(x_actor_id, "X-Actor-Id"),
    )


async def get_activity_emitter(
    session_factory: Annotated[SessionFactory, Depends(get_session_factory)]
) -> ActivityEmitter:
    return ActivityEmitter(session_factory)


async def get_recalculator(
    session_factory: Annotated[SessionFactory, Depends(get_session_factory)],
    emitter: Annotated[ActivityEmitter, Depends(get_activity_emitter)],
) -> ComplianceRecalculator:
    return ComplianceRecalculator(session_factory, emitter=emitter)


async def get_template_service(
    session_factory: Annotated[SessionFactory, Depends(get_session_factory)],
    recalculator: Annotated[ComplianceRecalculator, Depends(get_recalculator)],
    emitter: Annotated[ActivityEmitter, Depends(get_activity_emitter)],
) -> TemplateService:
    return TemplateService(session_factory, recalculator, emitter=emitter)


async def get_certificate_service(
    session_factory: Annotated[SessionFactory, Depends(get_session_factory)],
    recalculator: Annotated[ComplianceRecalculator, Depends(get_recalculator)],
    emitter: Annotated[ActivityEmitter, Depends(get_activity_emitter)],
) -> CertificateService:
    return CertificateService(session_factory, recalculator, emitter=emitter)


async def get_party_service(
    session_factory: Annotated[SessionFactory, Depends(get_session_factory)],
    recalculator: Annotated[ComplianceRecalculator, Depends(get_recalculator)],
) -> PartyService:
    return PartyService(session_factory, recalculator)


async def get_extraction_service(
    session_factory: Annotated[SessionFactory, Depends(get_session_factory)],
    emitter: Annotated[ActivityEmitter, Depends(get_activity_emitter)],
) -> ExtractionService:
    return ExtractionService(session_factory, get_extraction_gateway(), emitter=emitter)


async def get_sweep_service(
    session_factory: Annotated[SessionFactory, Depends(get_session_factory)],
    emitter: Annotated[ActivityEmitter, Depends(get_activity_emitter)],
) -> ExpirationSweepService:
    return ExpirationSweepService(session_factory, emitter=emitter)
