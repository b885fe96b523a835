"""Certificate upload: validation, quotas, extraction and persistence of its rows."""

import asyncio
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import (
    DatabaseError,
    DuplicateDocumentError,
    ExtractionFailure,
    NotFoundError,
)
from coi_compliance.core.extraction_client import ExtractionGateway
from coi_compliance.core.locks import KeyedLockRegistry, entity_locks
from coi_compliance.repositories.certificate_repository import CertificateRepository
from coi_compliance.repositories.organization_repository import OrganizationRepository
from coi_compliance.repositories.party_repository import PartyRepository
from coi_compliance.schemas.enums import ActivityAction, PartyType, ProcessingStatus
from coi_compliance.schemas.extraction import ExtractionResult, UploadOutcome
from coi_compliance.services.compliance.activity_emitter import ActivityEmitter
from coi_compliance.services.extraction.document_validation import compute_file_hash, validate_pdf
from coi_compliance.services.extraction.rate_limiter import ExtractionRateLimiter
from coi_compliance.utils.logging import get_logger, log_context

LOGGER = get_logger(__name__)


class ExtractionService:
    """Uploads a certificate for a vendor or tenant and runs extraction on it.

    The certificate row is committed as ``processing`` before the gateway is
    called so that quota counting sees in-flight uploads. Any gateway problem
    leaves it ``failed``; failed certificates are never compared.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        gateway: ExtractionGateway,
        emitter: Optional[ActivityEmitter] = None,
        locks: KeyedLockRegistry = entity_locks,
    ):
        self.session_factory = session_factory
        self.gateway = gateway
        self.emitter = emitter
        self.locks = locks

    async def upload_certificate(
        self,
        organization_id: UUID,
        actor_id: Optional[UUID],
        party_type: PartyType,
        party_id: UUID,
        file_name: str,
        content: bytes,
        timeout: Optional[float] = None,
    ) -> UploadOutcome:
        """Validate, register and extract one certificate.

        Raises:
            NotFoundError: Entity missing or owned by another organization
            ValidationError: Empty, oversized or non-PDF document
            RateLimitExceededError: Hourly or monthly quota exhausted
            DuplicateDocumentError: Same file already uploaded for the entity
            ExtractionFailure: Gateway failure, timeout or unusable output
        """
        file_hash = compute_file_hash(content) if content else ""
        certificate_id = await self._register(
            organization_id, party_type, party_id, file_name, content, file_hash
        )

        LOGGER.info(
            f"Starting extraction for certificate {certificate_id}",
            extra=log_context(
                organization_id=organization_id,
                certificate_id=certificate_id,
                party_type=party_type,
                party_id=party_id,
                file_size=len(content),
            ),
        )

        timeout = timeout or settings.extraction.timeout_seconds
        try:
            result = await asyncio.wait_for(self.gateway.extract(content), timeout=timeout)
        except asyncio.TimeoutError as e:
            LOGGER.error(
                f"Extraction timed out after {timeout}s",
                extra=log_context(certificate_id=certificate_id),
            )
            await self._fail(organization_id, actor_id, certificate_id, party_type, party_id, file_name)
            raise ExtractionFailure(certificate_id=certificate_id, original_error=e) from e
        except Exception as e:
            LOGGER.error(
                "Extraction gateway raised",
                exc_info=True,
                extra=log_context(certificate_id=certificate_id),
            )
            await self._fail(organization_id, actor_id, certificate_id, party_type, party_id, file_name)
            raise ExtractionFailure(certificate_id=certificate_id, original_error=e) from e

        if not result.success:
            await self._fail(organization_id, actor_id, certificate_id, party_type, party_id, file_name)
            raise ExtractionFailure(user_message=result.user_message, certificate_id=certificate_id)

        await self._store(organization_id, actor_id, certificate_id, party_type, party_id, file_name, result)

        return UploadOutcome(
            certificate_id=certificate_id,
            processing_status=ProcessingStatus.EXTRACTED,
            coverage_count=len(result.coverages),
            entity_count=len(result.entities),
            insured_name=result.insured_name,
        )

    async def _register(
        self,
        organization_id: UUID,
        party_type: PartyType,
        party_id: UUID,
        file_name: str,
        content: bytes,
        file_hash: str,
    ) -> UUID:
        # Quota checks and the insert they guard run under one lock per entity
        async with self.locks.hold(("upload", party_type, party_id)):
            async with self.session_factory() as session:
                async with session.begin():
                    party = await PartyRepository(session, party_type).get_for_org(
                        organization_id, party_id
                    )
                    if party is None:
                        raise NotFoundError(party_type.value.capitalize())

                    validate_pdf(content)

                    organization = await OrganizationRepository(session).get_by_id(organization_id)
                    if organization is None:
                        raise NotFoundError("Organization")
                    await ExtractionRateLimiter(session).check(organization, party_type, party_id)

                    certificates = CertificateRepository(session)
                    if await certificates.find_by_hash(party_type, party_id, file_hash):
                        raise DuplicateDocumentError(
                            f"This file has already been uploaded for this {party_type.value}."
                        )

                    certificate = await certificates.create_certificate(
                        organization_id=organization_id,
                        party_type=party_type,
                        party_id=party_id,
                        file_name=file_name,
                        file_hash=file_hash,
                        file_size=len(content),
                        status=ProcessingStatus.PROCESSING,
                    )
                    return certificate.id

    async def _store(
        self,
        organization_id: UUID,
        actor_id: Optional[UUID],
        certificate_id: UUID,
        party_type: PartyType,
        party_id: UUID,
        file_name: str,
        result: ExtractionResult,
    ) -> None:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    certificates = CertificateRepository(session)
                    certificate = await certificates.get_by_id(certificate_id)
                    await certificates.add_extraction(certificate_id, result.coverages, result.entities)
                    certificate.processing_status = ProcessingStatus.EXTRACTED.value
                    certificate.insured_name = result.insured_name
        except Exception as e:
            LOGGER.error(
                "Failed to store extraction results",
                exc_info=True,
                extra=log_context(certificate_id=certificate_id),
            )
            await self._fail(organization_id, actor_id, certificate_id, party_type, party_id, file_name)
            raise DatabaseError("Failed to store extraction results", original_error=e) from e

        if self.emitter is not None:
            await self.emitter.emit(
                organization_id=organization_id,
                action=ActivityAction.COI_PROCESSED,
                description=(
                    f"COI processed: {file_name} "
                    f"({len(result.coverages)} coverages, {len(result.entities)} entities)"
                ),
                actor_id=actor_id,
                certificate_id=certificate_id,
                party_type=party_type,
                party_id=party_id,
            )

    async def _fail(
        self,
        organization_id: UUID,
        actor_id: Optional[UUID],
        certificate_id: UUID,
        party_type: PartyType,
        party_id: UUID,
        file_name: str,
    ) -> None:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    certificate = await CertificateRepository(session).get_by_id(certificate_id)
                    if certificate is not None:
                        certificate.processing_status = ProcessingStatus.FAILED.value
        except Exception:
            LOGGER.error(
                "Could not mark certificate as failed",
                exc_info=True,
                extra=log_context(certificate_id=certificate_id),
            )

        if self.emitter is not None:
            await self.emitter.emit(
                organization_id=organization_id,
                action=ActivityAction.COI_PROCESSED,
                description=f"COI extraction failed: {file_name}",
                actor_id=actor_id,
                certificate_id=certificate_id,
                party_type=party_type,
                party_id=party_id,
                details={"processing_status": ProcessingStatus.FAILED.value},
            )
