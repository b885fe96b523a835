from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from coi_compliance.core.exceptions import NotFoundError, ValidationError
from coi_compliance.core.locks import KeyedLockRegistry, entity_locks
from coi_compliance.database.models import Certificate
from coi_compliance.repositories.certificate_repository import CertificateRepository
from coi_compliance.repositories.compliance_repository import ComplianceRepository
from coi_compliance.schemas.certificates import (
    CertificateComplianceView,
    ConfirmationOutcome,
    StoredEntityResult,
    StoredResult,
)
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import ActivityAction, PartyType, ProcessingStatus
from coi_compliance.services.base_service import BaseService
from coi_compliance.services.compliance.activity_emitter import ActivityEmitter
from coi_compliance.services.compliance.recalculator import ComplianceRecalculator
from coi_compliance.utils.logging import get_logger, log_context

LOGGER = get_logger(__name__)

CONFIRMABLE_STATUSES = {ProcessingStatus.EXTRACTED.value, ProcessingStatus.REVIEW_CONFIRMED.value}


def certificate_owner(certificate: Certificate) -> EntityRef:
    if certificate.vendor_id is not None:
        return EntityRef(party_type=PartyType.VENDOR, party_id=certificate.vendor_id)
    return EntityRef(party_type=PartyType.TENANT, party_id=certificate.tenant_id)


class CertificateService(BaseService):
    """Review confirmation and stored compliance of certificates."""

    def __init__(
        self,
        session_factory,
        recalculator: ComplianceRecalculator,
        emitter: Optional[ActivityEmitter] = None,
        locks: KeyedLockRegistry = entity_locks,
    ):
        super().__init__(session_factory)
        self.recalculator = recalculator
        self.emitter = emitter
        self.locks = locks

    async def confirm_certificate(
        self, organization_id: UUID, actor_id: Optional[UUID], certificate_id: UUID
    ) -> ConfirmationOutcome:
        return await self.execute(self._confirm, organization_id, actor_id, certificate_id)

    async def get_certificate_compliance(
        self, organization_id: UUID, certificate_id: UUID
    ) -> CertificateComplianceView:
        return await self.execute(self._get_compliance, organization_id, certificate_id)

    async def _owner_of(self, organization_id: UUID, certificate_id: UUID) -> EntityRef:
        async with self.session_factory() as session:
            certificate = await CertificateRepository(session).get_for_org(
                organization_id, certificate_id
            )
            if certificate is None:
                raise NotFoundError("Certificate")
            return certificate_owner(certificate)

    async def _confirm(
        self, organization_id: UUID, actor_id: Optional[UUID], certificate_id: UUID
    ) -> ConfirmationOutcome:
        owner = await self._owner_of(organization_id, certificate_id)

        async with self.locks.hold(owner):
            async with self.session_factory() as session:
                async with session.begin():
                    certificates = CertificateRepository(session)
                    certificate = await certificates.get_for_org(organization_id, certificate_id)
                    if certificate is None:
                        raise NotFoundError("Certificate")
                    if certificate.processing_status not in CONFIRMABLE_STATUSES:
                        raise ValidationError(
                            f"Certificate cannot be confirmed while {certificate.processing_status}"
                        )
                    first_confirmation = (
                        certificate.processing_status != ProcessingStatus.REVIEW_CONFIRMED.value
                    )
                    if first_confirmation:
                        certificate.processing_status = ProcessingStatus.REVIEW_CONFIRMED.value
                        certificate.reviewed_at = datetime.now(timezone.utc)
                        certificate.reviewed_by = actor_id

            change = await self.recalculator.recalculate_entity(
                organization_id,
                owner.party_type,
                owner.party_id,
                actor_id=actor_id,
                hold_lock=False,
            )

        LOGGER.info(
            "Certificate review confirmed",
            extra=log_context(
                organization_id=organization_id,
                certificate_id=certificate_id,
                new_status=change.new_status,
            ),
        )
        if first_confirmation and self.emitter is not None:
            await self.emitter.emit(
                organization_id=organization_id,
                action=ActivityAction.COI_REVIEW_CONFIRMED,
                description="COI review confirmed",
                actor_id=actor_id,
                certificate_id=certificate_id,
                party_type=owner.party_type,
                party_id=owner.party_id,
            )

        return ConfirmationOutcome(
            certificate_id=certificate_id,
            processing_status=ProcessingStatus.REVIEW_CONFIRMED,
            status_change=change,
        )

    async def _get_compliance(
        self, organization_id: UUID, certificate_id: UUID
    ) -> CertificateComplianceView:
        async with self.session_factory() as session:
            certificate = await CertificateRepository(session).get_for_org(
                organization_id, certificate_id
            )
            if certificate is None:
                raise NotFoundError("Certificate")
            compliance = ComplianceRepository(session)
            return CertificateComplianceView(
                certificate_id=certificate.id,
                processing_status=ProcessingStatus(certificate.processing_status),
                all_required_met=certificate.all_required_met,
                results_version=certificate.results_version,
                reviewed_at=certificate.reviewed_at,
                results=[
                    StoredResult.model_validate(row)
                    for row in await compliance.get_results(certificate.id)
                ],
                entity_results=[
                    StoredEntityResult.model_validate(row)
                    for row in await compliance.get_entity_results(certificate.id)
                ],
            )
