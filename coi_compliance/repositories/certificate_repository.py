from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import Certificate, ExtractedCoverage, ExtractedEntity
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.compliance import ExtractedCoverageData, ExtractedEntityData
from coi_compliance.schemas.enums import PartyType, ProcessingStatus
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


def owner_column(party_type: PartyType):
    return Certificate.vendor_id if party_type == PartyType.VENDOR else Certificate.tenant_id


class CertificateRepository(BaseRepository[Certificate]):
    """Repository for certificates and their extracted rows."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, Certificate)

    async def create_certificate(
        self,
        organization_id: UUID,
        party_type: PartyType,
        party_id: UUID,
        file_name: str,
        file_hash: str,
        file_size: int,
        status: ProcessingStatus = ProcessingStatus.PROCESSING,
    ) -> Certificate:
        owner = {"vendor_id": party_id} if party_type == PartyType.VENDOR else {"tenant_id": party_id}
        return await self.create(
            organization_id=organization_id,
            file_name=file_name,
            file_hash=file_hash,
            file_size=file_size,
            processing_status=status.value,
            **owner,
        )

    async def get_for_org(self, organization_id: UUID, certificate_id: UUID) -> Optional[Certificate]:
        query = select(Certificate).where(
            Certificate.id == certificate_id,
            Certificate.organization_id == organization_id,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_current(self, party_type: PartyType, party_id: UUID) -> Optional[Certificate]:
        """Most recently uploaded review-confirmed certificate of an entity."""
        query = (
            select(Certificate)
            .where(
                owner_column(party_type) == party_id,
                Certificate.processing_status == ProcessingStatus.REVIEW_CONFIRMED.value,
            )
            .order_by(Certificate.uploaded_at.desc(), Certificate.id.desc())
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def lock(self, certificate_id: UUID) -> Optional[Certificate]:
        """Re-read a certificate under a row lock (``SELECT ... FOR UPDATE``)."""
        query = (
            select(Certificate)
            .where(Certificate.id == certificate_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def count_uploaded_since(
        self, party_type: PartyType, party_id: UUID, since: datetime
    ) -> int:
        query = select(func.count()).select_from(Certificate).where(
            owner_column(party_type) == party_id,
            Certificate.uploaded_at >= since,
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    async def count_org_extractions_since(self, organization_id: UUID, since: datetime) -> int:
        """Count certificates that consumed an extraction (failed ones excluded)."""
        query = select(func.count()).select_from(Certificate).where(
            Certificate.organization_id == organization_id,
            Certificate.uploaded_at >= since,
            Certificate.processing_status != ProcessingStatus.FAILED.value,
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    async def find_by_hash(
        self, party_type: PartyType, party_id: UUID, file_hash: str
    ) -> Optional[Certificate]:
        query = (
            select(Certificate)
            .where(
                owner_column(party_type) == party_id,
                Certificate.file_hash == file_hash,
                Certificate.processing_status != ProcessingStatus.FAILED.value,
            )
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_coverage_data(self, certificate_id: UUID) -> List[ExtractedCoverageData]:
        """Extracted coverages in extraction order."""
        query = (
            select(ExtractedCoverage)
            .where(ExtractedCoverage.certificate_id == certificate_id)
            .order_by(ExtractedCoverage.position, ExtractedCoverage.id)
        )
        result = await self.session.execute(query)
        return [ExtractedCoverageData.model_validate(row) for row in result.scalars().all()]

    async def get_entity_data(self, certificate_id: UUID) -> List[ExtractedEntityData]:
        query = (
            select(ExtractedEntity)
            .where(ExtractedEntity.certificate_id == certificate_id)
            .order_by(ExtractedEntity.position, ExtractedEntity.id)
        )
        result = await self.session.execute(query)
        return [ExtractedEntityData.model_validate(row) for row in result.scalars().all()]

    async def add_extraction(
        self,
        certificate_id: UUID,
        coverages: Sequence[ExtractedCoverageData],
        entities: Sequence[ExtractedEntityData],
    ) -> None:
        """Store the rows of one successful extraction, preserving their order."""
        rows = [
            ExtractedCoverage(
                certificate_id=certificate_id,
                coverage_type=coverage.coverage_type.value,
                limit_type=coverage.limit_type.value if coverage.limit_type else None,
                limit_amount=coverage.limit_amount,
                carrier_name=coverage.carrier_name,
                policy_number=coverage.policy_number,
                effective_date=coverage.effective_date,
                expiration_date=coverage.expiration_date,
                additional_insured_listed=coverage.additional_insured_listed,
                additional_insured_entities=list(coverage.additional_insured_entities),
                waiver_of_subrogation=coverage.waiver_of_subrogation,
                confidence_flag=coverage.confidence_flag,
                raw_extracted_text=coverage.raw_extracted_text,
                position=position,
            )
            for position, coverage in enumerate(coverages)
        ]
        rows.extend(
            ExtractedEntity(
                certificate_id=certificate_id,
                entity_name=entity.entity_name,
                entity_address=entity.entity_address,
                entity_type=entity.entity_type.value,
                confidence_flag=entity.confidence_flag,
                position=position,
            )
            for position, entity in enumerate(entities)
        )
        try:
            self.session.add_all(rows)
            await self.session.flush()
        except SQLAlchemyError as e:
            LOGGER.error(
                f"Error storing extraction for certificate {certificate_id}: {str(e)}",
                exc_info=True,
            )
            raise
