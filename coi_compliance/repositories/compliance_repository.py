from typing import List
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import (
    ComplianceResult,
    CoverageRequirement,
    EntityComplianceResult,
)
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.compliance import ComplianceOutcome
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ComplianceRepository(BaseRepository[ComplianceResult]):
    """Repository for stored comparator output."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, ComplianceResult)

    async def replace_results(self, outcome: ComplianceOutcome) -> None:
        """Swap the certificate's result set for ``outcome`` inside the current transaction."""
        certificate_id = outcome.certificate_id
        try:
            await self.session.execute(
                delete(ComplianceResult)
                .where(ComplianceResult.certificate_id == certificate_id)
                .execution_options(synchronize_session=False)
            )
            await self.session.execute(
                delete(EntityComplianceResult)
                .where(EntityComplianceResult.certificate_id == certificate_id)
                .execution_options(synchronize_session=False)
            )
            await self.session.flush()

            self.session.add_all(
                ComplianceResult(
                    certificate_id=certificate_id,
                    coverage_requirement_id=result.coverage_requirement_id,
                    extracted_coverage_id=result.extracted_coverage_id,
                    status=result.status.value,
                    gap_description=result.gap_description,
                )
                for result in outcome.results
            )
            self.session.add_all(
                EntityComplianceResult(
                    certificate_id=certificate_id,
                    property_entity_id=result.property_entity_id,
                    extracted_entity_id=result.extracted_entity_id,
                    status=result.status.value,
                    match_details=result.match_details,
                )
                for result in outcome.entity_results
            )
            await self.session.flush()
        except SQLAlchemyError as e:
            LOGGER.error(
                f"Error replacing compliance results for certificate {certificate_id}: {str(e)}",
                exc_info=True,
            )
            raise

    async def get_results(self, certificate_id: UUID) -> List[ComplianceResult]:
        """Stored results ordered like the template's requirements."""
        query = (
            select(ComplianceResult)
            .join(
                CoverageRequirement,
                CoverageRequirement.id == ComplianceResult.coverage_requirement_id,
            )
            .where(ComplianceResult.certificate_id == certificate_id)
            .order_by(CoverageRequirement.position, ComplianceResult.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_entity_results(self, certificate_id: UUID) -> List[EntityComplianceResult]:
        query = (
            select(EntityComplianceResult)
            .where(EntityComplianceResult.certificate_id == certificate_id)
            .order_by(EntityComplianceResult.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
