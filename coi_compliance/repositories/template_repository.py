from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import (
    ComplianceResult,
    CoverageRequirement,
    RequirementTemplate,
)
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.compliance import RequirementData
from coi_compliance.schemas.templates import CoverageRequirementInput
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


def _enum_value(value):
    return value.value if value is not None else None


class TemplateRepository(BaseRepository[RequirementTemplate]):
    """Repository for requirement templates and their coverage requirements."""

    def __init__(self, session: AsyncSession):
        super().__init__(session, RequirementTemplate)

    async def get_visible(
        self, organization_id: UUID, template_id: UUID
    ) -> Optional[RequirementTemplate]:
        """Get a template owned by the organization or a system default.

        Templates of other organizations are indistinguishable from missing ones.
        """
        query = select(RequirementTemplate).where(
            RequirementTemplate.id == template_id,
            or_(
                RequirementTemplate.organization_id == organization_id,
                RequirementTemplate.is_system_default.is_(True),
            ),
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_visible(self, organization_id: UUID) -> List[RequirementTemplate]:
        query = (
            select(RequirementTemplate)
            .where(
                or_(
                    RequirementTemplate.organization_id == organization_id,
                    RequirementTemplate.is_system_default.is_(True),
                )
            )
            .order_by(
                RequirementTemplate.is_system_default.desc(),
                RequirementTemplate.name,
            )
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_system_default_by_name(self, name: str) -> Optional[RequirementTemplate]:
        query = select(RequirementTemplate).where(
            RequirementTemplate.is_system_default.is_(True),
            RequirementTemplate.name == name,
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def get_requirements(self, template_id: UUID) -> List[CoverageRequirement]:
        """Get a template's requirements in their stored order."""
        query = (
            select(CoverageRequirement)
            .where(CoverageRequirement.template_id == template_id)
            .order_by(CoverageRequirement.position, CoverageRequirement.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_requirement_data(self, template_id: UUID) -> List[RequirementData]:
        return [
            RequirementData.model_validate(row)
            for row in await self.get_requirements(template_id)
        ]

    async def add_requirements(
        self, template_id: UUID, requirements: Sequence[CoverageRequirementInput]
    ) -> List[CoverageRequirement]:
        rows = [
            CoverageRequirement(
                template_id=template_id,
                coverage_type=requirement.coverage_type.value,
                limit_type=_enum_value(requirement.limit_type),
                minimum_limit=requirement.minimum_limit,
                is_required=requirement.is_required,
                requires_additional_insured=requirement.requires_additional_insured,
                requires_waiver_of_subrogation=requirement.requires_waiver_of_subrogation,
                position=position,
            )
            for position, requirement in enumerate(requirements)
        ]
        try:
            self.session.add_all(rows)
            await self.session.flush()
            return rows
        except SQLAlchemyError as e:
            LOGGER.error(
                f"Error adding requirements to template {template_id}: {str(e)}",
                exc_info=True,
            )
            raise

    async def replace_requirements(
        self, template_id: UUID, requirements: Sequence[CoverageRequirementInput]
    ) -> List[CoverageRequirement]:
        """Delete every requirement of the template, then insert the new set.

        The delete is flushed first so a re-inserted natural key does not
        collide with the row it replaces.
        """
        await self.delete_requirements(template_id)
        return await self.add_requirements(template_id, requirements)

    async def delete_requirements(self, template_id: UUID) -> None:
        """Delete the requirements and every stored result that references them."""
        requirement_ids = select(CoverageRequirement.id).where(
            CoverageRequirement.template_id == template_id
        )
        try:
            await self.session.execute(
                delete(ComplianceResult).where(
                    ComplianceResult.coverage_requirement_id.in_(requirement_ids)
                ).execution_options(synchronize_session=False)
            )
            await self.session.execute(
                delete(CoverageRequirement).where(CoverageRequirement.template_id == template_id)
                .execution_options(synchronize_session=False)
            )
            await self.session.flush()
        except SQLAlchemyError as e:
            LOGGER.error(
                f"Error deleting requirements of template {template_id}: {str(e)}",
                exc_info=True,
            )
            raise
