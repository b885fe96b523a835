"""System default requirement templates.

Seeded once per database and shared read-only by every organization.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coi_compliance.repositories.template_repository import TemplateRepository
from coi_compliance.schemas.enums import CoverageType, LimitType, RiskLevel, TemplateCategory
from coi_compliance.schemas.templates import CoverageRequirementInput, CreateTemplateInput
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)

GL = CoverageType.GENERAL_LIABILITY


def _req(coverage_type, limit_type=None, minimum_limit=None, **flags) -> CoverageRequirementInput:
    return CoverageRequirementInput(
        coverage_type=coverage_type,
        limit_type=limit_type,
        minimum_limit=minimum_limit,
        **flags,
    )


SYSTEM_TEMPLATES = [
    CreateTemplateInput(
        name="Standard Vendor",
        description="General contractors and service vendors with routine on-site work.",
        category=TemplateCategory.VENDOR,
        risk_level=RiskLevel.STANDARD,
        requirements=[
            _req(GL, LimitType.PER_OCCURRENCE, 1_000_000, requires_additional_insured=True),
            _req(GL, LimitType.AGGREGATE, 2_000_000),
            _req(
                CoverageType.AUTOMOBILE_LIABILITY,
                LimitType.COMBINED_SINGLE_LIMIT,
                1_000_000,
            ),
            _req(CoverageType.WORKERS_COMPENSATION, LimitType.STATUTORY),
            _req(
                CoverageType.EMPLOYERS_LIABILITY,
                LimitType.PER_ACCIDENT,
                500_000,
                is_required=False,
            ),
        ],
    ),
    CreateTemplateInput(
        name="High-Risk Vendor",
        description="Roofing, electrical, demolition and other high-hazard trades.",
        category=TemplateCategory.VENDOR,
        risk_level=RiskLevel.HIGH,
        requirements=[
            _req(
                GL,
                LimitType.PER_OCCURRENCE,
                2_000_000,
                requires_additional_insured=True,
                requires_waiver_of_subrogation=True,
            ),
            _req(GL, LimitType.AGGREGATE, 4_000_000),
            _req(
                CoverageType.AUTOMOBILE_LIABILITY,
                LimitType.COMBINED_SINGLE_LIMIT,
                1_000_000,
            ),
            _req(
                CoverageType.WORKERS_COMPENSATION,
                LimitType.STATUTORY,
                requires_waiver_of_subrogation=True,
            ),
            _req(CoverageType.EMPLOYERS_LIABILITY, LimitType.PER_ACCIDENT, 1_000_000),
            _req(
                CoverageType.UMBRELLA_EXCESS_LIABILITY,
                LimitType.PER_OCCURRENCE,
                5_000_000,
                requires_additional_insured=True,
            ),
        ],
    ),
    CreateTemplateInput(
        name="Standard Tenant",
        description="Commercial tenants occupying leased space.",
        category=TemplateCategory.TENANT,
        risk_level=RiskLevel.STANDARD,
        requirements=[
            _req(GL, LimitType.PER_OCCURRENCE, 1_000_000, requires_additional_insured=True),
            _req(GL, LimitType.AGGREGATE, 2_000_000),
            _req(CoverageType.PROPERTY_INLAND_MARINE, is_required=False),
        ],
    ),
]


async def seed_system_templates(session_factory: async_sessionmaker[AsyncSession]) -> int:
    """Insert missing system default templates. Returns how many were created."""
    created = 0
    async with session_factory() as session:
        async with session.begin():
            repository = TemplateRepository(session)
            for definition in SYSTEM_TEMPLATES:
                if await repository.get_system_default_by_name(definition.name) is not None:
                    continue
                template = await repository.create(
                    organization_id=None,
                    name=definition.name,
                    description=definition.description,
                    category=definition.category.value,
                    risk_level=definition.risk_level.value,
                    is_system_default=True,
                )
                await repository.add_requirements(template.id, definition.requirements)
                created += 1

    if created:
        LOGGER.info(f"Seeded {created} system default templates")
    return created
