"""Row builders shared by the database-backed tests."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional, Sequence
from uuid import UUID, uuid4

from coi_compliance.database import models
from coi_compliance.repositories.certificate_repository import CertificateRepository
from coi_compliance.repositories.template_repository import TemplateRepository
from coi_compliance.schemas.compliance import ExtractedCoverageData, ExtractedEntityData
from coi_compliance.schemas.enums import (
    CoverageType,
    LimitType,
    NamedEntityType,
    PartyType,
    ProcessingStatus,
)
from coi_compliance.schemas.templates import CoverageRequirementInput

TODAY = date(2025, 3, 1)
FAR_FUTURE = date(2099, 12, 31)


def gl_requirement(
    minimum_limit: Optional[int] = 1_000_000,
    limit_type: Optional[LimitType] = LimitType.PER_OCCURRENCE,
    **flags,
) -> CoverageRequirementInput:
    return CoverageRequirementInput(
        coverage_type=CoverageType.GENERAL_LIABILITY,
        limit_type=limit_type,
        minimum_limit=minimum_limit,
        **flags,
    )


def gl_coverage(
    limit_amount: Optional[int] = 1_000_000,
    expiration_date: Optional[date] = FAR_FUTURE,
    **fields,
) -> ExtractedCoverageData:
    fields.setdefault("limit_type", LimitType.PER_OCCURRENCE)
    return ExtractedCoverageData(
        coverage_type=CoverageType.GENERAL_LIABILITY,
        limit_amount=limit_amount,
        carrier_name="Hartford Fire Insurance Co",
        policy_number="GL-0042",
        effective_date=TODAY - timedelta(days=30),
        expiration_date=expiration_date,
        **fields,
    )


class Seeder:
    """Inserts rows straight through the repositories, bypassing services."""

    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def _add(self, instance):
        async with self.session_factory() as session:
            async with session.begin():
                session.add(instance)
        return instance

    async def organization(self, plan: str = "trial", settings: Optional[dict] = None):
        return await self._add(models.Organization(name="Acme Property Group", plan=plan, settings=settings))

    async def template(
        self,
        organization_id: Optional[UUID],
        requirements: Sequence[CoverageRequirementInput] = (),
        name: str = "Vendor Baseline",
        is_system_default: bool = False,
    ):
        async with self.session_factory() as session:
            async with session.begin():
                repository = TemplateRepository(session)
                template = await repository.create(
                    organization_id=organization_id,
                    name=name,
                    category="vendor",
                    risk_level="standard",
                    is_system_default=is_system_default,
                )
                await repository.add_requirements(template.id, list(requirements))
        return template

    async def property(self, organization_id: UUID, entities: Sequence[tuple] = ()):
        prop = await self._add(models.Property(organization_id=organization_id, name="Stanford Plaza"))
        for entity_name, entity_type in entities:
            await self._add(
                models.PropertyEntity(
                    property_id=prop.id, entity_name=entity_name, entity_type=entity_type.value
                )
            )
        return prop

    async def party(
        self,
        organization_id: UUID,
        party_type: PartyType = PartyType.VENDOR,
        template_id: Optional[UUID] = None,
        property_id: Optional[UUID] = None,
        compliance_status: str = "pending",
        deleted: bool = False,
    ):
        model = models.Vendor if party_type == PartyType.VENDOR else models.Tenant
        return await self._add(
            model(
                organization_id=organization_id,
                name="Bay Area Roofing",
                template_id=template_id,
                property_id=property_id,
                compliance_status=compliance_status,
                deleted_at=datetime.now(timezone.utc) if deleted else None,
            )
        )

    async def certificate(
        self,
        organization_id: UUID,
        party_id: UUID,
        party_type: PartyType = PartyType.VENDOR,
        status: ProcessingStatus = ProcessingStatus.REVIEW_CONFIRMED,
        coverages: Sequence[ExtractedCoverageData] = (),
        entities: Sequence[ExtractedEntityData] = (),
        uploaded_at: Optional[datetime] = None,
        file_hash: Optional[str] = None,
        all_required_met: Optional[bool] = None,
    ):
        async with self.session_factory() as session:
            async with session.begin():
                certificates = CertificateRepository(session)
                certificate = await certificates.create_certificate(
                    organization_id=organization_id,
                    party_type=party_type,
                    party_id=party_id,
                    file_name="coi.pdf",
                    file_hash=file_hash or uuid4().hex,
                    file_size=1024,
                    status=status,
                )
                if uploaded_at is not None:
                    certificate.uploaded_at = uploaded_at
                certificate.all_required_met = all_required_met
                await certificates.add_extraction(certificate.id, list(coverages), list(entities))
        return certificate


def holder(name: str) -> ExtractedEntityData:
    return ExtractedEntityData(entity_name=name, entity_type=NamedEntityType.CERTIFICATE_HOLDER)
