"""Extraction quotas, checked before any gateway call."""

from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import RateLimitExceededError
from coi_compliance.database.models import Organization
from coi_compliance.repositories.certificate_repository import CertificateRepository
from coi_compliance.schemas.enums import PartyType, PlanTier
from coi_compliance.utils.logging import get_logger, log_context

LOGGER = get_logger(__name__)

ENTITY_HOURLY = "entity_hourly"
ORGANIZATION_MONTHLY = "organization_monthly"


def start_of_month(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class ExtractionRateLimiter:
    def __init__(self, session: AsyncSession):
        self.session = session
        self.certificates = CertificateRepository(session)

    async def check(
        self,
        organization: Organization,
        party_type: PartyType,
        party_id: UUID,
        now: Optional[datetime] = None,
    ) -> None:
        """Raise ``RateLimitExceededError`` when either quota is exhausted."""
        now = now or datetime.now(timezone.utc)
        await self.check_entity_hourly(party_type, party_id, now)
        await self.check_organization_monthly(organization, now)

    async def check_entity_hourly(self, party_type: PartyType, party_id: UUID, now: datetime) -> None:
        limit = settings.extraction.max_extractions_per_entity_per_hour
        recent = await self.certificates.count_uploaded_since(
            party_type, party_id, now - timedelta(hours=1)
        )
        if recent >= limit:
            LOGGER.warning(
                "Hourly extraction limit reached",
                extra=log_context(party_type=party_type, party_id=party_id, limit=limit),
            )
            raise RateLimitExceededError(
                scope=ENTITY_HOURLY,
                limit=limit,
                message="Too many uploads. Please try again later.",
            )

    async def check_organization_monthly(self, organization: Organization, now: datetime) -> None:
        plan = organization.plan or PlanTier.TRIAL.value
        if plan == PlanTier.CANCELED.value:
            raise RateLimitExceededError(
                scope=ORGANIZATION_MONTHLY,
                limit=0,
                message="Your subscription has been canceled. Please resubscribe to extract COIs.",
            )

        limit = settings.plans.monthly_extraction_limit(plan)
        used = await self.certificates.count_org_extractions_since(
            organization.id, start_of_month(now)
        )
        if used >= limit:
            upgrade = (
                " Upgrade to Professional for "
                f"{settings.plans.professional_extractions_per_month} extractions per month."
                if plan in (PlanTier.TRIAL.value, PlanTier.STARTER.value)
                else ""
            )
            LOGGER.warning(
                "Monthly extraction limit reached",
                extra=log_context(organization_id=organization.id, plan=plan, limit=limit),
            )
            raise RateLimitExceededError(
                scope=ORGANIZATION_MONTHLY,
                limit=limit,
                message=(
                    f"You've reached the monthly extraction limit for your plan ({limit}).{upgrade}"
                ),
            )
