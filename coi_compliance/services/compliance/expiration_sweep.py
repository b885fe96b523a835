"""Periodic re-projection of entity status as certificates approach expiry.

Uses the verdict cached on the current certificate; neither extraction nor
the comparator runs again. Scheduling is up to the caller (cron, worker).
"""

from datetime import date
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coi_compliance.core.locks import KeyedLockRegistry, entity_locks
from coi_compliance.repositories.certificate_repository import CertificateRepository
from coi_compliance.repositories.organization_repository import OrganizationRepository
from coi_compliance.repositories.party_repository import PartyRepository
from coi_compliance.schemas.compliance import EntityRef, StatusChange, SweepSummary
from coi_compliance.schemas.enums import ComplianceStatus, PartyType
from coi_compliance.services.compliance.activity_emitter import ActivityEmitter
from coi_compliance.services.compliance.recalculator import utc_today
from coi_compliance.services.compliance.status_projector import project_status, warning_days_for
from coi_compliance.utils.logging import get_logger, log_context

LOGGER = get_logger(__name__)


class ExpirationSweepService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        emitter: Optional[ActivityEmitter] = None,
        locks: KeyedLockRegistry = entity_locks,
    ):
        self.session_factory = session_factory
        self.emitter = emitter
        self.locks = locks

    async def run(
        self, today: Optional[date] = None, organization_id: Optional[UUID] = None
    ) -> SweepSummary:
        """Re-project every live entity that has a current certificate.

        Args:
            today: Reference date, defaults to the current UTC date
            organization_id: Restrict the sweep to one organization

        Returns:
            SweepSummary: Entities examined and the status changes applied
        """
        today = today or utc_today()

        async with self.session_factory() as session:
            refs = []
            for party_type in PartyType:
                for party in await PartyRepository(session, party_type).list_live(organization_id):
                    refs.append((party.organization_id, EntityRef(party_type=party_type, party_id=party.id)))

        summary = SweepSummary()
        warning_cache: dict[UUID, int] = {}
        for org_id, ref in refs:
            change = await self._sweep_entity(org_id, ref, today, warning_cache)
            if change is None:
                continue
            summary.examined += 1
            if change.changed:
                summary.status_changes.append(change)
                if self.emitter is not None:
                    await self.emitter.emit_status_change(
                        org_id, change, reason="Expiration check"
                    )

        LOGGER.info(
            "Expiration sweep completed",
            extra=log_context(
                organization_id=organization_id,
                examined=summary.examined,
                changed=len(summary.status_changes),
                today=today.isoformat(),
            ),
        )
        return summary

    async def _sweep_entity(
        self,
        organization_id: UUID,
        ref: EntityRef,
        today: date,
        warning_cache: dict[UUID, int],
    ) -> Optional[StatusChange]:
        async with self.locks.hold(ref):
            async with self.session_factory() as session:
                async with session.begin():
                    if organization_id not in warning_cache:
                        organization = await OrganizationRepository(session).get_by_id(organization_id)
                        warning_cache[organization_id] = warning_days_for(
                            organization.settings if organization else None
                        )

                    party = await PartyRepository(session, ref.party_type).get_for_org(
                        organization_id, ref.party_id
                    )
                    if party is None:
                        return None

                    certificates = CertificateRepository(session)
                    current = await certificates.get_current(ref.party_type, ref.party_id)
                    if current is None or current.all_required_met is None:
                        return None

                    coverages = await certificates.get_coverage_data(current.id)
                    new_status = project_status(
                        has_confirmed_certificate=True,
                        all_required_met=current.all_required_met,
                        expiration_dates=[c.expiration_date for c in coverages],
                        today=today,
                        warning_days=warning_cache[organization_id],
                    )
                    previous_status = ComplianceStatus(party.compliance_status)
                    if new_status != previous_status:
                        party.compliance_status = new_status.value

        return StatusChange(
            party_type=ref.party_type,
            party_id=ref.party_id,
            certificate_id=current.id,
            previous_status=previous_status,
            new_status=new_status,
        )
