"""Cascading recalculation of entity compliance.

When a template's requirement set changes, every live vendor and tenant
bound to it is re-evaluated against its current certificate. Entities are
independent: each runs in its own session and transaction, and a failure
on one entity leaves the others (and its own previous results) intact.
"""

import asyncio
from contextlib import nullcontext
from datetime import date, datetime, timezone
from typing import Optional, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import NotFoundError
from coi_compliance.core.locks import KeyedLockRegistry, entity_locks
from coi_compliance.repositories.certificate_repository import CertificateRepository
from coi_compliance.repositories.compliance_repository import ComplianceRepository
from coi_compliance.repositories.organization_repository import OrganizationRepository
from coi_compliance.repositories.party_repository import PartyRepository
from coi_compliance.repositories.property_repository import PropertyRepository
from coi_compliance.repositories.template_repository import TemplateRepository
from coi_compliance.schemas.compliance import (
    EntityRef,
    RecalculationSummary,
    RequirementData,
    StatusChange,
)
from coi_compliance.schemas.enums import ComplianceStatus, PartyType
from coi_compliance.services.compliance.activity_emitter import ActivityEmitter
from coi_compliance.services.compliance.comparator import compare
from coi_compliance.services.compliance.entity_matcher import match_entities
from coi_compliance.services.compliance.status_projector import project_status, warning_days_for
from coi_compliance.utils.logging import get_logger, log_context

LOGGER = get_logger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class ComplianceRecalculator:
    """Re-applies the comparator and the status projector to bound entities."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        emitter: Optional[ActivityEmitter] = None,
        concurrency: Optional[int] = None,
        locks: KeyedLockRegistry = entity_locks,
    ):
        self.session_factory = session_factory
        self.emitter = emitter
        self.concurrency = max(1, concurrency or settings.compliance.recalculation_concurrency)
        self.locks = locks

    async def recalculate(
        self,
        organization_id: UUID,
        template_id: UUID,
        actor_id: Optional[UUID] = None,
        today: Optional[date] = None,
    ) -> RecalculationSummary:
        """Recalculate every live entity of the organization bound to ``template_id``.

        Must be called after the template's new requirement set has committed;
        the requirements are read here in a fresh session.
        """
        today = today or utc_today()

        async with self.session_factory() as session:
            requirements = await TemplateRepository(session).get_requirement_data(template_id)
            refs = []
            for party_type in PartyType:
                parties = await PartyRepository(session, party_type).list_by_template(
                    organization_id, template_id
                )
                refs.extend(EntityRef(party_type=party_type, party_id=p.id) for p in parties)
            organization = await OrganizationRepository(session).get_by_id(organization_id)
            warning_days = warning_days_for(organization.settings if organization else None)

        LOGGER.info(
            f"Recalculating {len(refs)} entities for template {template_id}",
            extra=log_context(
                organization_id=organization_id,
                template_id=template_id,
                entity_count=len(refs),
                requirement_count=len(requirements),
            ),
        )

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(ref: EntityRef):
            async with semaphore:
                try:
                    change = await self._process(
                        organization_id,
                        ref,
                        today=today,
                        warning_days=warning_days,
                        actor_id=actor_id,
                        requirements=requirements,
                        expected_template_id=template_id,
                    )
                    return ref, change, None
                except Exception as e:
                    LOGGER.error(
                        f"Recalculation failed for {ref.party_type.value} {ref.party_id}",
                        exc_info=True,
                        extra=log_context(
                            organization_id=organization_id,
                            template_id=template_id,
                            party_id=ref.party_id,
                        ),
                    )
                    return ref, None, e

        outcomes = await asyncio.gather(*(run(ref) for ref in refs))

        summary = RecalculationSummary(template_id=template_id, entity_count=len(refs))
        for ref, change, error in outcomes:
            if error is not None:
                summary.failed_entities.append(ref)
                continue
            if change is None:
                continue
            summary.processed += 1
            if change.certificate_id is None:
                summary.pending += 1
            if change.changed:
                summary.status_changes.append(change)

        LOGGER.info(
            f"Recalculation completed for template {template_id}",
            extra=log_context(
                template_id=template_id,
                processed=summary.processed,
                pending=summary.pending,
                changed=len(summary.status_changes),
                failed=len(summary.failed_entities),
            ),
        )
        return summary

    async def recalculate_entity(
        self,
        organization_id: UUID,
        party_type: PartyType,
        party_id: UUID,
        actor_id: Optional[UUID] = None,
        today: Optional[date] = None,
        hold_lock: bool = True,
    ) -> StatusChange:
        """Recalculate a single entity against its currently assigned template.

        Pass ``hold_lock=False`` only when the caller already holds the
        entity lock.
        """
        async with self.session_factory() as session:
            organization = await OrganizationRepository(session).get_by_id(organization_id)
            warning_days = warning_days_for(organization.settings if organization else None)

        change = await self._process(
            organization_id,
            EntityRef(party_type=party_type, party_id=party_id),
            today=today or utc_today(),
            warning_days=warning_days,
            actor_id=actor_id,
            hold_lock=hold_lock,
        )
        if change is None:
            raise NotFoundError(party_type.value.capitalize())
        return change

    async def _process(
        self,
        organization_id: UUID,
        ref: EntityRef,
        today: date,
        warning_days: int,
        actor_id: Optional[UUID] = None,
        requirements: Optional[Sequence[RequirementData]] = None,
        expected_template_id: Optional[UUID] = None,
        hold_lock: bool = True,
    ) -> Optional[StatusChange]:
        """Replace one entity's result set and status in a single transaction.

        Returns None when the entity disappeared or moved to another template
        since it was enumerated.
        """
        async with self.locks.hold(ref) if hold_lock else nullcontext():
            async with self.session_factory() as session:
                async with session.begin():
                    party = await PartyRepository(session, ref.party_type).get_for_org(
                        organization_id, ref.party_id
                    )
                    if party is None:
                        return None
                    if expected_template_id is not None and party.template_id != expected_template_id:
                        return None

                    if requirements is None:
                        requirements = (
                            await TemplateRepository(session).get_requirement_data(party.template_id)
                            if party.template_id
                            else []
                        )

                    previous_status = ComplianceStatus(party.compliance_status)
                    certificates = CertificateRepository(session)
                    current = await certificates.get_current(ref.party_type, ref.party_id)

                    if current is None:
                        new_status = ComplianceStatus.PENDING
                        certificate_id = None
                    else:
                        certificate = await certificates.lock(current.id)
                        certificate_id = certificate.id
                        coverages = await certificates.get_coverage_data(certificate.id)
                        extracted_entities = await certificates.get_entity_data(certificate.id)
                        property_entities = await PropertyRepository(session).get_entity_data(
                            party.property_id
                        )

                        outcome = compare(certificate.id, requirements, coverages)
                        outcome = outcome.model_copy(
                            update={
                                "entity_results": match_entities(
                                    property_entities, extracted_entities
                                )
                            }
                        )
                        await ComplianceRepository(session).replace_results(outcome)

                        certificate.all_required_met = outcome.all_required_met
                        certificate.results_version = (certificate.results_version or 0) + 1

                        new_status = project_status(
                            has_confirmed_certificate=True,
                            all_required_met=outcome.all_required_met,
                            expiration_dates=[c.expiration_date for c in coverages],
                            today=today,
                            warning_days=warning_days,
                        )

                    party.compliance_status = new_status.value

        change = StatusChange(
            party_type=ref.party_type,
            party_id=ref.party_id,
            certificate_id=certificate_id,
            previous_status=previous_status,
            new_status=new_status,
        )
        if change.changed and self.emitter is not None:
            await self.emitter.emit_status_change(organization_id, change, actor_id=actor_id)
        return change
