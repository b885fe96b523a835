"""Tests for the cascading recalculator, run against a SQLite database."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.core.exceptions import NotFoundError
from coi_compliance.database import models
from coi_compliance.repositories.activity_repository import ActivityRepository
from coi_compliance.repositories.compliance_repository import ComplianceRepository
from coi_compliance.schemas.compliance import EntityRef
from coi_compliance.schemas.enums import (
    ActivityAction,
    ComplianceResultStatus,
    ComplianceStatus,
    EntityMatchStatus,
    NamedEntityType,
    PartyType,
    ProcessingStatus,
)
from coi_compliance.services.compliance import recalculator as recalculator_module
from factories import TODAY, gl_coverage, gl_requirement, holder


async def load(session_factory, model, id):
    async with session_factory() as session:
        return await session.get(model, id)


async def stored_results(session_factory, certificate_id):
    async with session_factory() as session:
        rows = await ComplianceRepository(session).get_results(certificate_id)
        return [(r.coverage_requirement_id, r.status, r.gap_description) for r in rows]


@pytest.fixture
async def bound_vendor(seed):
    """An organization with one template and one vendor holding a passing certificate."""
    org = await seed.organization()
    template = await seed.template(org.id, [gl_requirement()])
    vendor = await seed.party(org.id, template_id=template.id)
    certificate = await seed.certificate(org.id, vendor.id, coverages=[gl_coverage()])
    return org, template, vendor, certificate


@pytest.mark.asyncio
async def test_recalculate_persists_results_and_status(bound_vendor, recalculator, session_factory):
    org, template, vendor, certificate = bound_vendor

    summary = await recalculator.recalculate(org.id, template.id, today=TODAY)

    assert summary.entity_count == 1
    assert summary.processed == 1
    assert summary.succeeded
    [change] = summary.status_changes
    assert change.previous_status == ComplianceStatus.PENDING
    assert change.new_status == ComplianceStatus.COMPLIANT

    stored_vendor = await load(session_factory, models.Vendor, vendor.id)
    stored_certificate = await load(session_factory, models.Certificate, certificate.id)
    assert stored_vendor.compliance_status == ComplianceStatus.COMPLIANT.value
    assert stored_certificate.all_required_met is True
    assert stored_certificate.results_version == 1
    [(_, status, gap)] = await stored_results(session_factory, certificate.id)
    assert status == ComplianceResultStatus.MET.value
    assert gap is None


@pytest.mark.asyncio
async def test_recalculate_is_idempotent(bound_vendor, recalculator, session_factory):
    org, template, vendor, certificate = bound_vendor

    await recalculator.recalculate(org.id, template.id, today=TODAY)
    first = await stored_results(session_factory, certificate.id)
    second_summary = await recalculator.recalculate(org.id, template.id, today=TODAY)
    second = await stored_results(session_factory, certificate.id)

    assert first == second
    assert second_summary.status_changes == []
    stored_certificate = await load(session_factory, models.Certificate, certificate.id)
    assert stored_certificate.results_version == 2


@pytest.mark.asyncio
async def test_cascade_only_touches_bound_entities(bound_vendor, seed, recalculator, session_factory):
    org, template_a, vendor_a, certificate_a = bound_vendor
    template_b = await seed.template(org.id, [gl_requirement(2_000_000)], name="Template B")
    vendor_b = await seed.party(org.id, template_id=template_b.id, compliance_status="compliant")
    certificate_b = await seed.certificate(org.id, vendor_b.id, coverages=[gl_coverage()])

    summary = await recalculator.recalculate(org.id, template_a.id, today=TODAY)

    assert summary.entity_count == 1
    assert await stored_results(session_factory, certificate_b.id) == []
    stored_b = await load(session_factory, models.Certificate, certificate_b.id)
    assert stored_b.results_version == 0
    vendor_b_row = await load(session_factory, models.Vendor, vendor_b.id)
    assert vendor_b_row.compliance_status == "compliant"


@pytest.mark.asyncio
async def test_other_organizations_are_not_recalculated(seed, recalculator, session_factory):
    system = await seed.template(None, [gl_requirement()], name="Shared", is_system_default=True)
    org = await seed.organization()
    other_org = await seed.organization()
    await seed.party(org.id, template_id=system.id)
    foreign = await seed.party(other_org.id, template_id=system.id, compliance_status="compliant")

    summary = await recalculator.recalculate(org.id, system.id, today=TODAY)

    assert summary.entity_count == 1
    foreign_row = await load(session_factory, models.Vendor, foreign.id)
    assert foreign_row.compliance_status == "compliant"


@pytest.mark.asyncio
async def test_entities_without_confirmed_certificate_are_pending(seed, recalculator, session_factory):
    org = await seed.organization()
    template = await seed.template(org.id, [gl_requirement()])
    vendor = await seed.party(org.id, template_id=template.id, compliance_status="compliant")
    tenant = await seed.party(org.id, PartyType.TENANT, template_id=template.id)
    await seed.certificate(
        org.id, vendor.id, status=ProcessingStatus.EXTRACTED, coverages=[gl_coverage()]
    )

    summary = await recalculator.recalculate(org.id, template.id, today=TODAY)

    assert summary.entity_count == 2
    assert summary.pending == 2
    vendor_row = await load(session_factory, models.Vendor, vendor.id)
    tenant_row = await load(session_factory, models.Tenant, tenant.id)
    assert vendor_row.compliance_status == ComplianceStatus.PENDING.value
    assert tenant_row.compliance_status == ComplianceStatus.PENDING.value


@pytest.mark.asyncio
async def test_soft_deleted_entities_are_skipped(seed, recalculator):
    org = await seed.organization()
    template = await seed.template(org.id, [gl_requirement()])
    await seed.party(org.id, template_id=template.id, deleted=True)

    summary = await recalculator.recalculate(org.id, template.id, today=TODAY)

    assert summary.entity_count == 0


@pytest.mark.asyncio
async def test_newest_confirmed_certificate_is_current(bound_vendor, seed, recalculator, session_factory):
    org, template, vendor, older = bound_vendor
    newer = await seed.certificate(
        org.id,
        vendor.id,
        coverages=[gl_coverage(limit_amount=250_000)],
        uploaded_at=older.uploaded_at + timedelta(minutes=5),
    )

    summary = await recalculator.recalculate(org.id, template.id, today=TODAY)

    assert summary.status_changes[0].certificate_id == newer.id
    assert summary.status_changes[0].new_status == ComplianceStatus.NON_COMPLIANT
    assert await stored_results(session_factory, older.id) == []


@pytest.mark.asyncio
async def test_expiration_dominates_verdict(seed, recalculator, session_factory):
    org = await seed.organization()
    template = await seed.template(org.id, [gl_requirement()])
    vendor = await seed.party(org.id, template_id=template.id)
    await seed.certificate(
        org.id, vendor.id, coverages=[gl_coverage(expiration_date=TODAY - timedelta(days=1))]
    )

    await recalculator.recalculate(org.id, template.id, today=TODAY)

    vendor_row = await load(session_factory, models.Vendor, vendor.id)
    assert vendor_row.compliance_status == ComplianceStatus.EXPIRED.value


@pytest.mark.asyncio
async def test_organization_warning_window_is_used(seed, recalculator, session_factory):
    org = await seed.organization(settings={"expiration_warning_threshold_days": 90})
    template = await seed.template(org.id, [gl_requirement()])
    vendor = await seed.party(org.id, template_id=template.id)
    await seed.certificate(
        org.id, vendor.id, coverages=[gl_coverage(expiration_date=TODAY + timedelta(days=60))]
    )

    await recalculator.recalculate(org.id, template.id, today=TODAY)

    vendor_row = await load(session_factory, models.Vendor, vendor.id)
    assert vendor_row.compliance_status == ComplianceStatus.EXPIRING_SOON.value


@pytest.mark.asyncio
async def test_failing_entity_is_isolated(seed, recalculator, session_factory, monkeypatch):
    org = await seed.organization()
    template = await seed.template(org.id, [gl_requirement()])
    broken_vendor = await seed.party(org.id, template_id=template.id)
    healthy_vendor = await seed.party(org.id, template_id=template.id)
    broken_cert = await seed.certificate(org.id, broken_vendor.id, coverages=[gl_coverage()])
    healthy_cert = await seed.certificate(org.id, healthy_vendor.id, coverages=[gl_coverage()])
    await recalculator.recalculate(org.id, template.id, today=TODAY)
    results_before = await stored_results(session_factory, broken_cert.id)

    real_compare = recalculator_module.compare

    def flaky_compare(certificate_id, requirements, extracted):
        if certificate_id == broken_cert.id:
            raise RuntimeError("comparator crashed")
        return real_compare(certificate_id, requirements, extracted)

    monkeypatch.setattr(recalculator_module, "compare", flaky_compare)

    summary = await recalculator.recalculate(org.id, template.id, today=TODAY)

    assert summary.failed_entities == [
        EntityRef(party_type=PartyType.VENDOR, party_id=broken_vendor.id)
    ]
    assert not summary.succeeded
    assert summary.processed == 1
    assert await stored_results(session_factory, broken_cert.id) == results_before
    broken_row = await load(session_factory, models.Certificate, broken_cert.id)
    healthy_row = await load(session_factory, models.Certificate, healthy_cert.id)
    assert broken_row.results_version == 1
    assert healthy_row.results_version == 2


@pytest.mark.asyncio
async def test_failed_insert_after_delete_keeps_old_results(seed, recalculator, session_factory, monkeypatch):
    org = await seed.organization()
    template = await seed.template(org.id, [gl_requirement()])
    vendor = await seed.party(org.id, template_id=template.id)
    certificate = await seed.certificate(org.id, vendor.id, coverages=[gl_coverage()])
    await recalculator.recalculate(org.id, template.id, today=TODAY)
    results_before = await stored_results(session_factory, certificate.id)
    assert results_before

    insert_attempts = []
    real_add_all = AsyncSession.add_all

    def failing_add_all(self, instances):
        instances = list(instances)
        if any(isinstance(i, models.ComplianceResult) for i in instances):
            insert_attempts.append(len(instances))
            raise OperationalError("INSERT INTO compliance_results", {}, Exception("disk full"))
        return real_add_all(self, instances)

    monkeypatch.setattr(AsyncSession, "add_all", failing_add_all)

    summary = await recalculator.recalculate(org.id, template.id, today=TODAY)

    assert insert_attempts == [1]
    assert summary.failed_entities == [EntityRef(party_type=PartyType.VENDOR, party_id=vendor.id)]
    assert await stored_results(session_factory, certificate.id) == results_before
    certificate_row = await load(session_factory, models.Certificate, certificate.id)
    assert certificate_row.results_version == 1
    assert certificate_row.all_required_met is True
    vendor_row = await load(session_factory, models.Vendor, vendor.id)
    assert vendor_row.compliance_status == ComplianceStatus.COMPLIANT.value


@pytest.mark.asyncio
async def test_status_change_is_logged_as_activity(bound_vendor, recalculator, session_factory):
    org, template, vendor, certificate = bound_vendor

    await recalculator.recalculate(org.id, template.id, today=TODAY)

    async with session_factory() as session:
        [record] = await ActivityRepository(session).list_for_org(org.id)
    assert record.action == ActivityAction.COMPLIANCE_CHECKED.value
    assert record.vendor_id == vendor.id
    assert record.certificate_id == certificate.id
    assert record.details == {"before": "pending", "after": "compliant"}


@pytest.mark.asyncio
async def test_activity_failure_does_not_fail_recalculation(bound_vendor, recalculator, session_factory):
    org, template, vendor, _ = bound_vendor

    class BrokenSession:
        async def __aenter__(self):
            raise RuntimeError("activity store offline")

        async def __aexit__(self, *exc):
            return False

    recalculator.emitter.session_factory = lambda: BrokenSession()

    summary = await recalculator.recalculate(org.id, template.id, today=TODAY)

    assert summary.succeeded
    vendor_row = await load(session_factory, models.Vendor, vendor.id)
    assert vendor_row.compliance_status == ComplianceStatus.COMPLIANT.value


@pytest.mark.asyncio
async def test_entity_matches_are_recorded_without_changing_status(seed, recalculator, session_factory):
    org = await seed.organization()
    template = await seed.template(org.id, [gl_requirement()])
    prop = await seed.property(
        org.id,
        [
            ("Alturas Stanford LLC", NamedEntityType.CERTIFICATE_HOLDER),
            ("ABC Management", NamedEntityType.ADDITIONAL_INSURED),
        ],
    )
    vendor = await seed.party(org.id, template_id=template.id, property_id=prop.id)
    certificate = await seed.certificate(
        org.id,
        vendor.id,
        coverages=[gl_coverage()],
        entities=[holder("Alturas Stanford, Inc.")],
    )

    await recalculator.recalculate(org.id, template.id, today=TODAY)

    async with session_factory() as session:
        entity_results = await ComplianceRepository(session).get_entity_results(certificate.id)
    assert sorted(r.status for r in entity_results) == [
        EntityMatchStatus.FOUND.value,
        EntityMatchStatus.MISSING.value,
    ]
    vendor_row = await load(session_factory, models.Vendor, vendor.id)
    assert vendor_row.compliance_status == ComplianceStatus.COMPLIANT.value


@pytest.mark.asyncio
async def test_recalculate_entity_uses_assigned_template(bound_vendor, recalculator):
    org, _, vendor, certificate = bound_vendor

    change = await recalculator.recalculate_entity(org.id, PartyType.VENDOR, vendor.id, today=TODAY)

    assert change.certificate_id == certificate.id
    assert change.new_status == ComplianceStatus.COMPLIANT


@pytest.mark.asyncio
async def test_recalculate_entity_of_other_organization(bound_vendor, recalculator):
    _, _, vendor, _ = bound_vendor

    with pytest.raises(NotFoundError, match="Vendor not found"):
        await recalculator.recalculate_entity(uuid4(), PartyType.VENDOR, vendor.id, today=TODAY)
