from datetime import timedelta

import pytest

from coi_compliance.core.locks import KeyedLockRegistry
from coi_compliance.database import models
from coi_compliance.repositories.activity_repository import ActivityRepository
from coi_compliance.schemas.enums import ComplianceStatus, PartyType, ProcessingStatus
from coi_compliance.services.compliance.expiration_sweep import ExpirationSweepService
from factories import TODAY, gl_coverage


@pytest.fixture
def sweep(session_factory, emitter):
    return ExpirationSweepService(session_factory, emitter=emitter, locks=KeyedLockRegistry())


async def party_status(session_factory, model, id):
    async with session_factory() as session:
        return (await session.get(model, id)).compliance_status


@pytest.mark.asyncio
async def test_certificate_entering_warning_window(seed, sweep, session_factory):
    org = await seed.organization()
    vendor = await seed.party(org.id, compliance_status="compliant")
    await seed.certificate(
        org.id,
        vendor.id,
        coverages=[gl_coverage(expiration_date=TODAY + timedelta(days=20))],
        all_required_met=True,
    )

    summary = await sweep.run(today=TODAY)

    assert summary.examined == 1
    [change] = summary.status_changes
    assert change.previous_status == ComplianceStatus.COMPLIANT
    assert change.new_status == ComplianceStatus.EXPIRING_SOON
    assert await party_status(session_factory, models.Vendor, vendor.id) == "expiring_soon"

    async with session_factory() as session:
        [record] = await ActivityRepository(session).list_for_org(org.id)
    assert record.details == {"before": "compliant", "after": "expiring_soon"}
    assert record.description.startswith("Expiration check")


@pytest.mark.asyncio
async def test_sweep_is_idempotent(seed, sweep):
    org = await seed.organization()
    tenant = await seed.party(org.id, PartyType.TENANT, compliance_status="expiring_soon")
    await seed.certificate(
        org.id,
        tenant.id,
        party_type=PartyType.TENANT,
        coverages=[gl_coverage(expiration_date=TODAY - timedelta(days=1))],
        all_required_met=False,
    )

    first = await sweep.run(today=TODAY)
    second = await sweep.run(today=TODAY)

    assert [c.new_status for c in first.status_changes] == [ComplianceStatus.EXPIRED]
    assert second.status_changes == []
    assert second.examined == 1


@pytest.mark.asyncio
async def test_uses_cached_verdict(seed, sweep, session_factory):
    org = await seed.organization()
    vendor = await seed.party(org.id, compliance_status="expiring_soon")
    await seed.certificate(
        org.id,
        vendor.id,
        coverages=[gl_coverage(expiration_date=TODAY + timedelta(days=200))],
        all_required_met=False,
    )

    await sweep.run(today=TODAY)

    assert await party_status(session_factory, models.Vendor, vendor.id) == "non_compliant"


@pytest.mark.asyncio
async def test_skips_entities_without_a_verdict(seed, sweep, session_factory):
    org = await seed.organization()
    unchecked = await seed.party(org.id, compliance_status="pending")
    await seed.certificate(
        org.id, unchecked.id, coverages=[gl_coverage(expiration_date=TODAY - timedelta(days=1))]
    )
    unconfirmed = await seed.party(org.id, compliance_status="pending")
    await seed.certificate(
        org.id,
        unconfirmed.id,
        status=ProcessingStatus.EXTRACTED,
        coverages=[gl_coverage(expiration_date=TODAY - timedelta(days=1))],
        all_required_met=True,
    )

    summary = await sweep.run(today=TODAY)

    assert summary.examined == 0
    assert await party_status(session_factory, models.Vendor, unchecked.id) == "pending"


@pytest.mark.asyncio
async def test_restricted_to_one_organization(seed, sweep, session_factory):
    org = await seed.organization()
    other_org = await seed.organization()
    for owner in (org, other_org):
        vendor = await seed.party(owner.id, compliance_status="compliant")
        await seed.certificate(
            owner.id,
            vendor.id,
            coverages=[gl_coverage(expiration_date=TODAY - timedelta(days=1))],
            all_required_met=True,
        )

    summary = await sweep.run(today=TODAY, organization_id=org.id)

    assert summary.examined == 1
    assert await party_status(session_factory, models.Vendor, vendor.id) == "compliant"
