"""Best-effort activity logging.

Records are written in their own session after the state change they
describe has committed. A failure to write one is logged and dropped; it
never undoes or fails the change itself.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from coi_compliance.repositories.activity_repository import ActivityRepository
from coi_compliance.schemas.compliance import ActivityEntry, StatusChange
from coi_compliance.schemas.enums import ActivityAction, PartyType
from coi_compliance.utils.logging import get_logger, log_context

LOGGER = get_logger(__name__)


class ActivityEmitter:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def emit(
        self,
        organization_id: UUID,
        action: ActivityAction,
        description: str,
        actor_id: Optional[UUID] = None,
        certificate_id: Optional[UUID] = None,
        party_type: Optional[PartyType] = None,
        party_id: Optional[UUID] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Write one activity record. Returns False when the write failed."""
        try:
            async with self.session_factory() as session:
                await ActivityRepository(session).create(
                    organization_id=organization_id,
                    certificate_id=certificate_id,
                    vendor_id=party_id if party_type == PartyType.VENDOR else None,
                    tenant_id=party_id if party_type == PartyType.TENANT else None,
                    action=action.value,
                    description=description,
                    details=details,
                    performed_by=actor_id,
                )
                await session.commit()
            return True
        except Exception:
            LOGGER.warning(
                f"Dropping activity record {action.value}",
                exc_info=True,
                extra=log_context(
                    organization_id=organization_id,
                    certificate_id=certificate_id,
                    party_id=party_id,
                ),
            )
            return False

    async def emit_status_change(
        self,
        organization_id: UUID,
        change: StatusChange,
        actor_id: Optional[UUID] = None,
        reason: str = "Compliance recalculated",
    ) -> bool:
        previous = change.previous_status.value if change.previous_status else None
        return await self.emit(
            organization_id=organization_id,
            action=ActivityAction.COMPLIANCE_CHECKED,
            description=f"{reason}: {previous or 'none'} -> {change.new_status.value}",
            actor_id=actor_id,
            certificate_id=change.certificate_id,
            party_type=change.party_type,
            party_id=change.party_id,
            details={"before": previous, "after": change.new_status.value},
        )

    async def recent(self, organization_id: UUID, limit: int = 100) -> List[ActivityEntry]:
        """Newest activity records of one organization."""
        async with self.session_factory() as session:
            rows = await ActivityRepository(session).list_for_org(organization_id, limit=limit)
            return [ActivityEntry.model_validate(row) for row in rows]
