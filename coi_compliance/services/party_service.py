from typing import Optional
from uuid import UUID

from coi_compliance.core.exceptions import NotFoundError
from coi_compliance.core.locks import KeyedLockRegistry, entity_locks
from coi_compliance.repositories.party_repository import PartyRepository
from coi_compliance.repositories.template_repository import TemplateRepository
from coi_compliance.schemas.compliance import EntityRef, StatusChange
from coi_compliance.schemas.enums import PartyType
from coi_compliance.services.base_service import BaseService
from coi_compliance.services.compliance.recalculator import ComplianceRecalculator
from coi_compliance.utils.logging import get_logger, log_context

LOGGER = get_logger(__name__)


class PartyService(BaseService):
    """Template assignment for vendors and tenants."""

    def __init__(
        self,
        session_factory,
        recalculator: ComplianceRecalculator,
        locks: KeyedLockRegistry = entity_locks,
    ):
        super().__init__(session_factory)
        self.recalculator = recalculator
        self.locks = locks

    async def assign_template(
        self,
        organization_id: UUID,
        actor_id: Optional[UUID],
        party_type: PartyType,
        party_id: UUID,
        template_id: Optional[UUID],
    ) -> StatusChange:
        """Bind an entity to a template (or unbind it with ``None``) and recalculate it."""
        return await self.execute(
            self._assign_template, organization_id, actor_id, party_type, party_id, template_id
        )

    async def _assign_template(
        self,
        organization_id: UUID,
        actor_id: Optional[UUID],
        party_type: PartyType,
        party_id: UUID,
        template_id: Optional[UUID],
    ) -> StatusChange:
        ref = EntityRef(party_type=party_type, party_id=party_id)
        async with self.locks.hold(ref):
            async with self.session_factory() as session:
                async with session.begin():
                    parties = PartyRepository(session, party_type)
                    party = await parties.get_for_org(organization_id, party_id)
                    if party is None:
                        raise NotFoundError(party_type.value.capitalize())
                    if template_id is not None:
                        template = await TemplateRepository(session).get_visible(
                            organization_id, template_id
                        )
                        if template is None:
                            raise NotFoundError("Template")
                    await parties.update(party, template_id=template_id)

            LOGGER.info(
                "Template assigned",
                extra=log_context(
                    organization_id=organization_id,
                    party_type=party_type,
                    party_id=party_id,
                    template_id=template_id,
                ),
            )
            return await self.recalculator.recalculate_entity(
                organization_id, party_type, party_id, actor_id=actor_id, hold_lock=False
            )
