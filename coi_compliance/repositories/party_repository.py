from typing import List, Optional, Union
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import Tenant, Vendor
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.enums import PartyType

Party = Union[Vendor, Tenant]

PARTY_MODELS = {
    PartyType.VENDOR: Vendor,
    PartyType.TENANT: Tenant,
}


class PartyRepository(BaseRepository[Party]):
    """Repository for vendors or tenants, selected by ``party_type``.

    Soft-deleted rows are never returned.
    """

    def __init__(self, session: AsyncSession, party_type: PartyType):
        super().__init__(session, PARTY_MODELS[party_type])
        self.party_type = party_type

    def _live(self):
        return select(self.model).where(self.model.deleted_at.is_(None))

    async def get_for_org(self, organization_id: UUID, party_id: UUID) -> Optional[Party]:
        query = self._live().where(
            self.model.id == party_id,
            self.model.organization_id == organization_id,
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_by_template(self, organization_id: UUID, template_id: UUID) -> List[Party]:
        query = (
            self._live()
            .where(
                self.model.organization_id == organization_id,
                self.model.template_id == template_id,
            )
            .order_by(self.model.id)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_live(self, organization_id: Optional[UUID] = None) -> List[Party]:
        query = self._live().order_by(self.model.id)
        if organization_id is not None:
            query = query.where(self.model.organization_id == organization_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_by_template(self, organization_id: UUID, template_id: UUID) -> int:
        query = select(func.count()).select_from(self.model).where(
            self.model.organization_id == organization_id,
            self.model.template_id == template_id,
            self.model.deleted_at.is_(None),
        )
        result = await self.session.execute(query)
        return result.scalar_one()

    async def property_ids_by_template(self, organization_id: UUID, template_id: UUID) -> set[UUID]:
        query = select(self.model.property_id).where(
            self.model.organization_id == organization_id,
            self.model.template_id == template_id,
            self.model.deleted_at.is_(None),
            self.model.property_id.is_not(None),
        ).distinct()
        result = await self.session.execute(query)
        return set(result.scalars().all())
