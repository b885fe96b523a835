from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import Property, PropertyEntity
from coi_compliance.repositories.base_repository import BaseRepository
from coi_compliance.schemas.compliance import PropertyEntityData


class PropertyRepository(BaseRepository[Property]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Property)

    async def get_entity_data(self, property_id: Optional[UUID]) -> List[PropertyEntityData]:
        """Get the parties a property requires on its certificates."""
        if property_id is None:
            return []
        query = (
            select(PropertyEntity)
            .where(PropertyEntity.property_id == property_id)
            .order_by(PropertyEntity.entity_name, PropertyEntity.id)
        )
        result = await self.session.execute(query)
        return [PropertyEntityData.model_validate(row) for row in result.scalars().all()]
