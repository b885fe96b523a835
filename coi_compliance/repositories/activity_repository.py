from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import ActivityLog
from coi_compliance.repositories.base_repository import BaseRepository


class ActivityRepository(BaseRepository[ActivityLog]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, ActivityLog)

    async def list_for_org(self, organization_id: UUID, limit: int = 100) -> List[ActivityLog]:
        query = (
            select(ActivityLog)
            .where(ActivityLog.organization_id == organization_id)
            .order_by(ActivityLog.created_at.desc(), ActivityLog.id)
            .limit(limit)
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())
