from sqlalchemy.ext.asyncio import AsyncSession

from coi_compliance.database.models import Organization
from coi_compliance.repositories.base_repository import BaseRepository


class OrganizationRepository(BaseRepository[Organization]):
    def __init__(self, session: AsyncSession):
        super().__init__(session, Organization)
