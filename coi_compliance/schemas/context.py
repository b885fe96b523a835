from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class RequestContext(BaseModel):
    """Caller identity for one request; authentication happens upstream."""

    organization_id: UUID
    actor_id: Optional[UUID] = None
