"""Database models package."""

from coi_compliance.core.database import Base

__all__ = ["Base"]
