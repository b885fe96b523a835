"""Extraction gateway contracts."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from coi_compliance.schemas.compliance import ExtractedCoverageData, ExtractedEntityData
from coi_compliance.schemas.enums import ProcessingStatus


class ExtractionResult(BaseModel):
    """Typed output of one extraction call.

    On ``success=False`` the coverage and entity lists are empty and
    ``user_message`` explains the failure to the end user.
    """

    success: bool
    coverages: list[ExtractedCoverageData] = Field(default_factory=list)
    entities: list[ExtractedEntityData] = Field(default_factory=list)
    insured_name: Optional[str] = None
    user_message: Optional[str] = None

    @classmethod
    def failure(cls, user_message: Optional[str] = None) -> "ExtractionResult":
        return cls(success=False, user_message=user_message)


class UploadOutcome(BaseModel):
    certificate_id: UUID
    processing_status: ProcessingStatus
    coverage_count: int = 0
    entity_count: int = 0
    insured_name: Optional[str] = None
