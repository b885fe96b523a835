from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coi_compliance.schemas.compliance import StatusChange
from coi_compliance.schemas.enums import (
    ComplianceResultStatus,
    EntityMatchStatus,
    ProcessingStatus,
)


class StoredResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    coverage_requirement_id: UUID
    extracted_coverage_id: Optional[UUID] = None
    status: ComplianceResultStatus
    gap_description: Optional[str] = None


class StoredEntityResult(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    property_entity_id: UUID
    extracted_entity_id: Optional[UUID] = None
    status: EntityMatchStatus
    match_details: Optional[str] = None


class CertificateComplianceView(BaseModel):
    certificate_id: UUID
    processing_status: ProcessingStatus
    all_required_met: Optional[bool] = None
    results_version: int = 0
    reviewed_at: Optional[datetime] = None
    results: list[StoredResult] = Field(default_factory=list)
    entity_results: list[StoredEntityResult] = Field(default_factory=list)


class ConfirmationOutcome(BaseModel):
    certificate_id: UUID
    processing_status: ProcessingStatus
    status_change: StatusChange
