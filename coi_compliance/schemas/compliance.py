"""Domain contracts consumed and produced by the compliance engine.

These models are detached from the ORM: the comparator and the status
projector only ever see these, never database rows or raw AI output.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from coi_compliance.schemas.enums import (
    ComplianceResultStatus,
    ComplianceStatus,
    CoverageType,
    EntityMatchStatus,
    LimitType,
    NamedEntityType,
    PartyType,
)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, from_attributes=True)


class RequirementData(_Frozen):
    """One coverage requirement row of a template."""

    id: UUID
    coverage_type: CoverageType
    limit_type: Optional[LimitType] = None
    minimum_limit: Optional[int] = Field(default=None, ge=0)
    is_required: bool = True
    requires_additional_insured: bool = False
    requires_waiver_of_subrogation: bool = False


class ExtractedCoverageData(_Frozen):
    """One coverage line read from a certificate."""

    id: Optional[UUID] = None
    coverage_type: CoverageType
    limit_type: Optional[LimitType] = None
    limit_amount: Optional[int] = None
    carrier_name: Optional[str] = None
    policy_number: Optional[str] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    additional_insured_listed: bool = False
    additional_insured_entities: list[str] = Field(default_factory=list)
    waiver_of_subrogation: bool = False
    confidence_flag: bool = True
    raw_extracted_text: Optional[str] = None


class ExtractedEntityData(_Frozen):
    """A named party (holder or additional insured) read from a certificate."""

    id: Optional[UUID] = None
    entity_name: str
    entity_address: Optional[str] = None
    entity_type: NamedEntityType
    confidence_flag: bool = True


class PropertyEntityData(_Frozen):
    """A party that a property requires to appear on certificates."""

    id: UUID
    entity_name: str
    entity_address: Optional[str] = None
    entity_type: NamedEntityType


class ComplianceResultData(_Frozen):
    certificate_id: UUID
    coverage_requirement_id: UUID
    extracted_coverage_id: Optional[UUID] = None
    status: ComplianceResultStatus
    gap_description: Optional[str] = None


class EntityResultData(_Frozen):
    property_entity_id: UUID
    extracted_entity_id: Optional[UUID] = None
    status: EntityMatchStatus
    match_details: Optional[str] = None


class ComplianceOutcome(_Frozen):
    """Gap analysis for one certificate against one requirement set."""

    certificate_id: UUID
    results: list[ComplianceResultData] = Field(default_factory=list)
    all_required_met: bool
    entity_results: list[EntityResultData] = Field(default_factory=list)


class EntityRef(_Frozen):
    party_type: PartyType
    party_id: UUID


class StatusChange(_Frozen):
    """Before/after status of one entity touched by a recalculation or sweep."""

    party_type: PartyType
    party_id: UUID
    certificate_id: Optional[UUID] = None
    previous_status: Optional[ComplianceStatus] = None
    new_status: ComplianceStatus

    @property
    def changed(self) -> bool:
        return self.previous_status != self.new_status


class RecalculationSummary(BaseModel):
    """Result of a cascading recalculation over every entity bound to a template."""

    template_id: UUID
    entity_count: int = 0
    processed: int = 0
    pending: int = 0
    status_changes: list[StatusChange] = Field(default_factory=list)
    failed_entities: list[EntityRef] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failed_entities


class SweepSummary(BaseModel):
    """Result of an expiration sweep."""

    examined: int = 0
    status_changes: list[StatusChange] = Field(default_factory=list)


class ActivityEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    action: str
    description: str
    certificate_id: Optional[UUID] = None
    vendor_id: Optional[UUID] = None
    tenant_id: Optional[UUID] = None
    details: Optional[dict] = None
    performed_by: Optional[UUID] = None
    created_at: datetime
