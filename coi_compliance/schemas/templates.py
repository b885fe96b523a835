"""Request/response schemas for the requirement template boundary."""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from coi_compliance.schemas.compliance import RecalculationSummary
from coi_compliance.schemas.enums import CoverageType, LimitType, RiskLevel, TemplateCategory


class CoverageRequirementInput(BaseModel):
    coverage_type: CoverageType
    limit_type: Optional[LimitType] = None
    minimum_limit: Optional[int] = Field(default=None, ge=0)
    is_required: bool = True
    requires_additional_insured: bool = False
    requires_waiver_of_subrogation: bool = False


class _RequirementSet(BaseModel):
    requirements: list[CoverageRequirementInput] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_natural_key(self):
        """(coverage_type, limit_type) may appear only once per template."""
        seen = set()
        for requirement in self.requirements:
            key = (requirement.coverage_type, requirement.limit_type)
            if key in seen:
                limit = requirement.limit_type.value if requirement.limit_type else "no limit type"
                raise ValueError(
                    f"Duplicate requirement for {requirement.coverage_type.value} ({limit})"
                )
            seen.add(key)
        return self


class CreateTemplateInput(_RequirementSet):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: TemplateCategory = TemplateCategory.VENDOR
    risk_level: RiskLevel = RiskLevel.STANDARD


class UpdateTemplateInput(_RequirementSet):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    risk_level: RiskLevel = RiskLevel.STANDARD


class TemplateUsage(BaseModel):
    vendors: int = 0
    tenants: int = 0
    total_entities: int = 0
    properties: int = 0


class TemplateUpdateOutcome(BaseModel):
    template_id: UUID
    requirement_count: int
    recalculation: Optional[RecalculationSummary] = None
    recalculation_error: Optional[str] = None


class RequirementView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    coverage_type: CoverageType
    limit_type: Optional[LimitType] = None
    minimum_limit: Optional[int] = None
    is_required: bool
    requires_additional_insured: bool
    requires_waiver_of_subrogation: bool


class TemplateView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    organization_id: Optional[UUID] = None
    name: str
    description: Optional[str] = None
    category: TemplateCategory
    risk_level: RiskLevel
    is_system_default: bool
    requirements: list[RequirementView] = Field(default_factory=list)
