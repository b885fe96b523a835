"""SQLAlchemy models for all database tables."""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from coi_compliance.core.database import Base


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Organization(Base):
    """Tenant organization owning templates, properties and parties."""

    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    plan: Mapped[str] = mapped_column(String(32), nullable=False, default="trial")
    settings: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class RequirementTemplate(Base):
    """Named set of coverage requirements.

    ``organization_id`` is NULL for system defaults, which every
    organization can read and none can modify.
    """

    __tablename__ = "requirement_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="vendor")
    risk_level: Mapped[str] = mapped_column(String(32), nullable=False, default="standard")
    is_system_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class CoverageRequirement(Base):
    """One line of a template; ``(coverage_type, limit_type)`` is unique per template."""

    __tablename__ = "coverage_requirements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("requirement_templates.id", ondelete="CASCADE"), nullable=False
    )
    coverage_type: Mapped[str] = mapped_column(String(64), nullable=False)
    limit_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    minimum_limit: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    is_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    requires_additional_insured: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    requires_waiver_of_subrogation: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "template_id", "coverage_type", "limit_type", name="uq_requirement_natural_key"
        ),
        Index("ix_coverage_requirements_template", "template_id", "position"),
    )


class Property(Base):
    __tablename__ = "properties"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class PropertyEntity(Base):
    """A party a property requires on its certificates (holder or additional insured)."""

    __tablename__ = "property_entities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    property_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_name: Mapped[str] = mapped_column(String(300), nullable=False)
    entity_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)


class PartyColumns:
    """Columns shared by vendors and tenants."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    property_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("properties.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    template_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("requirement_templates.id", ondelete="SET NULL"), nullable=True, index=True
    )
    compliance_status: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )


class Vendor(PartyColumns, Base):
    __tablename__ = "vendors"


class Tenant(PartyColumns, Base):
    __tablename__ = "tenants"


class Certificate(Base):
    """An uploaded COI document owned by exactly one vendor or tenant.

    ``all_required_met`` caches the last comparator verdict and
    ``results_version`` increases on every result-set replacement.
    """

    __tablename__ = "certificates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vendor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("vendors.id", ondelete="CASCADE"), nullable=True, index=True
    )
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True
    )
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    processing_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="uploaded"
    )  # uploaded | processing | extracted | review_confirmed | failed
    insured_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    all_required_met: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    results_version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ExtractedCoverage(Base):
    """Immutable coverage line produced by one successful extraction."""

    __tablename__ = "extracted_coverages"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    certificate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("certificates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    coverage_type: Mapped[str] = mapped_column(String(64), nullable=False)
    limit_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    limit_amount: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    carrier_name: Mapped[str | None] = mapped_column(String(300), nullable=True)
    policy_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    additional_insured_listed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    additional_insured_entities: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    waiver_of_subrogation: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    confidence_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    raw_extracted_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ExtractedEntity(Base):
    __tablename__ = "extracted_entities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    certificate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("certificates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    entity_name: Mapped[str] = mapped_column(String(300), nullable=False)
    entity_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    confidence_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ComplianceResult(Base):
    """Outcome of one requirement against one certificate."""

    __tablename__ = "compliance_results"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    certificate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("certificates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    coverage_requirement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("coverage_requirements.id", ondelete="CASCADE"), nullable=False
    )
    extracted_coverage_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("extracted_coverages.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # met | not_met | missing
    gap_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        UniqueConstraint(
            "certificate_id", "coverage_requirement_id", name="uq_result_per_requirement"
        ),
    )


class EntityComplianceResult(Base):
    __tablename__ = "entity_compliance_results"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    certificate_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("certificates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    property_entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("property_entities.id", ondelete="CASCADE"), nullable=False
    )
    extracted_entity_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("extracted_entities.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False)  # found | missing
    match_details: Mapped[str | None] = mapped_column(Text, nullable=True)


class ActivityLog(Base):
    """Append-only audit record."""

    __tablename__ = "activity_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    certificate_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("certificates.id", ondelete="SET NULL"), nullable=True
    )
    vendor_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True
    )
    tenant_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("tenants.id", ondelete="SET NULL"), nullable=True
    )
    action: Mapped[str] = mapped_column(String(64), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    performed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
