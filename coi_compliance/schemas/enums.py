"""Enumerations shared by the database models and domain schemas."""

from enum import Enum


class CoverageType(str, Enum):
    GENERAL_LIABILITY = "general_liability"
    AUTOMOBILE_LIABILITY = "automobile_liability"
    WORKERS_COMPENSATION = "workers_compensation"
    EMPLOYERS_LIABILITY = "employers_liability"
    UMBRELLA_EXCESS_LIABILITY = "umbrella_excess_liability"
    PROFESSIONAL_LIABILITY_EO = "professional_liability_eo"
    PROPERTY_INLAND_MARINE = "property_inland_marine"
    POLLUTION_LIABILITY = "pollution_liability"
    LIQUOR_LIABILITY = "liquor_liability"
    CYBER_LIABILITY = "cyber_liability"


class LimitType(str, Enum):
    PER_OCCURRENCE = "per_occurrence"
    AGGREGATE = "aggregate"
    COMBINED_SINGLE_LIMIT = "combined_single_limit"
    STATUTORY = "statutory"
    PER_PERSON = "per_person"
    PER_ACCIDENT = "per_accident"


class ComplianceStatus(str, Enum):
    """Cached, derived status of a vendor or tenant."""

    PENDING = "pending"
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"


class ComplianceResultStatus(str, Enum):
    """Outcome of one requirement against one certificate."""

    MET = "met"
    NOT_MET = "not_met"
    MISSING = "missing"


class ProcessingStatus(str, Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    EXTRACTED = "extracted"
    REVIEW_CONFIRMED = "review_confirmed"
    FAILED = "failed"


class PartyType(str, Enum):
    """The two kinds of entity a certificate can belong to."""

    VENDOR = "vendor"
    TENANT = "tenant"


class NamedEntityType(str, Enum):
    CERTIFICATE_HOLDER = "certificate_holder"
    ADDITIONAL_INSURED = "additional_insured"


class EntityMatchStatus(str, Enum):
    FOUND = "found"
    MISSING = "missing"


class TemplateCategory(str, Enum):
    VENDOR = "vendor"
    TENANT = "tenant"


class RiskLevel(str, Enum):
    STANDARD = "standard"
    HIGH = "high"
    CUSTOM = "custom"


class PlanTier(str, Enum):
    TRIAL = "trial"
    STARTER = "starter"
    PROFESSIONAL = "professional"
    CANCELED = "canceled"


class ActivityAction(str, Enum):
    TEMPLATE_UPDATED = "template_updated"
    COI_PROCESSED = "coi_processed"
    COI_REVIEW_CONFIRMED = "coi_review_confirmed"
    COMPLIANCE_CHECKED = "compliance_checked"
