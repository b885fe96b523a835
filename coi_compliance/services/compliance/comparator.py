"""Gap analysis of extracted coverages against a requirement set.

Pure and synchronous: no I/O, no clock, no logging. The same inputs always
produce the same outcome.
"""

from typing import Iterable, Optional, Sequence
from uuid import UUID

from coi_compliance.schemas.compliance import (
    ComplianceOutcome,
    ComplianceResultData,
    ExtractedCoverageData,
    RequirementData,
)
from coi_compliance.schemas.enums import ComplianceResultStatus, LimitType

ADDITIONAL_INSURED_GAP = "Additional Insured not listed"
WAIVER_GAP = "Waiver of Subrogation not found"


def format_amount(amount: Optional[int]) -> str:
    """Render a dollar amount with thousands separators; ``None`` renders as $0."""
    return f"${amount or 0:,}"


def find_candidate(
    requirement: RequirementData, extracted: Sequence[ExtractedCoverageData]
) -> Optional[ExtractedCoverageData]:
    """Return the first coverage matching both coverage type and limit type."""
    for coverage in extracted:
        if (
            coverage.coverage_type == requirement.coverage_type
            and coverage.limit_type == requirement.limit_type
        ):
            return coverage
    return None


def limit_satisfied(requirement: RequirementData, coverage: ExtractedCoverageData) -> bool:
    if requirement.limit_type == LimitType.STATUTORY or requirement.minimum_limit is None:
        return True
    return coverage.limit_amount is not None and coverage.limit_amount >= requirement.minimum_limit


def gap_messages(requirement: RequirementData, coverage: ExtractedCoverageData) -> list[str]:
    """Failed sub-checks in the order limit, additional insured, waiver."""
    messages = []
    if not limit_satisfied(requirement, coverage):
        messages.append(
            f"Limit is {format_amount(coverage.limit_amount)} "
            f"but requirement is {format_amount(requirement.minimum_limit)}"
        )
    if requirement.requires_additional_insured and not coverage.additional_insured_listed:
        messages.append(ADDITIONAL_INSURED_GAP)
    if requirement.requires_waiver_of_subrogation and not coverage.waiver_of_subrogation:
        messages.append(WAIVER_GAP)
    return messages


def evaluate_requirement(
    certificate_id: UUID,
    requirement: RequirementData,
    extracted: Sequence[ExtractedCoverageData],
) -> ComplianceResultData:
    coverage = find_candidate(requirement, extracted)
    if coverage is None:
        return ComplianceResultData(
            certificate_id=certificate_id,
            coverage_requirement_id=requirement.id,
            status=ComplianceResultStatus.MISSING,
        )

    messages = gap_messages(requirement, coverage)
    return ComplianceResultData(
        certificate_id=certificate_id,
        coverage_requirement_id=requirement.id,
        extracted_coverage_id=coverage.id,
        status=ComplianceResultStatus.NOT_MET if messages else ComplianceResultStatus.MET,
        gap_description="; ".join(messages) if messages else None,
    )


def compare(
    certificate_id: UUID,
    requirements: Iterable[RequirementData],
    extracted: Iterable[ExtractedCoverageData],
) -> ComplianceOutcome:
    """Evaluate every requirement against the extracted coverages.

    ``extracted`` must be in extraction order: when several coverages share
    a coverage type and limit type, the first one is evaluated.

    ``all_required_met`` is true iff every required requirement is met;
    optional requirements are reported but never change the verdict.
    An empty requirement set is vacuously met.
    """
    requirements = list(requirements)
    extracted = list(extracted)

    results = [
        evaluate_requirement(certificate_id, requirement, extracted)
        for requirement in requirements
    ]
    all_required_met = all(
        result.status == ComplianceResultStatus.MET
        for requirement, result in zip(requirements, results)
        if requirement.is_required
    )
    return ComplianceOutcome(
        certificate_id=certificate_id,
        results=results,
        all_required_met=all_required_met,
    )
