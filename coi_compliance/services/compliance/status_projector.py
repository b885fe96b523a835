"""Entity status precedence.

Expiration dominates the comparator verdict: an expired or soon-to-expire
certificate reports that state even when every requirement is met.
"""

from datetime import date
from typing import Any, Iterable, Mapping, Optional

from coi_compliance.core.config import settings
from coi_compliance.schemas.enums import ComplianceStatus

WARNING_THRESHOLD_SETTING = "expiration_warning_threshold_days"


def project_status(
    has_confirmed_certificate: bool,
    all_required_met: bool,
    expiration_dates: Iterable[Optional[date]],
    today: date,
    warning_days: Optional[int] = None,
) -> ComplianceStatus:
    """Derive an entity's compliance status.

    Args:
        has_confirmed_certificate: Whether the entity has a review-confirmed certificate
        all_required_met: Comparator verdict for that certificate
        expiration_dates: Expiration dates of its coverages; ``None`` entries are ignored
        today: Reference date
        warning_days: Window for ``expiring_soon``; defaults to the configured window

    Returns:
        ComplianceStatus: The projected status
    """
    if not has_confirmed_certificate:
        return ComplianceStatus.PENDING

    if warning_days is None:
        warning_days = settings.compliance.expiration_warning_days

    known_dates = [d for d in expiration_dates if d is not None]
    if known_dates:
        earliest = min(known_dates)
        if earliest < today:
            return ComplianceStatus.EXPIRED
        if (earliest - today).days <= warning_days:
            return ComplianceStatus.EXPIRING_SOON

    return ComplianceStatus.COMPLIANT if all_required_met else ComplianceStatus.NON_COMPLIANT


def warning_days_for(org_settings: Optional[Mapping[str, Any]]) -> int:
    """Organization override of the warning window, else the configured default."""
    default = settings.compliance.expiration_warning_days
    if not org_settings:
        return default
    value = org_settings.get(WARNING_THRESHOLD_SETTING)
    try:
        days = int(value)
    except (TypeError, ValueError):
        return default
    return days if days >= 0 else default
