from datetime import date, timedelta

import pytest

from coi_compliance.core.config import settings
from coi_compliance.schemas.enums import ComplianceStatus
from coi_compliance.services.compliance.status_projector import (
    WARNING_THRESHOLD_SETTING,
    project_status,
    warning_days_for,
)

TODAY = date(2025, 3, 1)


def project(all_required_met=True, dates=(), confirmed=True, warning_days=30):
    return project_status(
        has_confirmed_certificate=confirmed,
        all_required_met=all_required_met,
        expiration_dates=list(dates),
        today=TODAY,
        warning_days=warning_days,
    )


def test_pending_without_confirmed_certificate():
    assert project(confirmed=False, dates=[TODAY - timedelta(days=10)]) == ComplianceStatus.PENDING


def test_expired_dominates_met_verdict():
    assert project(dates=[TODAY - timedelta(days=1)]) == ComplianceStatus.EXPIRED


def test_earliest_date_decides():
    dates = [TODAY + timedelta(days=400), TODAY - timedelta(days=3), None]
    assert project(dates=dates) == ComplianceStatus.EXPIRED


@pytest.mark.parametrize(
    "days_left, expected",
    [
        (0, ComplianceStatus.EXPIRING_SOON),
        (30, ComplianceStatus.EXPIRING_SOON),
        (31, ComplianceStatus.COMPLIANT),
    ],
)
def test_warning_window_is_inclusive(days_left, expected):
    assert project(dates=[TODAY + timedelta(days=days_left)]) == expected


def test_expiring_soon_dominates_failed_verdict():
    assert (
        project(all_required_met=False, dates=[TODAY + timedelta(days=5)])
        == ComplianceStatus.EXPIRING_SOON
    )


def test_verdict_when_no_dates_known():
    assert project(dates=[None, None]) == ComplianceStatus.COMPLIANT
    assert project(all_required_met=False) == ComplianceStatus.NON_COMPLIANT


def test_custom_warning_window():
    assert project(dates=[TODAY + timedelta(days=45)], warning_days=60) == ComplianceStatus.EXPIRING_SOON


def test_default_warning_window_comes_from_settings():
    status = project_status(
        has_confirmed_certificate=True,
        all_required_met=True,
        expiration_dates=[TODAY + timedelta(days=settings.compliance.expiration_warning_days)],
        today=TODAY,
    )
    assert status == ComplianceStatus.EXPIRING_SOON


class TestWarningDaysFor:
    def test_defaults(self):
        default = settings.compliance.expiration_warning_days
        assert warning_days_for(None) == default
        assert warning_days_for({}) == default

    def test_organization_override(self):
        assert warning_days_for({WARNING_THRESHOLD_SETTING: 14}) == 14
        assert warning_days_for({WARNING_THRESHOLD_SETTING: "10"}) == 10

    @pytest.mark.parametrize("value", ["soon", -1, None])
    def test_invalid_override_falls_back(self, value):
        assert (
            warning_days_for({WARNING_THRESHOLD_SETTING: value})
            == settings.compliance.expiration_warning_days
        )
