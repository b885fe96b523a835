"""Tests for API endpoints."""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from coi_compliance.api.v1.endpoints import health
from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import (
    AppError,
    AuthorizationError,
    CascadeInUseError,
    ConfigurationError,
    DuplicateDocumentError,
    ExtractionFailure,
    NotFoundError,
    RateLimitExceededError,
)
from coi_compliance.dependencies import (
    get_activity_emitter,
    get_certificate_service,
    get_extraction_service,
    get_party_service,
    get_sweep_service,
    get_template_service,
)
from coi_compliance.main import app
from coi_compliance.schemas.certificates import ConfirmationOutcome
from coi_compliance.schemas.compliance import StatusChange, SweepSummary
from coi_compliance.schemas.enums import ComplianceStatus, PartyType, ProcessingStatus
from coi_compliance.schemas.extraction import UploadOutcome
from coi_compliance.schemas.templates import TemplateUsage
from coi_compliance.services.extraction.rate_limiter import ENTITY_HOURLY

ORG_ID = str(uuid4())


@pytest.fixture
def headers() -> dict:
    return {"X-Organization-Id": ORG_ID, "X-Actor-Id": str(uuid4())}


@pytest.fixture
def template_service() -> AsyncMock:
    service = AsyncMock()
    app.dependency_overrides[get_template_service] = lambda: service
    return service


@pytest.fixture
def extraction_service() -> AsyncMock:
    service = AsyncMock()
    app.dependency_overrides[get_extraction_service] = lambda: service
    return service


def upload(test_client: TestClient, headers: dict, content: bytes):
    return test_client.post(
        "/api/v1/certificates/",
        headers=headers,
        data={"party_type": "vendor", "party_id": str(uuid4())},
        files={"file": ("coi.pdf", content, "application/pdf")},
    )


class TestRequestContext:
    """Organization scoping from request headers."""

    def test_missing_organization_header(self, test_client: TestClient, template_service) -> None:
        response = test_client.get("/api/v1/templates/")

        assert response.status_code == 400
        assert response.json()["detail"] == "X-Organization-Id header is required"
        template_service.list_templates.assert_not_awaited()

    def test_malformed_organization_header(self, test_client: TestClient, template_service) -> None:
        response = test_client.get(
            "/api/v1/templates/", headers={"X-Organization-Id": "acme"}
        )

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_request_id_is_echoed(self, test_client: TestClient, headers, template_service) -> None:
        template_service.list_templates.return_value = []

        response = test_client.get(
            "/api/v1/templates/", headers={**headers, "X-Request-ID": "req-42"}
        )

        assert response.headers["X-Request-ID"] == "req-42"
        assert response.json()["meta"]["request_id"] == "req-42"


class TestTemplateEndpoints:
    """Template CRUD over HTTP."""

    def test_list_wraps_items(self, test_client: TestClient, headers, template_service) -> None:
        template_service.list_templates.return_value = []

        response = test_client.get("/api/v1/templates/", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] is True
        assert body["data"] == {"items": []}
        assert str(template_service.list_templates.await_args.args[0]) == ORG_ID

    def test_duplicate_requirements_rejected(
        self, test_client: TestClient, headers, template_service
    ) -> None:
        requirement = {
            "coverage_type": "general_liability",
            "limit_type": "per_occurrence",
            "minimum_limit": 1000000,
        }

        response = test_client.post(
            "/api/v1/templates/",
            headers=headers,
            json={"name": "Roofers", "requirements": [requirement, requirement]},
        )

        assert response.status_code == 400
        assert "Duplicate requirement for general_liability" in response.json()["detail"]
        template_service.create_template.assert_not_awaited()

    def test_system_default_is_forbidden(
        self, test_client: TestClient, headers, template_service
    ) -> None:
        template_service.delete_template.side_effect = AuthorizationError(
            "System default templates cannot be deleted"
        )

        response = test_client.delete(f"/api/v1/templates/{uuid4()}", headers=headers)

        assert response.status_code == 403
        assert response.json()["code"] == "forbidden"

    def test_template_in_use(self, test_client: TestClient, headers, template_service) -> None:
        template_service.delete_template.side_effect = CascadeInUseError(3)

        response = test_client.delete(f"/api/v1/templates/{uuid4()}", headers=headers)

        assert response.status_code == 409
        body = response.json()
        assert body["code"] == "template_in_use"
        assert body["details"] == {"entity_count": 3}

    def test_missing_template(self, test_client: TestClient, headers, template_service) -> None:
        template_service.get_template.side_effect = NotFoundError("Template")

        response = test_client.get(f"/api/v1/templates/{uuid4()}", headers=headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Template not found"

    def test_usage(self, test_client: TestClient, headers, template_service) -> None:
        template_service.get_template_usage.return_value = TemplateUsage(
            vendors=2, tenants=1, total_entities=3, properties=2
        )

        response = test_client.get(f"/api/v1/templates/{uuid4()}/usage", headers=headers)

        assert response.status_code == 200
        assert response.json()["data"]["total_entities"] == 3


class TestCertificateEndpoints:
    """Upload and review confirmation."""

    def test_upload_success(
        self, test_client: TestClient, headers, extraction_service, sample_pdf_content
    ) -> None:
        certificate_id = uuid4()
        extraction_service.upload_certificate.return_value = UploadOutcome(
            certificate_id=certificate_id,
            processing_status=ProcessingStatus.EXTRACTED,
            coverage_count=4,
            entity_count=1,
        )

        response = upload(test_client, headers, sample_pdf_content)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["certificate_id"] == str(certificate_id)
        assert data["processing_status"] == "extracted"
        args = extraction_service.upload_certificate.await_args.args
        assert args[2] == PartyType.VENDOR
        assert args[4] == "coi.pdf"
        assert args[5] == sample_pdf_content

    def test_oversized_upload_is_rejected_before_service(
        self, test_client: TestClient, headers, extraction_service, monkeypatch
    ) -> None:
        monkeypatch.setattr(settings.extraction, "max_document_bytes", 16)

        response = upload(test_client, headers, b"%PDF-1.4" + b"0" * 64)

        assert response.status_code == 400
        assert "File is too large" in response.json()["detail"]
        extraction_service.upload_certificate.assert_not_awaited()

    def test_upload_at_size_limit_is_accepted(
        self, test_client: TestClient, headers, extraction_service, monkeypatch
    ) -> None:
        monkeypatch.setattr(settings.extraction, "max_document_bytes", 16)
        content = b"%PDF-1.4" + b"0" * 8
        extraction_service.upload_certificate.return_value = UploadOutcome(
            certificate_id=uuid4(), processing_status=ProcessingStatus.EXTRACTED
        )

        response = upload(test_client, headers, content)

        assert response.status_code == 201
        assert extraction_service.upload_certificate.await_args.args[5] == content

    def test_rate_limited(
        self, test_client: TestClient, headers, extraction_service, sample_pdf_content
    ) -> None:
        extraction_service.upload_certificate.side_effect = RateLimitExceededError(
            ENTITY_HOURLY, 10, "Too many uploads. Please try again later."
        )

        response = upload(test_client, headers, sample_pdf_content)

        assert response.status_code == 429
        body = response.json()
        assert body["detail"] == "Too many uploads. Please try again later."
        assert body["details"] == {"scope": ENTITY_HOURLY, "limit": 10}

    def test_extraction_failure(
        self, test_client: TestClient, headers, extraction_service, sample_pdf_content
    ) -> None:
        certificate_id = uuid4()
        extraction_service.upload_certificate.side_effect = ExtractionFailure(
            "This does not look like a COI.", certificate_id=certificate_id
        )

        response = upload(test_client, headers, sample_pdf_content)

        assert response.status_code == 422
        body = response.json()
        assert body["detail"] == "This does not look like a COI."
        assert body["details"] == {"certificate_id": str(certificate_id)}

    def test_duplicate_upload(
        self, test_client: TestClient, headers, extraction_service, sample_pdf_content
    ) -> None:
        extraction_service.upload_certificate.side_effect = DuplicateDocumentError(
            "This file has already been uploaded for this vendor."
        )

        response = upload(test_client, headers, sample_pdf_content)

        assert response.status_code == 409
        assert response.json()["code"] == "duplicate_document"

    def test_missing_extraction_key(
        self, test_client: TestClient, headers, sample_pdf_content
    ) -> None:
        def unavailable():
            raise ConfigurationError("ANTHROPIC_API_KEY is not configured")

        app.dependency_overrides[get_extraction_service] = unavailable

        response = upload(test_client, headers, sample_pdf_content)

        assert response.status_code == 503
        assert response.json()["detail"] == "ANTHROPIC_API_KEY is not configured"

    def test_confirm(self, test_client: TestClient, headers) -> None:
        certificate_id = uuid4()
        service = AsyncMock()
        service.confirm_certificate.return_value = ConfirmationOutcome(
            certificate_id=certificate_id,
            processing_status=ProcessingStatus.REVIEW_CONFIRMED,
            status_change=StatusChange(
                party_type=PartyType.VENDOR,
                party_id=uuid4(),
                certificate_id=certificate_id,
                previous_status=ComplianceStatus.PENDING,
                new_status=ComplianceStatus.COMPLIANT,
            ),
        )
        app.dependency_overrides[get_certificate_service] = lambda: service

        response = test_client.post(
            f"/api/v1/certificates/{certificate_id}/confirm", headers=headers
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["processing_status"] == "review_confirmed"
        assert data["status_change"]["new_status"] == "compliant"

    def test_unexpected_error_is_generic(self, test_client: TestClient, headers) -> None:
        service = AsyncMock()
        service.get_certificate_compliance.side_effect = AppError(
            "Service execution failed: connection reset by peer"
        )
        app.dependency_overrides[get_certificate_service] = lambda: service

        response = test_client.get(
            f"/api/v1/certificates/{uuid4()}/compliance", headers=headers
        )

        assert response.status_code == 500
        assert response.json()["detail"] == "An unexpected error occurred."


class TestPartyAndComplianceEndpoints:
    def test_assign_template(self, test_client: TestClient, headers) -> None:
        party_id = uuid4()
        template_id = uuid4()
        service = AsyncMock()
        service.assign_template.return_value = StatusChange(
            party_type=PartyType.TENANT,
            party_id=party_id,
            previous_status=ComplianceStatus.PENDING,
            new_status=ComplianceStatus.PENDING,
        )
        app.dependency_overrides[get_party_service] = lambda: service

        response = test_client.put(
            f"/api/v1/parties/tenant/{party_id}/template",
            headers=headers,
            json={"template_id": str(template_id)},
        )

        assert response.status_code == 200
        args = service.assign_template.await_args.args
        assert args[2] == PartyType.TENANT
        assert args[4] == template_id

    def test_unknown_party_type(self, test_client: TestClient, headers) -> None:
        app.dependency_overrides[get_party_service] = lambda: AsyncMock()

        response = test_client.put(
            f"/api/v1/parties/landlord/{uuid4()}/template", headers=headers, json={}
        )

        assert response.status_code == 400

    def test_sweep_passes_reference_date(self, test_client: TestClient, headers) -> None:
        service = AsyncMock()
        service.run.return_value = SweepSummary(examined=4)
        app.dependency_overrides[get_sweep_service] = lambda: service

        response = test_client.post(
            "/api/v1/compliance/sweep", headers=headers, params={"today": "2025-03-01"}
        )

        assert response.status_code == 200
        assert response.json()["message"] == "0 status changes applied"
        assert str(service.run.await_args.kwargs["today"]) == "2025-03-01"


    def test_activity_feed(self, test_client: TestClient, headers) -> None:
        emitter = AsyncMock()
        emitter.recent.return_value = []
        app.dependency_overrides[get_activity_emitter] = lambda: emitter

        response = test_client.get(
            "/api/v1/compliance/activity", headers=headers, params={"limit": 5}
        )

        assert response.status_code == 200
        assert response.json()["data"] == {"items": []}
        assert emitter.recent.await_args.kwargs["limit"] == 5

    def test_activity_limit_is_bounded(self, test_client: TestClient, headers) -> None:
        app.dependency_overrides[get_activity_emitter] = lambda: AsyncMock()

        response = test_client.get(
            "/api/v1/compliance/activity", headers=headers, params={"limit": 0}
        )

        assert response.status_code == 400

class TestHealthEndpoint:
    """Test suite for health check endpoint."""

    def test_health_check(self, test_client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(
            health.db_client, "health_check", AsyncMock(return_value={"status": "healthy"})
        )

        response = test_client.get("/health/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert "service" in data

    def test_degraded_database(self, test_client: TestClient, monkeypatch) -> None:
        monkeypatch.setattr(
            health.db_client,
            "health_check",
            AsyncMock(return_value={"status": "unhealthy", "error": "refused"}),
        )

        response = test_client.get("/health/")

        assert response.json()["status"] == "degraded"


class TestRootEndpoint:
    """Test suite for root endpoint."""

    def test_root_endpoint(self, test_client: TestClient) -> None:
        response = test_client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Server is running"
        assert "version" in data
        assert data["docs"] == "/docs"
        assert data["health"] == "/health"
