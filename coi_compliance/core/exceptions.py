"""Custom exception hierarchy."""

from typing import Any, Dict, Optional

GENERIC_EXTRACTION_MESSAGE = "We couldn't process this document. Please try again."


class AppError(Exception):
    """Base exception for application errors."""

    code = "internal_error"

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    @property
    def details(self) -> Dict[str, Any]:
        """Extra machine-readable fields surfaced to callers."""
        return {}


class APIClientError(AppError):
    """Raised when an external API call fails."""

    code = "api_client_error"


class APITimeoutError(APIClientError):
    """Raised when an external API call times out."""

    code = "api_timeout"


class DatabaseError(AppError):
    """Raised when a database operation fails."""

    code = "database_error"


class ConfigurationError(AppError):
    """Raised when configuration is invalid or missing."""

    code = "configuration_error"


class ValidationError(AppError):
    """Raised when input validation fails."""

    code = "validation_error"


class DuplicateDocumentError(ValidationError):
    """Raised when the same file was already uploaded for an entity."""

    code = "duplicate_document"


class NotFoundError(AppError):
    """Raised when a resource is missing or owned by another organization.

    The message never distinguishes the two cases.
    """

    code = "not_found"

    def __init__(self, resource: str):
        super().__init__(f"{resource} not found")
        self.resource = resource


class AuthorizationError(AppError):
    """Raised when a protected resource (e.g. a system default template) is mutated."""

    code = "forbidden"


class CascadeInUseError(AppError):
    """Raised when deleting a template that entities still reference."""

    code = "template_in_use"

    def __init__(self, entity_count: int):
        noun = "entity" if entity_count == 1 else "entities"
        super().__init__(
            f"This template is assigned to {entity_count} {noun}. "
            "Reassign them to another template before deleting."
        )
        self.entity_count = entity_count

    @property
    def details(self) -> Dict[str, Any]:
        return {"entity_count": self.entity_count}


class RateLimitExceededError(AppError):
    """Raised when an extraction quota is exhausted. Never retried automatically."""

    code = "rate_limited"

    def __init__(self, scope: str, limit: int, message: str):
        super().__init__(message)
        self.scope = scope
        self.limit = limit

    @property
    def details(self) -> Dict[str, Any]:
        return {"scope": self.scope, "limit": self.limit}


class ExtractionFailure(AppError):
    """Raised when the extraction gateway fails or times out.

    ``user_message`` is shown to the end user verbatim.
    """

    code = "extraction_failed"

    def __init__(
        self,
        user_message: Optional[str] = None,
        certificate_id: Optional[Any] = None,
        original_error: Optional[Exception] = None,
    ):
        message = user_message or GENERIC_EXTRACTION_MESSAGE
        super().__init__(message, original_error=original_error)
        self.user_message = message
        self.certificate_id = certificate_id

    @property
    def details(self) -> Dict[str, Any]:
        if self.certificate_id is None:
            return {}
        return {"certificate_id": str(self.certificate_id)}
