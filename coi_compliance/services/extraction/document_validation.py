import hashlib
from typing import Optional

from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import ValidationError

PDF_MAGIC_BYTES = b"%PDF"


def validate_pdf(content: bytes, max_bytes: Optional[int] = None) -> None:
    """Reject empty, oversized or non-PDF uploads.

    Raises:
        ValidationError: With a message suitable for the end user
    """
    max_bytes = max_bytes or settings.extraction.max_document_bytes
    if len(content) > max_bytes:
        size_mb = len(content) / (1024 * 1024)
        limit_mb = max_bytes / (1024 * 1024)
        raise ValidationError(
            f"File is too large ({size_mb:.1f}MB). Maximum allowed size is {limit_mb:g}MB."
        )
    if not content:
        raise ValidationError("File is empty.")
    if not content.startswith(PDF_MAGIC_BYTES):
        raise ValidationError(
            "This file does not appear to be a valid PDF. Please upload a PDF document."
        )


def compute_file_hash(content: bytes) -> str:
    """SHA-256 hex digest used for duplicate detection."""
    return hashlib.sha256(content).hexdigest()
