"""Coverage extraction gateway.

The engine only depends on the ``ExtractionGateway`` protocol; the default
implementation sends the PDF to the Anthropic Messages API.
"""

import base64
from typing import Optional, Protocol

import httpx

from coi_compliance.core.base_llm_client import BaseLLMClient
from coi_compliance.core.config import settings
from coi_compliance.core.exceptions import APIClientError, ConfigurationError
from coi_compliance.prompts.coi_extraction import (
    COI_EXTRACTION_PROMPT_VERSION,
    COI_EXTRACTION_SYSTEM_PROMPT,
    COI_EXTRACTION_USER_PROMPT,
)
from coi_compliance.schemas.extraction import ExtractionResult
from coi_compliance.services.extraction.mapper import map_extraction
from coi_compliance.utils.json_parser import parse_json_safely
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class ExtractionGateway(Protocol):
    async def extract(self, pdf_bytes: bytes) -> ExtractionResult:
        """Extract coverages and named entities from a certificate PDF.

        Implementations may raise on transport failure; the caller treats any
        exception like ``success=False``.
        """
        ...


class AnthropicExtractionClient(BaseLLMClient):
    """Messages API client authenticating with ``x-api-key``."""

    def __init__(self, api_version: str, **kwargs):
        super().__init__(**kwargs)
        self.api_version = api_version

    def auth_headers(self):
        return {"x-api-key": self.api_key, "anthropic-version": self.api_version}


class LLMExtractionGateway:
    """Extraction gateway backed by a document-capable LLM."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[BaseLLMClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        config = settings.extraction
        api_key = config.api_key if api_key is None else api_key
        if client is None and not api_key:
            raise ConfigurationError("ANTHROPIC_API_KEY is not configured")

        self.model = model or config.model
        self.max_output_tokens = config.max_output_tokens
        self.client = client or AnthropicExtractionClient(
            api_version=config.api_version,
            api_key=api_key,
            base_url=config.api_url,
            timeout=config.timeout_seconds,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            transport=transport,
        )

    def build_payload(self, pdf_bytes: bytes) -> dict:
        return {
            "model": self.model,
            "max_tokens": self.max_output_tokens,
            "system": COI_EXTRACTION_SYSTEM_PROMPT,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "document",
                            "source": {
                                "type": "base64",
                                "media_type": "application/pdf",
                                "data": base64.b64encode(pdf_bytes).decode("ascii"),
                            },
                        },
                        {"type": "text", "text": COI_EXTRACTION_USER_PROMPT},
                    ],
                }
            ],
        }

    async def extract(self, pdf_bytes: bytes) -> ExtractionResult:
        try:
            response = await self.client.call_api(self.build_payload(pdf_bytes))
        except APIClientError as e:
            LOGGER.error("Extraction API call failed", exc_info=True, extra={"error": str(e)})
            return ExtractionResult.failure()

        text = "".join(
            block.get("text", "")
            for block in response.get("content") or []
            if isinstance(block, dict) and block.get("type") == "text"
        )
        result = map_extraction(parse_json_safely(text))
        LOGGER.info(
            "Extraction completed",
            extra={
                "success": result.success,
                "coverage_count": len(result.coverages),
                "entity_count": len(result.entities),
                "model": self.model,
                "prompt_version": COI_EXTRACTION_PROMPT_VERSION,
            },
        )
        return result
