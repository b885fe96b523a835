import asyncio
from typing import Any, Dict, Optional

import httpx
from httpx import HTTPStatusError, TimeoutException

from coi_compliance.core.exceptions import APIClientError, APITimeoutError
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class BaseLLMClient:
    """Base client for LLM API interactions.

    Handles HTTP requests, retries with exponential backoff, timeouts and
    error logging. Subclasses supply provider-specific auth headers.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        timeout: int = 60,
        max_retries: int = 3,
        retry_delay: int = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the LLM client.

        Args:
            api_key: API key for authentication
            base_url: Endpoint URL
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts
            retry_delay: Base delay for exponential backoff
            transport: Optional httpx transport (e.g. ``httpx.MockTransport``)
        """
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.transport = transport
        self.logger = LOGGER

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    async def call_api(
        self,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """POST ``payload`` with retry logic.

        Returns:
            Parsed JSON response

        Raises:
            APIClientError: If the API call fails after retries or with a 4xx
            APITimeoutError: If every attempt timed out
        """
        request_headers = {"Content-Type": "application/json", **self.auth_headers()}
        if headers:
            request_headers.update(headers)

        self.logger.debug(
            f"Calling LLM API: {self.base_url}",
            extra={"timeout": self.timeout, "max_retries": self.max_retries},
        )

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(self.base_url, headers=request_headers, json=payload)
                    response.raise_for_status()
                    return response.json()
                except HTTPStatusError as e:
                    await self._handle_http_error(e, attempt)
                except TimeoutException as e:
                    await self._handle_timeout_error(e, attempt)
                except httpx.HTTPError as e:
                    await self._handle_transport_error(e, attempt)

        raise APIClientError(f"Failed to call API after {self.max_retries} attempts")

    async def _handle_http_error(self, error: HTTPStatusError, attempt: int) -> None:
        status_code = error.response.status_code
        error_body = error.response.text

        self.logger.warning(
            f"API HTTP error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"status_code": status_code, "error_body": error_body[:500]},
        )

        # Don't retry on client errors (4xx) unless it's rate limiting (429)
        if 400 <= status_code < 500 and status_code != 429:
            raise APIClientError(f"API Client Error {status_code}", original_error=error) from error

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(
                f"API HTTP Error {status_code} after retries", original_error=error
            ) from error

    async def _handle_timeout_error(self, error: TimeoutException, attempt: int) -> None:
        self.logger.warning(f"API Timeout (Attempt {attempt + 1}/{self.max_retries})")

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APITimeoutError(
                f"API Timeout after {self.max_retries} attempts", original_error=error
            ) from error

    async def _handle_transport_error(self, error: httpx.HTTPError, attempt: int) -> None:
        self.logger.warning(
            f"API transport error (Attempt {attempt + 1}/{self.max_retries})",
            extra={"error": str(error)},
        )

        if attempt < self.max_retries - 1:
            await self._wait_before_retry(attempt)
        else:
            raise APIClientError(f"API Error: {str(error)}", original_error=error) from error

    async def _wait_before_retry(self, attempt: int) -> None:
        """Exponential backoff wait."""
        await asyncio.sleep(self.retry_delay * (2 ** attempt))
