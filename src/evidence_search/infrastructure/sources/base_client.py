"""
Base API Client - Common HTTP request pattern with retry and rate limiting.

Every provider adapter (search sources and enrichment services) shares:
- Minimum spacing between consecutive requests to the same provider
- Per-provider request timeout
- The shared retry policy (pure exponential backoff, no retry on 4xx except 429)
- Translation of httpx failures into the Evidence Search error taxonomy
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
from typing_extensions import Self

from evidence_search.shared.async_utils import DEFAULT_INITIAL_DELAY, DEFAULT_MAX_ATTEMPTS, retry_with_backoff
from evidence_search.shared.exceptions import classify_http_error

logger = logging.getLogger(__name__)

DEFAULT_EMAIL = "evidence-search@example.com"
USER_AGENT = "evidence-search/1.0"


def normalize_doi(doi: str) -> str:
    """Normalize DOI string."""
    doi = doi.strip()
    # Remove URL prefixes
    for prefix in ["https://doi.org/", "http://doi.org/", "doi:"]:
        if doi.lower().startswith(prefix.lower()):
            doi = doi[len(prefix) :]
    return doi


class BaseAPIClient:
    """
    Base class for external API clients.

    Provides common infrastructure:
    - httpx.AsyncClient management
    - Rate limiting with configurable interval
    - Retry via the shared backoff policy
    - Consistent error classification

    Subclasses should set `_service_name` and can override:
    - `_execute_request()`: Add service-specific params (e.g. mailto)
    - `_handle_expected_status()`: Short-circuit statuses such as 404
    - `_parse_response()`: Custom response extraction

    Errors are raised as classified EvidenceSearchError instances; the
    public adapter methods decide whether to degrade to an empty result.

    Example:
        class MyClient(BaseAPIClient):
            _service_name = "MyAPI"

            def __init__(self):
                super().__init__(base_url="https://api.example.com", min_interval=0.1)

            async def get_item(self, item_id: str) -> dict | None:
                return await self._make_request(f"/items/{item_id}")
    """

    _service_name: str = "API"

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 15.0,
        min_interval: float = 0.1,
        headers: dict[str, str] | None = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
    ) -> None:
        """
        Initialize base client.

        Args:
            base_url: Base URL for the API (optional, can pass full URLs)
            timeout: Request timeout in seconds
            min_interval: Minimum seconds between requests (rate limiting)
            headers: Default headers for all requests
            max_attempts: Attempts per request under the retry policy
            initial_delay: Seconds before the first retry
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._min_interval = min_interval
        self._max_attempts = max_attempts
        self._initial_delay = initial_delay
        self._last_request_time = 0.0
        self._rate_lock = asyncio.Lock()
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            headers=headers or {},
            limits=httpx.Limits(
                max_connections=20,
                max_keepalive_connections=10,
                keepalive_expiry=30.0,
            ),
        )

    @property
    def service_name(self) -> str:
        return self._service_name

    async def _rate_limit(self) -> None:
        """Enforce minimum interval between requests."""
        async with self._rate_lock:
            elapsed = time.time() - self._last_request_time
            if elapsed < self._min_interval:
                await asyncio.sleep(self._min_interval - elapsed)
            self._last_request_time = time.time()

    def _build_url(self, url: str) -> str:
        """Build full URL from path or full URL."""
        if url.startswith(("http://", "https://")):
            return url
        return f"{self._base_url}{url}"

    async def _make_request(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        method: str = "GET",
        json_body: dict[str, Any] | None = None,
        expect_json: bool = True,
        max_attempts: int | None = None,
    ) -> Any:
        """
        Make an HTTP request under the shared retry policy.

        Args:
            url: Full URL or path (appended to base_url)
            params: Query parameters
            headers: Additional headers for this request
            method: HTTP method (GET or POST)
            json_body: JSON body for POST requests
            expect_json: If True, parse response as JSON; otherwise return text
            max_attempts: Override the client's attempt count for this call

        Returns:
            Parsed JSON, response text, or the value chosen by
            `_handle_expected_status` (e.g. None for 404)

        Raises:
            EvidenceSearchError: classified failure after retries
        """
        full_url = self._build_url(url)

        async def attempt() -> Any:
            await self._rate_limit()
            try:
                response = await self._execute_request(
                    full_url, method=method, params=params, headers=headers, json_body=json_body
                )

                expected = self._handle_expected_status(response, full_url)
                if expected is not _CONTINUE:
                    return expected

                response.raise_for_status()
                return self._parse_response(response, expect_json)
            except Exception as e:
                raise classify_http_error(e, self._service_name) from e

        return await retry_with_backoff(
            attempt,
            max_attempts=max_attempts or self._max_attempts,
            initial_delay=self._initial_delay,
        )

    async def _execute_request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Execute the actual HTTP request. Override for custom behavior."""
        if method == "POST":
            return await self._client.post(url, params=params, json=json_body, headers=headers or {})
        return await self._client.get(url, params=params, headers=headers or {})

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """
        Handle expected non-200 status codes that shouldn't trigger retry.

        Override in subclasses for service-specific behavior.
        Return a value to short-circuit (e.g., None for 404).
        Return the sentinel _CONTINUE to continue normal processing.
        """
        return _CONTINUE

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        """Parse response body. Override for custom extraction logic."""
        if expect_json:
            return response.json()
        return response.text

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()


# Sentinel object to indicate "continue normal processing" from _handle_expected_status
_CONTINUE = object()
