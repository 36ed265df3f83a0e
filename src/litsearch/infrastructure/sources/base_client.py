"""
Base API Client - JSON GET requests with rate limiting, retry and a circuit breaker.

Shared by the Europe PMC search client and the NCBI ID converter:
- minimum interval between requests
- 429 responses retried, honouring Retry-After
- transport errors retried with exponential backoff
- every failure raised as a typed LitSearchError, so the search aggregator
  can record which search failed and why
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import httpx
from typing_extensions import Self

from litsearch.shared.async_utils import CircuitBreaker
from litsearch.shared.exceptions import (
    APIError,
    ErrorContext,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
    get_retry_delay,
)

logger = logging.getLogger(__name__)


class BaseAPIClient:
    """
    Base class for the httpx based collaborators.

    Subclasses set ``_service_name`` and call ``_make_request``.

    Example:
        class IdConverterClient(BaseAPIClient):
            _service_name = "NCBI ID Converter"

            async def convert(self, ids):
                return await self._make_request("", params={"ids": ",".join(ids), "format": "json"})
    """

    _service_name: str = "API"
    _max_retries: int = 3

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 30.0,
        min_interval: float = 0.1,
        headers: dict[str, str] | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Args:
            base_url: Prefix for relative request paths
            timeout: Request timeout in seconds
            min_interval: Minimum seconds between two requests
            headers: Default headers
            circuit_breaker: Breaker to use (default: opens after 10 failures for 60s)
            client: Preconfigured httpx client (e.g. with a mock transport)
        """
        self._base_url = base_url.rstrip("/")
        self._min_interval = min_interval
        self._last_request = 0.0
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers=headers or {},
            follow_redirects=True,
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
        )
        self._breaker = circuit_breaker or CircuitBreaker(
            name=self._service_name,
            failure_threshold=10,
            recovery_timeout=60.0,
        )

    async def _throttle(self) -> None:
        wait = self._min_interval - (time.monotonic() - self._last_request)
        if wait > 0:
            await asyncio.sleep(wait)
        self._last_request = time.monotonic()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}{path}"

    def _context(self, url: str) -> ErrorContext:
        return ErrorContext(source=self._service_name, operation="request", input_value=url)

    def _check_status(self, response: httpx.Response, url: str) -> None:
        """Raise the typed error for a non-2xx, non-429 response."""
        status = response.status_code
        if status >= 500:
            raise ServiceUnavailableError(
                f"HTTP {status} {response.reason_phrase}",
                service=self._service_name,
                context=self._context(url),
            )
        if status >= 400:
            raise APIError(
                f"{self._service_name} HTTP error {status}: {response.reason_phrase}",
                context=self._context(url),
                retryable=False,
            )

    @staticmethod
    def _retry_after(response: httpx.Response, attempt: int) -> float:
        try:
            return float(response.headers["Retry-After"])
        except (KeyError, ValueError):
            return get_retry_delay(RateLimitError(), attempt)

    async def _make_request(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        """
        GET ``path`` and return the decoded JSON body.

        Raises:
            RateLimitError: Still rate limited after retries, or circuit open
            ServiceUnavailableError: 5xx response
            APIError: Other 4xx response
            NetworkError: Transport failure after retries
            ParseError: Body is not valid JSON
        """
        url = self._url(path)

        for attempt in range(self._max_retries + 1):
            last_attempt = attempt == self._max_retries
            await self._throttle()
            try:
                async with self._breaker:
                    response = await self._client.get(url, params=params)
                    if response.status_code != 429:
                        self._check_status(response, url)
                        return self._decode(response)
                    if last_attempt:
                        raise RateLimitError(
                            f"{self._service_name}: rate limit exceeded after retries",
                            context=self._context(url),
                        )
            except httpx.RequestError as e:
                if last_attempt:
                    raise NetworkError(f"{self._service_name} request failed: {e}", context=self._context(url)) from e
                delay = get_retry_delay(e, attempt)
                logger.warning(f"{self._service_name} request error (attempt {attempt + 1}): {e}")
            else:
                delay = self._retry_after(response, attempt)
                logger.warning(
                    f"{self._service_name}: rate limited (429), retry {attempt + 1}/{self._max_retries} in {delay:.1f}s"
                )
            await asyncio.sleep(delay)

        raise RateLimitError(f"{self._service_name}: rate limit exceeded", context=self._context(url))

    def _decode(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ParseError(str(e), source=self._service_name) from e

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
