"""
Entrez Base Module - Configuration and Rate Limiting

Provides the base class with Entrez configuration shared by the PubMed and
PubMed Central searchers.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from Bio import Entrez

from litsearch.shared.async_utils import RateLimiter, get_rate_limiter

# NCBI limits: ~3 requests/second without API key, 10 with one
RATE_WITHOUT_KEY = 3.0
RATE_WITH_KEY = 10.0

DEFAULT_EMAIL = "litsearch@example.com"


class EntrezBase:
    """
    Base class for Entrez API interactions.

    Attributes:
        email: Email address required by NCBI Entrez API.
        api_key: Optional NCBI API key for higher rate limits.
    """

    def __init__(
        self,
        email: str = DEFAULT_EMAIL,
        api_key: str | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        """
        Initialize Entrez configuration.

        Args:
            email: Email address required by NCBI Entrez API.
            api_key: Optional NCBI API key (10/sec vs 3/sec).
            rate_limiter: Shared limiter; searchers of one run should share one.
        """
        Entrez.email = email  # type: ignore[assignment]
        if api_key:
            Entrez.api_key = api_key  # type: ignore[assignment]

        Entrez.max_tries = 3
        Entrez.sleep_between_tries = 15

        self._email = email
        self._api_key = api_key
        self._rate_limiter = rate_limiter or (
            get_rate_limiter("ncbi_api_key", RATE_WITH_KEY) if api_key else get_rate_limiter("ncbi", RATE_WITHOUT_KEY)
        )

    async def _rate_limited_call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking Entrez call in a thread, after acquiring a rate-limit token."""
        await self._rate_limiter.acquire()
        return await asyncio.to_thread(func, *args, **kwargs)

    @property
    def email(self) -> str:
        return self._email

    @property
    def api_key(self) -> str | None:
        return self._api_key
