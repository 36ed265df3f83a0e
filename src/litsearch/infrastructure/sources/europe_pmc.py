"""
Europe PMC Search Client

Search collaborator for Europe PMC's RESTful API.

API Documentation: https://europepmc.org/RestfulWebService

Searches use ``resultType=lite`` (identifiers plus basic metadata) and
cursor-based pagination. ``synonym=true`` expands the query with synonyms,
which matches what the Europe PMC website returns.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from litsearch.domain.entities import RawSearchResult, Source
from litsearch.shared.exceptions import ParseError

from .base_client import BaseAPIClient

logger = logging.getLogger(__name__)

EPMC_API_BASE = "https://www.ebi.ac.uk/europepmc/webservices/rest"

# Largest page Europe PMC serves per request
MAX_PAGE_SIZE = 1000

DEFAULT_EMAIL = "litsearch@example.com"

# Hit fields kept from the lite result
_HIT_FIELDS = ("id", "source", "pmid", "pmcid", "doi", "title", "pubYear")


class EuropePMCClient(BaseAPIClient):
    """
    Europe PMC search client.

    Usage:
        async with EuropePMCClient(email="your@email.com") as client:
            result = await client.search('"disease ontology"', limit=100)
            print(result.hit_count, len(result.hits))
    """

    _service_name = "Europe PMC"
    source = Source.EUROPE_PMC

    def __init__(
        self,
        email: str | None = None,
        timeout: float = 30.0,
        synonym: bool = True,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize client.

        Args:
            email: Contact email sent in the User-Agent
            timeout: Request timeout in seconds
            synonym: Expand queries with synonyms
            client: Preconfigured httpx client
        """
        self._email = email or DEFAULT_EMAIL
        self._synonym = synonym
        super().__init__(
            base_url=EPMC_API_BASE,
            timeout=timeout,
            min_interval=0.1,  # Europe PMC is generous with rate limits
            headers={
                "User-Agent": f"litsearch/0.1 (mailto:{self._email})",
                "Accept": "application/json",
            },
            client=client,
        )

    async def search(self, term: str, limit: int = 10000, **options: Any) -> RawSearchResult:
        """
        Search Europe PMC publications, following the cursor until ``limit``.

        Args:
            term: Search query (Europe PMC search syntax)
            limit: Maximum number of hits
            **options: ``synonym`` overrides the client default

        Returns:
            RawSearchResult with lite result dicts as hits
        """
        synonym = options.get("synonym", self._synonym)
        hits: list[dict[str, Any]] = []
        hit_count: int | None = None
        cursor = "*"

        while len(hits) < limit:
            params = {
                "query": term,
                "resultType": "lite",
                "synonym": "true" if synonym else "false",
                "pageSize": str(min(limit - len(hits), MAX_PAGE_SIZE)),
                "format": "json",
                "cursorMark": cursor,
            }
            data = await self._make_request("/search", params=params)
            if not isinstance(data, dict):
                raise ParseError("unexpected search response", source=self._service_name)

            if hit_count is None:
                hit_count = int(data.get("hitCount", 0))

            page = data.get("resultList", {}).get("result", [])
            hits.extend(self._slim_hit(r) for r in page)

            next_cursor = data.get("nextCursorMark")
            if not page or not next_cursor or next_cursor == cursor:
                break
            cursor = next_cursor

        logger.info(f"Europe PMC: {len(hits)} of {hit_count or 0} hits for {term!r}")
        return RawSearchResult(hits=hits[:limit], query_translation="", hit_count=hit_count)

    @staticmethod
    def _slim_hit(result: dict[str, Any]) -> dict[str, Any]:
        """Keep the identifier and display fields of a lite result."""
        return {key: result[key] for key in _HIT_FIELDS if key in result}
