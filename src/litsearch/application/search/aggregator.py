"""
SearchAggregator - one logical search per (source, term), failures captured.

Runs every named query term against every search collaborator concurrently
via asyncio.gather. A collaborator error never propagates: it becomes a
failed SearchOutcome (zero hits) and is logged. Successful outcomes are
stored in the response cache, at most once per (source, term); failed
searches are not cached and are retried on the next run.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from litsearch.domain.entities import RawSearchResult, SearchOutcome, Source
from litsearch.infrastructure.cache import ResponseCache

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 10000
DEFAULT_MAX_CONCURRENCY = 4


class SearchCollaborator(Protocol):
    """Anything with a ``source`` and an async ``search`` returning RawSearchResult."""

    source: Source

    async def search(self, term: str, limit: int = DEFAULT_LIMIT, **options: Any) -> RawSearchResult: ...


def search_namespace(source: Source) -> str:
    """Cache namespace of a source's raw search outcomes."""
    return f"{source.value}_search_raw"


class SearchAggregator:
    """
    Issues the configured searches against each collaborator.

    Usage:
        aggregator = SearchAggregator([EuropePMCClient(), PMCSearcher(), PubMedSearcher()])
        outcomes = await aggregator.search_all({"ns_id": "doid", "website": '"disease-ontology.org"'})
        outcomes[Source.PUBMED]["ns_id"].hits
    """

    def __init__(
        self,
        searchers: Sequence[SearchCollaborator],
        cache: ResponseCache | None = None,
        limit: int = DEFAULT_LIMIT,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        options: Mapping[Source, Mapping[str, Any]] | None = None,
    ):
        """
        Args:
            searchers: One collaborator per source
            cache: Raw response cache; None disables caching
            limit: Maximum hits per search
            max_concurrency: Concurrent searches per source
            options: Extra search options per source
        """
        self._searchers = {s.source: s for s in searchers}
        self._cache = cache
        self._limit = limit
        self._max_concurrency = max(1, max_concurrency)
        self._options = {src: dict(opts) for src, opts in (options or {}).items()}

    @property
    def sources(self) -> list[Source]:
        return list(self._searchers)

    async def _safe_search(self, searcher: SearchCollaborator, search_id: str, term: str) -> SearchOutcome:
        """Run one search; every exception becomes a failed outcome."""
        source = searcher.source
        try:
            result = await searcher.search(term, limit=self._limit, **self._options.get(source, {}))
        except Exception as e:
            logger.warning(f"{source.label} search {search_id!r} failed: {type(e).__name__}: {e}")
            return SearchOutcome.failure(source, search_id, e)
        return SearchOutcome.success(source, search_id, result)

    async def _cached_search(self, searcher: SearchCollaborator, search_id: str, term: str) -> SearchOutcome:
        if self._cache is None:
            return await self._safe_search(searcher, search_id, term)

        async def fetch() -> dict[str, Any]:
            return (await self._safe_search(searcher, search_id, term)).to_dict()

        data = await self._cache.get_or_fetch(
            search_namespace(searcher.source),
            search_id,
            fetch,
            store_if=lambda d: "error" not in d,
        )
        return SearchOutcome.from_dict(data)

    async def search_source(self, source: Source, terms: Mapping[str, str]) -> dict[str, SearchOutcome]:
        """
        Search every term on one source.

        Returns:
            term name -> outcome, in the order of ``terms``
        """
        searcher = self._searchers[source]
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def run(search_id: str, term: str) -> SearchOutcome:
            async with semaphore:
                return await self._cached_search(searcher, search_id, term)

        names = list(terms)
        outcomes = await asyncio.gather(*(run(name, terms[name]) for name in names))
        failed = sum(1 for o in outcomes if not o.ok)
        logger.info(f"{source.label}: {len(names) - failed}/{len(names)} searches succeeded")
        return dict(zip(names, outcomes, strict=True))

    async def search_all(self, terms: Mapping[str, str]) -> dict[Source, dict[str, SearchOutcome]]:
        """
        Search every term on every source, sources concurrently.

        Returns:
            source -> (term name -> outcome)
        """
        sources = self.sources
        results = await asyncio.gather(*(self.search_source(src, terms) for src in sources))
        return dict(zip(sources, results, strict=True))
