"""
Entrez Search Module - PubMed and PubMed Central search collaborators.

Both searchers run ``esearch`` and return the matching ids together with
NCBI's QueryTranslation, i.e. the query as PubMed actually executed it
(PubMed splits URLs into AND-ed tokens, expands MeSH terms, ...).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.error import HTTPError

from Bio import Entrez
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from litsearch.domain.entities import RawSearchResult, Source
from litsearch.shared.exceptions import is_retryable_error

from .base import EntrezBase

logger = logging.getLogger(__name__)

# Retry settings for transient NCBI errors
MAX_RETRIES = 3
RETRY_DELAY = 2  # seconds

# esearch returns at most this many ids per request
ESEARCH_PAGE_SIZE = 10000


def _is_retryable_ncbi(error: BaseException) -> bool:
    """Check if an NCBI error is retryable (backend hiccups, rate limits, timeouts)."""
    if isinstance(error, HTTPError):
        return error.code == 429 or error.code >= 500
    return is_retryable_error(error)


class EntrezSearcher(EntrezBase):
    """
    esearch-based search collaborator for one Entrez database.

    Subclasses set ``db`` and ``source`` and may override ``_format_id``.
    """

    db: str = "pubmed"
    source: Source = Source.PUBMED

    async def search(self, term: str, limit: int = 10000, **options: Any) -> RawSearchResult:
        """
        Search the database and return up to ``limit`` ids.

        Args:
            term: Entrez query string
            limit: Maximum number of ids (paged in chunks of 10,000)
            **options: Passed through to esearch (e.g. ``sort``)

        Returns:
            RawSearchResult with ids as hits and NCBI's query translation
        """
        ids: list[str] = []
        translation = ""
        total_count: int | None = None

        while len(ids) < limit:
            retmax = min(limit - len(ids), ESEARCH_PAGE_SIZE)
            record = await self._esearch_with_retry(term, retstart=len(ids), retmax=retmax, **options)

            if total_count is None:
                total_count = int(record.get("Count", 0))
                translation = str(record.get("QueryTranslation", "") or "")
                self._log_warnings(term, record)

            page = [self._format_id(str(i)) for i in record.get("IdList", [])]
            ids.extend(page)
            if not page or len(ids) >= total_count:
                break

        logger.info(f"{self.source.label}: {len(ids)} of {total_count or 0} hits for {term!r}")
        return RawSearchResult(hits=ids[:limit], query_translation=translation, hit_count=total_count)

    @retry(
        stop=stop_after_attempt(MAX_RETRIES),
        wait=wait_exponential(multiplier=RETRY_DELAY, min=RETRY_DELAY, max=RETRY_DELAY * 4),
        retry=retry_if_exception(_is_retryable_ncbi),
        reraise=True,
    )
    async def _esearch_with_retry(self, term: str, retstart: int, retmax: int, **options: Any) -> dict[str, Any]:
        """Run one esearch request with retry on transient errors."""
        handle = await self._rate_limited_call(
            Entrez.esearch,
            db=self.db,
            term=term,
            retstart=retstart,
            retmax=retmax,
            **options,
        )
        try:
            return await asyncio.to_thread(Entrez.read, handle)
        finally:
            handle.close()

    def _log_warnings(self, term: str, record: dict[str, Any]) -> None:
        """Surface NCBI WarningList/ErrorList entries (e.g. PhraseNotFound)."""
        for list_name in ("WarningList", "ErrorList"):
            entries = record.get(list_name) or {}
            for kind, messages in entries.items():
                if isinstance(messages, list) and messages:
                    logger.warning(f"NCBI {self.db} {kind} for {term!r}: {messages}")

    def _format_id(self, raw_id: str) -> str:
        return raw_id


class PubMedSearcher(EntrezSearcher):
    """PubMed search; hits are PMIDs."""

    db = "pubmed"
    source = Source.PUBMED


class PMCSearcher(EntrezSearcher):
    """
    PubMed Central search; hits are PMCIDs.

    esearch on ``pmc`` returns bare numeric ids, which are prefixed with
    "PMC" here. The PMIDs PMC can report are not aligned with these ids, so
    PMIDs and DOIs are obtained separately through the ID converter.
    """

    db = "pmc"
    source = Source.PMC

    def _format_id(self, raw_id: str) -> str:
        return raw_id if raw_id.upper().startswith("PMC") else f"PMC{raw_id}"
