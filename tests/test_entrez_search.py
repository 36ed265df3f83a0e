"""Tests for the PubMed / PMC Entrez searchers (Entrez calls patched)."""

from unittest.mock import MagicMock, patch

import pytest
from Bio import Entrez

from litsearch.domain.entities import Source
from litsearch.infrastructure.ncbi import PMCSearcher, PubMedSearcher
from litsearch.infrastructure.ncbi.search import _is_retryable_ncbi
from litsearch.shared.async_utils import RateLimiter
from litsearch.shared.exceptions import APIError, ServiceUnavailableError


@pytest.fixture
def limiter():
    return RateLimiter(rate=1000.0)


class TestPubMedSearcher:
    @pytest.mark.asyncio
    async def test_search_returns_ids_and_translation(self, mock_email, mock_search_response, limiter):
        searcher = PubMedSearcher(email=mock_email, rate_limiter=limiter)
        with (
            patch.object(Entrez, "esearch", return_value=MagicMock()) as esearch,
            patch.object(Entrez, "read", return_value=mock_search_response),
        ):
            result = await searcher.search('"disease ontology"', limit=100)

        assert searcher.source is Source.PUBMED
        assert result.hits == ["12345678", "23456789", "34567890"]
        assert result.hit_count == 3
        assert result.query_translation == '"disease ontology"[All Fields]'
        kwargs = esearch.call_args.kwargs
        assert kwargs["db"] == "pubmed"
        assert kwargs["retmax"] == 100
        assert kwargs["retstart"] == 0

    @pytest.mark.asyncio
    async def test_pages_beyond_one_request(self, mock_email, limiter):
        pages = [
            {"Count": "15000", "IdList": [str(i) for i in range(10000)], "QueryTranslation": "q"},
            {"Count": "15000", "IdList": [str(i) for i in range(10000, 15000)], "QueryTranslation": "q"},
        ]
        searcher = PubMedSearcher(email=mock_email, rate_limiter=limiter)
        with (
            patch.object(Entrez, "esearch", return_value=MagicMock()) as esearch,
            patch.object(Entrez, "read", side_effect=pages),
        ):
            result = await searcher.search("q", limit=20000)

        assert len(result.hits) == 15000
        assert esearch.call_count == 2
        assert esearch.call_args_list[1].kwargs["retstart"] == 10000
        assert esearch.call_args_list[1].kwargs["retmax"] == 10000

    @pytest.mark.asyncio
    async def test_one_rate_limit_token_per_request(self, mock_email, mock_search_response, limiter):
        searcher = PubMedSearcher(email=mock_email, rate_limiter=limiter)
        with (
            patch.object(Entrez, "esearch", return_value=MagicMock()),
            patch.object(Entrez, "read", return_value=mock_search_response),
        ):
            await searcher.search("doid")
        assert limiter.acquired == 1

    @pytest.mark.asyncio
    async def test_no_hits(self, mock_email, limiter):
        searcher = PubMedSearcher(email=mock_email, rate_limiter=limiter)
        with (
            patch.object(Entrez, "esearch", return_value=MagicMock()),
            patch.object(Entrez, "read", return_value={"Count": "0", "IdList": [], "QueryTranslation": ""}),
        ):
            result = await searcher.search("ontobee.org/ontology/doid")
        assert result.hits == []
        assert result.hit_count == 0

    @pytest.mark.asyncio
    async def test_retries_transient_errors(self, mock_email, mock_search_response, limiter):
        searcher = PubMedSearcher(email=mock_email, rate_limiter=limiter)
        with (
            patch.object(Entrez, "esearch", return_value=MagicMock()) as esearch,
            patch.object(
                Entrez, "read", side_effect=[RuntimeError("Search Backend failed"), mock_search_response]
            ),
        ):
            result = await searcher.search("doid")
        assert len(result.hits) == 3
        assert esearch.call_count == 2

    @pytest.mark.asyncio
    async def test_non_transient_error_propagates(self, mock_email, limiter):
        searcher = PubMedSearcher(email=mock_email, rate_limiter=limiter)
        with (
            patch.object(Entrez, "esearch", return_value=MagicMock()) as esearch,
            patch.object(Entrez, "read", side_effect=RuntimeError("Invalid query syntax")),
        ):
            with pytest.raises(RuntimeError, match="Invalid query"):
                await searcher.search("doid")
        assert esearch.call_count == 1


class TestPMCSearcher:
    @pytest.mark.asyncio
    async def test_ids_get_pmc_prefix(self, mock_email, limiter):
        searcher = PMCSearcher(email=mock_email, rate_limiter=limiter)
        response = {"Count": "2", "IdList": ["111", "PMC222"], "QueryTranslation": "doid[All Fields]"}
        with (
            patch.object(Entrez, "esearch", return_value=MagicMock()) as esearch,
            patch.object(Entrez, "read", return_value=response),
        ):
            result = await searcher.search("doid")

        assert searcher.source is Source.PMC
        assert result.hits == ["PMC111", "PMC222"]
        assert esearch.call_args.kwargs["db"] == "pmc"


class TestRetryPredicate:
    def test_backend_errors_are_retryable(self):
        assert _is_retryable_ncbi(RuntimeError("Search Backend failed: timeout"))

    def test_litsearch_errors_use_flag(self):
        assert _is_retryable_ncbi(ServiceUnavailableError())
        assert not _is_retryable_ncbi(APIError("bad request", retryable=False))

    def test_other_errors_are_not_retryable(self):
        assert not _is_retryable_ncbi(ValueError("bad term"))
