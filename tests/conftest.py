"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from unittest.mock import AsyncMock, Mock

import pytest

from litsearch.domain.entities import CitationRecord, RawSearchResult, Source

# ============================================================
# Environment Fixtures
# ============================================================


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_email():
    """Provide a mock email for NCBI API."""
    return "test@example.com"


@pytest.fixture(autouse=True)
def no_ncbi_env(monkeypatch):
    """Keep the developer's NCBI credentials out of config defaults."""
    monkeypatch.delenv("NCBI_EMAIL", raising=False)
    monkeypatch.delenv("NCBI_API_KEY", raising=False)


# ============================================================
# Mock API Responses
# ============================================================


@pytest.fixture
def mock_search_response():
    """Mock response from NCBI ESearch."""
    return {
        "IdList": ["12345678", "23456789", "34567890"],
        "Count": "3",
        "QueryTranslation": '"disease ontology"[All Fields]',
        "QueryKey": "1",
        "WebEnv": "MOCK_WEB_ENV",
    }


@pytest.fixture
def mock_epmc_response():
    """Mock Europe PMC lite search page."""
    return {
        "version": "6.9",
        "hitCount": 2,
        "nextCursorMark": "AoE123",
        "resultList": {
            "result": [
                {
                    "id": "12345678",
                    "source": "MED",
                    "pmid": "12345678",
                    "pmcid": "PMC1111111",
                    "doi": "10.1000/Test.1",
                    "title": "Disease Ontology 2024 update",
                    "authorString": "Smith J",
                    "pubYear": "2024",
                },
                {
                    "id": "PPR555",
                    "source": "PPR",
                    "doi": "10.1101/2024.01.01",
                    "title": "A preprint",
                    "pubYear": "2024",
                },
            ]
        },
    }


@pytest.fixture
def mock_idconv_response():
    """Mock NCBI ID converter JSON response."""
    return {
        "status": "ok",
        "responseDate": "2026-01-01 00:00:00",
        "request": "ids=12345678,23456789,99999999;idtype=pmid;format=json",
        "records": [
            {"pmcid": "PMC1111111", "pmid": "12345678", "doi": "10.1000/test.1", "requested-id": "12345678"},
            {"pmid": "23456789", "doi": "10.1000/test.2", "requested-id": "23456789"},
            {"requested-id": "99999999", "status": "error", "errmsg": "invalid article id"},
        ],
    }


# ============================================================
# Records
# ============================================================


def make_record(source: Source = Source.PUBMED, search_id: str = "s1", **ids) -> CitationRecord:
    """Shorthand for CitationRecord with keyword identifiers."""
    return CitationRecord(source=source, search_id=search_id, **ids)


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def mock_searcher_factory():
    """Build a search collaborator whose search() returns hits keyed by query term."""

    def factory(source: Source, results: dict[str, list], failures: dict[str, Exception] | None = None):
        failures = failures or {}

        async def search(term, limit=10000, **options):
            if term in failures:
                raise failures[term]
            hits = results.get(term, [])
            return RawSearchResult(
                hits=list(hits)[:limit],
                query_translation=f"{term}[All Fields]",
                hit_count=len(hits),
            )

        searcher = Mock()
        searcher.source = source
        searcher.search = AsyncMock(side_effect=search)
        return searcher

    return factory
