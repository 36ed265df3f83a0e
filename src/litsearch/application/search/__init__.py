"""
Search aggregation and result normalization.

Key Components:
- SearchAggregator: per-term searches against every source, failures captured
- normalizer: raw hits -> CitationRecord
"""

from __future__ import annotations

from .aggregator import SearchAggregator, SearchCollaborator, search_namespace
from .normalizer import (
    clean_doi,
    clean_pmcid,
    clean_pmid,
    collapse_searches,
    normalize_epmc_hits,
    normalize_outcomes,
    normalize_pmc_hits,
    normalize_pubmed_hits,
)

__all__ = [
    "SearchAggregator",
    "SearchCollaborator",
    "search_namespace",
    "clean_doi",
    "clean_pmcid",
    "clean_pmid",
    "collapse_searches",
    "normalize_epmc_hits",
    "normalize_outcomes",
    "normalize_pmc_hits",
    "normalize_pubmed_hits",
]
