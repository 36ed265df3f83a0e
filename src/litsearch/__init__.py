"""
litsearch - Cross-source literature search and citation reconciliation

Searches PubMed, PubMed Central and Europe PMC with a set of named query
terms, reconciles the hits into one canonical identity per publication and
reports how the searches and sources overlap.

Usage:
    from litsearch import IdentifierMatcher, CitationRecord, Source

    matcher = IdentifierMatcher()
    result = matcher.build_match_table([
        (Source.EUROPE_PMC, epmc_records),
        (Source.PMC, pmc_records),
        (Source.PUBMED, pm_records),
    ])
    print(result.distinct_publications)
"""

from __future__ import annotations

from .application.matching import IdentifierMatcher, build_match_table, match_records
from .domain.entities import CitationRecord, MatchRow, MatchTable, SearchOutcome, Source

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "IdentifierMatcher",
    "build_match_table",
    "match_records",
    "CitationRecord",
    "MatchRow",
    "MatchTable",
    "SearchOutcome",
    "Source",
]
