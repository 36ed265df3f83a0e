"""
Domain Entities

Core business objects for cross-source citation reconciliation.
"""

from __future__ import annotations

from .citation import (
    IDENTIFIER_FIELDS,
    AmbiguousMatch,
    CitationRecord,
    IdentifierSet,
    MatchOutcome,
    MatchResult,
    MatchRow,
    MatchTable,
    Source,
)
from .search import RawSearchResult, SearchOutcome

__all__ = [
    # Citation entities
    "IDENTIFIER_FIELDS",
    "Source",
    "IdentifierSet",
    "CitationRecord",
    # Matching entities
    "MatchRow",
    "MatchTable",
    "MatchOutcome",
    "MatchResult",
    "AmbiguousMatch",
    # Search entities
    "RawSearchResult",
    "SearchOutcome",
]
