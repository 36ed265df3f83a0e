"""
Domain Layer - Core business objects.

Contains:
- entities: CitationRecord, MatchTable, SearchOutcome and friends
"""

from __future__ import annotations

from .entities import (
    CitationRecord,
    MatchRow,
    MatchTable,
    SearchOutcome,
    Source,
)

__all__ = [
    "CitationRecord",
    "MatchRow",
    "MatchTable",
    "SearchOutcome",
    "Source",
]
