"""
Cross-source identifier matching.

Key Components:
- IdentifierMatcher: match / mint_identities / fold / build_match_table
- UnionFind: grouping of unmatched records sharing identifiers
"""

from __future__ import annotations

from .matcher import (
    FoldResult,
    FoldStats,
    IdentifierMatcher,
    ReconciliationResult,
    UnionFind,
    build_match_table,
    match_records,
)

__all__ = [
    "IdentifierMatcher",
    "FoldResult",
    "FoldStats",
    "ReconciliationResult",
    "UnionFind",
    "build_match_table",
    "match_records",
]
