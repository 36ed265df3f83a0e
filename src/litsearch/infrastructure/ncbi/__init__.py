"""
NCBI collaborators.

- PubMedSearcher / PMCSearcher: Entrez esearch via Biopython
- IdConverterClient: PMID / PMCID / DOI cross-walk
"""

from __future__ import annotations

from .base import EntrezBase
from .id_converter import ConversionResult, IdConverterClient
from .search import EntrezSearcher, PMCSearcher, PubMedSearcher

__all__ = [
    "EntrezBase",
    "EntrezSearcher",
    "PubMedSearcher",
    "PMCSearcher",
    "IdConverterClient",
    "ConversionResult",
]
