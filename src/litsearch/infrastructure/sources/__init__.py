"""
External REST sources.

- EuropePMCClient: Europe PMC search
- BaseAPIClient: shared httpx request/retry/circuit-breaker logic
"""

from __future__ import annotations

from .base_client import BaseAPIClient
from .europe_pmc import EuropePMCClient

__all__ = [
    "BaseAPIClient",
    "EuropePMCClient",
]
