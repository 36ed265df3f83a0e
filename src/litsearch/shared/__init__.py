"""Shared utilities: exceptions, async helpers, run configuration."""

from __future__ import annotations

from .exceptions import (
    APIError,
    ConfigurationError,
    DataError,
    LitSearchError,
    NetworkError,
    ParseError,
    RateLimitError,
    ServiceUnavailableError,
)
from .settings import RunConfig

__all__ = [
    "LitSearchError",
    "APIError",
    "RateLimitError",
    "NetworkError",
    "ServiceUnavailableError",
    "DataError",
    "ParseError",
    "ConfigurationError",
    "RunConfig",
]
