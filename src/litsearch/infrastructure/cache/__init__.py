"""Raw API response caching."""

from __future__ import annotations

from .response_cache import ResponseCache

__all__ = ["ResponseCache"]
