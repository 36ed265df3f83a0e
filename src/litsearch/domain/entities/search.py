"""
Search result entities.

Every collaborator call is turned into a SearchOutcome: either a success
carrying the raw hits, or a failure carrying the error text. Outcomes are
plain data and round-trip through JSON for the response cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .citation import Source


@dataclass(frozen=True)
class RawSearchResult:
    """
    Raw response of one search collaborator call.

    Attributes:
        hits: Source-specific hit records (PMIDs, PMCIDs or Europe PMC dicts)
        query_translation: How the service interpreted the query ("" if unknown)
        hit_count: Total number of hits reported by the service
    """

    hits: list[Any] = field(default_factory=list)
    query_translation: str = ""
    hit_count: int | None = None


@dataclass(frozen=True)
class SearchOutcome:
    """Tagged success/failure result of searching one term on one source."""

    source: Source
    search_id: str
    result: RawSearchResult | None = None
    error: str | None = None

    @classmethod
    def success(cls, source: Source, search_id: str, result: RawSearchResult) -> SearchOutcome:
        return cls(source=source, search_id=search_id, result=result)

    @classmethod
    def failure(cls, source: Source, search_id: str, error: BaseException | str) -> SearchOutcome:
        message = error if isinstance(error, str) else f"{type(error).__name__}: {error}"
        return cls(source=source, search_id=search_id, error=message)

    @property
    def ok(self) -> bool:
        return self.error is None and self.result is not None

    @property
    def hits(self) -> list[Any]:
        """Hits of a successful search; a failed search counts as zero hits."""
        return list(self.result.hits) if self.ok and self.result else []

    @property
    def query_translation(self) -> str:
        return self.result.query_translation if self.ok and self.result else ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"source": self.source.value, "search_id": self.search_id}
        if self.result is not None:
            data["result"] = {
                "hits": list(self.result.hits),
                "query_translation": self.result.query_translation,
                "hit_count": self.result.hit_count,
            }
        if self.error is not None:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SearchOutcome:
        raw = data.get("result")
        result = None
        if isinstance(raw, dict):
            result = RawSearchResult(
                hits=list(raw.get("hits") or []),
                query_translation=raw.get("query_translation") or "",
                hit_count=raw.get("hit_count"),
            )
        return cls(
            source=Source(data["source"]),
            search_id=data["search_id"],
            result=result,
            error=data.get("error"),
        )
