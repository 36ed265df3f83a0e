"""
Citation domain entities.

CitationRecord is the uniform record produced by the normalizer for every
source. MatchRow/MatchTable carry the canonical identities assigned by the
identifier matcher; the table is an immutable accumulator that grows by one
source at a time.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from enum import Enum

# Identifier fields usable as match keys, in default matching order
IDENTIFIER_FIELDS: tuple[str, ...] = ("pmid", "pmcid", "doi")


class Source(Enum):
    """Bibliographic sources searched by the analysis."""

    EUROPE_PMC = "epmc"
    PMC = "pmc"
    PUBMED = "pm"

    @property
    def label(self) -> str:
        """Human readable source name used in plots."""
        return _SOURCE_LABELS[self]


_SOURCE_LABELS = {
    Source.EUROPE_PMC: "Europe PMC",
    Source.PMC: "PubMed Central",
    Source.PUBMED: "PubMed",
}


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True, slots=True)
class IdentifierSet:
    """PMID / PMCID / DOI triple, e.g. as returned by the NCBI ID converter."""

    pmid: str | None = None
    pmcid: str | None = None
    doi: str | None = None


@dataclass(frozen=True, slots=True)
class CitationRecord:
    """
    One search hit from one source.

    Attributes:
        source: Source that produced the hit
        search_id: Name of the query term that produced the hit
        pmid, pmcid, doi: Identifiers, None when absent
        source_native_id: Source-internal identifier (Europe PMC ``id``)
    """

    source: Source
    search_id: str
    pmid: str | None = None
    pmcid: str | None = None
    doi: str | None = None
    source_native_id: str | None = None

    def identifier(self, key: str) -> str | None:
        """Trimmed value of an identifier field; empty values are None."""
        if key not in IDENTIFIER_FIELDS:
            msg = f"Unknown identifier field: {key!r}"
            raise ValueError(msg)
        return _clean(getattr(self, key))

    @property
    def dedup_key(self) -> tuple[str | None, ...]:
        """Key identifying the same hit independent of the search that found it."""
        return (
            self.identifier("pmid"),
            self.identifier("pmcid"),
            self.identifier("doi"),
            _clean(self.source_native_id),
        )


@dataclass(frozen=True, slots=True)
class MatchRow:
    """A record tagged with its canonical identity."""

    id: int
    src: Source
    pmid: str | None = None
    pmcid: str | None = None
    doi: str | None = None
    search_id: str = ""
    source_native_id: str | None = None

    @classmethod
    def from_record(cls, identity: int, record: CitationRecord) -> MatchRow:
        return cls(
            id=identity,
            src=record.source,
            pmid=record.identifier("pmid"),
            pmcid=record.identifier("pmcid"),
            doi=record.identifier("doi"),
            search_id=record.search_id,
            source_native_id=_clean(record.source_native_id),
        )

    def identifier(self, key: str) -> str | None:
        if key not in IDENTIFIER_FIELDS:
            msg = f"Unknown identifier field: {key!r}"
            raise ValueError(msg)
        return _clean(getattr(self, key))

    def to_record(self) -> CitationRecord:
        return CitationRecord(
            source=self.src,
            search_id=self.search_id,
            pmid=self.pmid,
            pmcid=self.pmcid,
            doi=self.doi,
            source_native_id=self.source_native_id,
        )


@dataclass(frozen=True)
class MatchTable:
    """
    Accumulated reconciliation result across the sources folded in so far.

    Immutable: ``extend`` returns a new table.
    """

    rows: tuple[MatchRow, ...] = ()

    def __iter__(self) -> Iterator[MatchRow]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def max_id(self) -> int:
        """Largest canonical identity in use (0 for an empty table)."""
        return max((row.id for row in self.rows), default=0)

    @property
    def identities(self) -> set[int]:
        return {row.id for row in self.rows}

    @property
    def sources(self) -> list[Source]:
        """Sources in the order they were folded in."""
        seen: list[Source] = []
        for row in self.rows:
            if row.src not in seen:
                seen.append(row.src)
        return seen

    def extend(self, rows: Iterable[MatchRow]) -> MatchTable:
        return MatchTable(self.rows + tuple(rows))


@dataclass(frozen=True, slots=True)
class MatchOutcome:
    """Result of matching a single record against a reference table."""

    record: CitationRecord
    identity: int | None = None
    matched_on: str | None = None
    ambiguous: bool = False

    @property
    def matched(self) -> bool:
        return self.identity is not None


@dataclass(frozen=True, slots=True)
class AmbiguousMatch:
    """A record whose identifiers point at more than one canonical identity."""

    record: CitationRecord
    conflicting_ids: tuple[int, ...]


@dataclass
class MatchResult:
    """Outcomes of one ``match`` call, in input order, plus anomalies."""

    outcomes: list[MatchOutcome] = field(default_factory=list)
    anomalies: list[AmbiguousMatch] = field(default_factory=list)

    @property
    def matched(self) -> list[MatchOutcome]:
        return [o for o in self.outcomes if o.matched]

    @property
    def unmatched(self) -> list[MatchOutcome]:
        return [o for o in self.outcomes if not o.matched]
