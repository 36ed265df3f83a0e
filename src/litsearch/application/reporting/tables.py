"""
Report Tables - count and overlap tables from search outcomes and matches.

Pure functions producing row dicts; writing them is left to
``litsearch.infrastructure.storage``.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from litsearch.domain.entities import (
    AmbiguousMatch,
    CitationRecord,
    MatchTable,
    SearchOutcome,
    Source,
)

SEARCH_COUNT_COLUMNS = ["search_id", "pm", "pmc", "epmc", "term"]
ACTUAL_SEARCH_COLUMNS = ["search_id", "search_term", "pm", "pmc"]
FAILURE_COLUMNS = ["src", "search_id", "error"]
AMBIGUOUS_COLUMNS = ["src", "pmid", "pmcid", "doi", "search_id", "conflicting_ids"]
OVERLAP_COLUMNS = ["combination", "n"]
SEARCH_NUMBER_COLUMNS = ["search_num", "search"]

SourceOutcomes = Mapping[Source, Mapping[str, SearchOutcome]]


# =============================================================================
# Search tables
# =============================================================================


def search_counts(
    records_by_source: Mapping[Source, Sequence[CitationRecord]],
    terms: Mapping[str, str],
) -> list[dict[str, Any]]:
    """
    Hits per search and source; one row per term, missing counts are 0.

    Columns: search_id, pm, pmc, epmc, term
    """
    counts = {
        source: Counter(r.search_id for r in records_by_source.get(source, ()))
        for source in (Source.PUBMED, Source.PMC, Source.EUROPE_PMC)
    }
    return [
        {
            "search_id": name,
            "pm": counts[Source.PUBMED][name],
            "pmc": counts[Source.PMC][name],
            "epmc": counts[Source.EUROPE_PMC][name],
            "term": term,
        }
        for name, term in terms.items()
    ]


def actual_searches(outcomes: SourceOutcomes, terms: Mapping[str, str]) -> list[dict[str, Any]]:
    """
    Query translations reported by NCBI for each term.

    Columns: search_id, search_term, pm, pmc (empty when the search failed)
    """

    def translation(source: Source, name: str) -> str:
        outcome = outcomes.get(source, {}).get(name)
        return outcome.query_translation if outcome else ""

    return [
        {
            "search_id": name,
            "search_term": term,
            "pm": translation(Source.PUBMED, name),
            "pmc": translation(Source.PMC, name),
        }
        for name, term in terms.items()
    ]


def failure_rows(outcomes: SourceOutcomes) -> list[dict[str, Any]]:
    """Failed searches. Columns: src, search_id, error"""
    return [
        {"src": source.value, "search_id": name, "error": outcome.error}
        for source, by_term in outcomes.items()
        for name, outcome in by_term.items()
        if not outcome.ok
    ]


def ambiguous_rows(anomalies: Iterable[AmbiguousMatch]) -> list[dict[str, Any]]:
    """Columns: src, pmid, pmcid, doi, search_id, conflicting_ids ("|"-joined)"""
    return [
        {
            "src": a.record.source.value,
            "pmid": a.record.pmid,
            "pmcid": a.record.pmcid,
            "doi": a.record.doi,
            "search_id": a.record.search_id,
            "conflicting_ids": "|".join(str(i) for i in a.conflicting_ids),
        }
        for a in anomalies
    ]


def search_labels(names: Sequence[str], labels: Mapping[str, str] | None = None) -> dict[str, str]:
    """Short labels for long search terms: configured ones, else "#1", "#2", ..."""
    labels = labels or {}
    return {name: labels.get(name, f"#{i}") for i, name in enumerate(names, start=1)}


def search_number_rows(labels: Mapping[str, str], terms: Mapping[str, str]) -> list[dict[str, Any]]:
    """Legend of search labels. Columns: search_num, search"""
    return [{"search_num": label, "search": terms.get(name, name)} for name, label in labels.items()]


# =============================================================================
# Overlap (UpSet) counts
# =============================================================================


@dataclass(frozen=True)
class OverlapCount:
    """Number of items found by exactly one combination of categories."""

    combination: tuple[str, ...]
    count: int

    @property
    def label(self) -> str:
        return "|".join(self.combination)


def overlap_counts(
    pairs: Iterable[tuple[Hashable, str]],
    min_count: int = 0,
    category_order: Sequence[str] | None = None,
) -> list[OverlapCount]:
    """
    Count items per exact combination of categories they occur in.

    Categories with fewer than ``min_count`` occurrences are dropped before
    combinations are formed. Duplicate (item, category) pairs count once.

    Args:
        pairs: (item id, category) pairs, e.g. (pmid, search_id)
        min_count: Minimum occurrences for a category to be kept
        category_order: Order of categories inside a combination
            (default: first appearance)

    Returns:
        Combinations sorted by count (descending), then by size and label
    """
    unique_pairs = list(dict.fromkeys(pairs))
    category_n = Counter(category for _, category in unique_pairs)
    kept = {c for c, n in category_n.items() if n >= min_count}

    order = list(category_order or [])
    for _, category in unique_pairs:
        if category not in order:
            order.append(category)
    rank = {c: i for i, c in enumerate(order)}

    by_item: dict[Hashable, set[str]] = {}
    for item, category in unique_pairs:
        if category in kept:
            by_item.setdefault(item, set()).add(category)

    combos = Counter(tuple(sorted(cats, key=rank.__getitem__)) for cats in by_item.values())
    result = [OverlapCount(combination=c, count=n) for c, n in combos.items()]
    result.sort(key=lambda o: (-o.count, len(o.combination), [rank[c] for c in o.combination]))
    return result


def overlap_rows(overlaps: Iterable[OverlapCount]) -> list[dict[str, Any]]:
    """Columns: combination, n"""
    return [{"combination": o.label, "n": o.count} for o in overlaps]


def record_item_id(record: CitationRecord) -> Hashable:
    """Identifier a source uses for its own hits (Europe PMC id, PMCID, PMID)."""
    if record.source is Source.EUROPE_PMC and record.source_native_id:
        return record.source_native_id
    if record.source is Source.PMC and record.pmcid:
        return record.pmcid
    if record.source is Source.PUBMED and record.pmid:
        return record.pmid
    return record.dedup_key


def search_overlap(
    records: Iterable[CitationRecord],
    labels: Mapping[str, str] | None = None,
    min_count: int = 0,
    exclude: Iterable[str] = (),
) -> list[OverlapCount]:
    """Overlap of the searches of one source, optionally relabelled."""
    labels = labels or {}
    excluded = set(exclude)
    pairs = [
        (record_item_id(r), labels.get(r.search_id, r.search_id)) for r in records if r.search_id not in excluded
    ]
    return overlap_counts(pairs, min_count=min_count)


def source_overlap(table: MatchTable, source_order: Sequence[Source] | None = None) -> list[OverlapCount]:
    """Overlap of canonical identities across sources."""
    order = [s.label for s in (source_order or table.sources)]
    return overlap_counts(((row.id, row.src.label) for row in table), category_order=order)


# =============================================================================
# Total hits
# =============================================================================


def total_hits(
    records_by_source: Mapping[Source, Sequence[CitationRecord]],
    search_ids: Sequence[str],
) -> dict[Source, dict[str, int]]:
    """Hits per source and search, restricted to ``search_ids`` (in that order)."""
    totals: dict[Source, dict[str, int]] = {}
    for source, records in records_by_source.items():
        counts = Counter(r.search_id for r in records)
        totals[source] = {name: counts[name] for name in search_ids}
    return totals
