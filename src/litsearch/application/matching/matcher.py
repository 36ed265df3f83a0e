"""
IdentifierMatcher - Cross-source citation reconciliation.

Assigns every citation record a canonical identity so that the same
publication found in PubMed, PubMed Central and Europe PMC is counted once.

Algorithm (one source at a time):
1. match: look up each new record in the accumulated MatchTable on every
   match key (PMID, PMCID, DOI). Exactly one identity found -> reuse it.
   More than one -> ambiguous, recorded and left unmatched.
2. Close the batch: unmatched records that share an identifier with a record
   of the same batch that was just matched join that record's identity.
   Matched batch records linked by shared identifiers to more than one
   identity are flagged ambiguous and unmatched again.
3. mint_identities: the remainder gets fresh identities after the table's
   maximum. Records of the remainder that share an identifier are grouped
   with Union-Find and receive one identity per group.

The MatchTable is an immutable accumulator: ``fold(table, batch)`` returns a
new table, so the whole reconciliation is a left fold over the sources.

Example:
    >>> matcher = IdentifierMatcher()
    >>> result = matcher.build_match_table([
    ...     (Source.EUROPE_PMC, epmc_records),
    ...     (Source.PMC, pmc_records),
    ...     (Source.PUBMED, pm_records),
    ... ])
    >>> result.table.max_id
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any

from litsearch.domain.entities import (
    IDENTIFIER_FIELDS,
    AmbiguousMatch,
    CitationRecord,
    MatchOutcome,
    MatchResult,
    MatchRow,
    MatchTable,
    Source,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Union-Find
# =============================================================================


class UnionFind:
    """
    Union-Find (Disjoint Set Union) over the indices 0..n-1.

    find/union are O(α(n)) amortized with path compression and union by rank.
    """

    def __init__(self, n: int):
        self.parent = list(range(n))
        self.rank = [0] * n

    def find(self, x: int) -> int:
        """Find root with path compression."""
        if self.parent[x] != x:
            self.parent[x] = self.find(self.parent[x])
        return self.parent[x]

    def union(self, x: int, y: int) -> bool:
        """Union by rank. Returns True if x and y were in different sets."""
        px, py = self.find(x), self.find(y)
        if px == py:
            return False

        if self.rank[px] < self.rank[py]:
            px, py = py, px
        self.parent[py] = px
        if self.rank[px] == self.rank[py]:
            self.rank[px] += 1
        return True


# =============================================================================
# Results
# =============================================================================


@dataclass
class FoldStats:
    """Statistics of folding one batch into the MatchTable."""

    source: Source | None = None
    input_records: int = 0
    matched: int = 0
    minted_records: int = 0
    new_identities: int = 0
    ambiguous: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source.value if self.source else None,
            "input_records": self.input_records,
            "matched": self.matched,
            "minted_records": self.minted_records,
            "new_identities": self.new_identities,
            "ambiguous": self.ambiguous,
        }


@dataclass
class FoldResult:
    """New table after one fold, plus the rows it added."""

    table: MatchTable
    rows: list[MatchRow]
    anomalies: list[AmbiguousMatch]
    stats: FoldStats


@dataclass
class ReconciliationResult:
    """Final MatchTable over all sources."""

    table: MatchTable
    anomalies: list[AmbiguousMatch] = field(default_factory=list)
    stats: list[FoldStats] = field(default_factory=list)

    @property
    def distinct_publications(self) -> int:
        return len(self.table.identities)


# =============================================================================
# IdentifierMatcher
# =============================================================================


class IdentifierMatcher:
    """
    Matches citation records to canonical identities.

    Args:
        match_keys: Identifier fields used as join keys, in priority order.
            The first key that produced a match is reported as ``matched_on``.
    """

    def __init__(self, match_keys: Sequence[str] = IDENTIFIER_FIELDS):
        self._match_keys = self._validate_keys(match_keys)

    @property
    def match_keys(self) -> tuple[str, ...]:
        return self._match_keys

    @staticmethod
    def _validate_keys(match_keys: Sequence[str]) -> tuple[str, ...]:
        keys = tuple(match_keys)
        if not keys:
            msg = "At least one match key is required"
            raise ValueError(msg)
        unknown = [k for k in keys if k not in IDENTIFIER_FIELDS]
        if unknown:
            msg = f"Unknown match keys: {unknown} (valid: {', '.join(IDENTIFIER_FIELDS)})"
            raise ValueError(msg)
        return keys

    @staticmethod
    def _build_index(rows: Iterable[MatchRow], keys: Sequence[str]) -> dict[str, dict[str, set[int]]]:
        """key -> identifier value -> identities carrying it."""
        index: dict[str, dict[str, set[int]]] = {key: defaultdict(set) for key in keys}
        for row in rows:
            for key in keys:
                value = row.identifier(key)
                if value is not None:
                    index[key][value].add(row.id)
        return index

    def match(
        self,
        new_records: Sequence[CitationRecord],
        reference: Iterable[MatchRow],
        match_keys: Sequence[str] | None = None,
    ) -> MatchResult:
        """
        Match records against reference rows that already carry identities.

        A record matches a row when both carry the same non-empty value for
        the same key. Absent values never match anything.

        Args:
            new_records: Records to resolve
            reference: Rows with canonical identities (e.g. a MatchTable)
            match_keys: Override the matcher's keys for this call

        Returns:
            MatchResult with one outcome per record, in input order
        """
        keys = self._validate_keys(match_keys) if match_keys is not None else self._match_keys
        index = self._build_index(reference, keys)
        result = MatchResult()

        for record in new_records:
            # identity -> first key (in key order) that found it
            hits: dict[int, str] = {}
            for key in keys:
                value = record.identifier(key)
                if value is None:
                    continue
                for identity in sorted(index[key].get(value, ())):
                    hits.setdefault(identity, key)

            if not hits:
                result.outcomes.append(MatchOutcome(record=record))
            elif len(hits) == 1:
                identity, key = next(iter(hits.items()))
                result.outcomes.append(MatchOutcome(record=record, identity=identity, matched_on=key))
            else:
                conflicting = tuple(sorted(hits))
                logger.warning(
                    f"Ambiguous match for {record.source.value} record "
                    f"(pmid={record.pmid}, pmcid={record.pmcid}, doi={record.doi}): identities {list(conflicting)}"
                )
                result.outcomes.append(MatchOutcome(record=record, ambiguous=True))
                result.anomalies.append(AmbiguousMatch(record=record, conflicting_ids=conflicting))

        return result

    def mint_identities(
        self,
        unmatched_records: Sequence[CitationRecord],
        starting_id: int,
    ) -> list[int]:
        """
        Assign fresh identities to records the matcher could not resolve.

        Identities start at ``starting_id`` and increase strictly in order of
        first appearance. Records sharing an identifier value get the same
        identity; records without identifiers always get their own.

        Returns:
            One identity per input record, in input order
        """
        if starting_id < 1:
            msg = f"starting_id must be positive, got {starting_id}"
            raise ValueError(msg)

        uf = UnionFind(len(unmatched_records))
        first_seen: dict[tuple[str, str], int] = {}
        for i, record in enumerate(unmatched_records):
            for key in self._match_keys:
                value = record.identifier(key)
                if value is None:
                    continue
                if (key, value) in first_seen:
                    uf.union(i, first_seen[(key, value)])
                else:
                    first_seen[(key, value)] = i

        group_ids: dict[int, int] = {}
        next_id = starting_id
        assignments: list[int] = []
        for i in range(len(unmatched_records)):
            root = uf.find(i)
            if root not in group_ids:
                group_ids[root] = next_id
                next_id += 1
            assignments.append(group_ids[root])
        return assignments

    def _split_groups(
        self,
        records: Sequence[CitationRecord],
        identity_of: dict[int, int],
    ) -> dict[int, tuple[int, ...]]:
        """
        Assigned batch records whose shared-identifier group spans several identities.

        Returns:
            record index -> sorted identities of its group
        """
        assigned = sorted(identity_of)
        uf = UnionFind(len(assigned))
        first_seen: dict[tuple[str, str], int] = {}
        for pos, i in enumerate(assigned):
            for key in self._match_keys:
                value = records[i].identifier(key)
                if value is None:
                    continue
                if (key, value) in first_seen:
                    uf.union(pos, first_seen[(key, value)])
                else:
                    first_seen[(key, value)] = pos

        group_ids: dict[int, set[int]] = defaultdict(set)
        for pos, i in enumerate(assigned):
            group_ids[uf.find(pos)].add(identity_of[i])
        return {
            i: tuple(sorted(group_ids[uf.find(pos)]))
            for pos, i in enumerate(assigned)
            if len(group_ids[uf.find(pos)]) > 1
        }

    def fold(
        self,
        table: MatchTable,
        records: Sequence[CitationRecord],
        source: Source | None = None,
    ) -> FoldResult:
        """
        Fold one batch of records into the MatchTable.

        Args:
            table: Accumulated table (not modified)
            records: Records of the next source
            source: Source of the batch, for statistics and logging

        Returns:
            FoldResult whose table is ``table`` followed by the batch rows
        """
        first = self.match(records, table)
        anomalies = list(first.anomalies)
        identity_of: dict[int, int] = {}
        ambiguous: set[int] = set()
        for i, outcome in enumerate(first.outcomes):
            if outcome.identity is not None:
                identity_of[i] = outcome.identity
            elif outcome.ambiguous:
                ambiguous.add(i)

        # Intra-batch closure: a pending record can only hit rows assigned
        # in the previous round, since it missed every earlier one.
        newly_assigned = sorted(identity_of)
        pending = [i for i in range(len(records)) if i not in identity_of and i not in ambiguous]
        while pending and newly_assigned:
            reference = [MatchRow.from_record(identity_of[i], records[i]) for i in newly_assigned]
            step = self.match([records[i] for i in pending], reference)
            anomalies.extend(step.anomalies)
            newly_assigned = []
            still_pending = []
            for i, outcome in zip(pending, step.outcomes, strict=True):
                if outcome.identity is not None:
                    identity_of[i] = outcome.identity
                    newly_assigned.append(i)
                elif outcome.ambiguous:
                    ambiguous.add(i)
                else:
                    still_pending.append(i)
            pending = still_pending

        # Batch records sharing a value must not keep different identities
        for i, conflicting in self._split_groups(records, identity_of).items():
            record = records[i]
            logger.warning(
                f"Ambiguous match for {record.source.value} record "
                f"(pmid={record.pmid}, pmcid={record.pmcid}, doi={record.doi}): "
                f"batch records sharing its identifiers hit identities {list(conflicting)}"
            )
            anomalies.append(AmbiguousMatch(record=record, conflicting_ids=conflicting))
            del identity_of[i]
            ambiguous.add(i)

        matched_count = len(identity_of)
        remainder = [i for i in range(len(records)) if i not in identity_of]
        minted = self.mint_identities([records[i] for i in remainder], table.max_id + 1) if remainder else []
        for i, identity in zip(remainder, minted, strict=True):
            identity_of[i] = identity

        rows = [MatchRow.from_record(identity_of[i], record) for i, record in enumerate(records)]
        stats = FoldStats(
            source=source,
            input_records=len(records),
            matched=matched_count,
            minted_records=len(remainder),
            new_identities=len(set(minted)),
            ambiguous=len(ambiguous),
        )
        label = source.value if source else "batch"
        logger.info(
            f"Folded {stats.input_records} {label} records: {stats.matched} matched, "
            f"{stats.new_identities} new identities, {stats.ambiguous} ambiguous"
        )
        return FoldResult(table=table.extend(rows), rows=rows, anomalies=anomalies, stats=stats)

    def build_match_table(
        self,
        batches: Iterable[tuple[Source, Sequence[CitationRecord]]],
    ) -> ReconciliationResult:
        """
        Reconcile several sources, in order, starting from an empty table.

        The first source seeds identities 1..N; each later source is matched
        against everything folded in before it.
        """
        table = MatchTable()
        anomalies: list[AmbiguousMatch] = []
        stats: list[FoldStats] = []
        for source, records in batches:
            folded = self.fold(table, records, source=source)
            table = folded.table
            anomalies.extend(folded.anomalies)
            stats.append(folded.stats)
        return ReconciliationResult(table=table, anomalies=anomalies, stats=stats)


# =============================================================================
# Convenience Functions
# =============================================================================


def match_records(
    new_records: Sequence[CitationRecord],
    reference: Iterable[MatchRow],
    match_keys: Sequence[str] = IDENTIFIER_FIELDS,
) -> MatchResult:
    """Match records against reference rows with the given keys."""
    return IdentifierMatcher(match_keys).match(new_records, reference)


def build_match_table(
    batches: Iterable[tuple[Source, Sequence[CitationRecord]]],
    match_keys: Sequence[str] = IDENTIFIER_FIELDS,
) -> ReconciliationResult:
    """Reconcile sources in order into one MatchTable."""
    return IdentifierMatcher(match_keys).build_match_table(batches)
