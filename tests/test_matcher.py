"""Tests for IdentifierMatcher - match, mint, fold and build_match_table."""

import pytest

from litsearch.application.matching import (
    IdentifierMatcher,
    UnionFind,
    build_match_table,
    match_records,
)
from litsearch.domain.entities import MatchRow, MatchTable, Source

EPMC, PMC, PM = Source.EUROPE_PMC, Source.PMC, Source.PUBMED


def table_of(*rows):
    return MatchTable(tuple(rows))


def ids_by_source(table):
    return {src: [row.id for row in table if row.src is src] for src in table.sources}


# ============================================================
# UnionFind
# ============================================================


class TestUnionFind:
    def test_initially_disjoint(self):
        uf = UnionFind(3)
        assert len({uf.find(i) for i in range(3)}) == 3

    def test_union_is_transitive(self):
        uf = UnionFind(4)
        assert uf.union(0, 1) is True
        assert uf.union(1, 2) is True
        assert uf.find(0) == uf.find(2)
        assert uf.find(3) != uf.find(0)

    def test_union_same_set_returns_false(self):
        uf = UnionFind(2)
        uf.union(0, 1)
        assert uf.union(1, 0) is False


# ============================================================
# match
# ============================================================


class TestMatch:
    def test_match_on_shared_pmid(self, record_factory):
        reference = table_of(MatchRow(id=7, src=EPMC, pmid="111"))
        result = IdentifierMatcher().match([record_factory(PM, pmid="111")], reference)

        outcome = result.outcomes[0]
        assert outcome.identity == 7
        assert outcome.matched_on == "pmid"
        assert outcome.matched
        assert result.anomalies == []

    def test_match_reports_first_key_in_order(self, record_factory):
        reference = table_of(MatchRow(id=1, src=EPMC, pmid="111", doi="10.1/a"))
        record = record_factory(PM, pmid="111", doi="10.1/a")

        assert IdentifierMatcher().match([record], reference).outcomes[0].matched_on == "pmid"
        by_doi = IdentifierMatcher(("doi", "pmid")).match([record], reference)
        assert by_doi.outcomes[0].matched_on == "doi"

    def test_absent_values_never_match(self, record_factory):
        reference = table_of(MatchRow(id=1, src=EPMC, pmid=None, doi="10.1/a"))
        result = IdentifierMatcher().match([record_factory(PM, pmid=None, doi="10.1/b")], reference)
        assert result.outcomes[0].identity is None
        assert not result.outcomes[0].ambiguous

    def test_values_are_trimmed(self, record_factory):
        reference = table_of(MatchRow(id=3, src=EPMC, pmcid="PMC123"))
        result = IdentifierMatcher().match([record_factory(PMC, pmcid="  PMC123 ")], reference)
        assert result.outcomes[0].identity == 3

    def test_empty_string_is_absent(self, record_factory):
        reference = table_of(MatchRow(id=1, src=EPMC, doi=""))
        result = IdentifierMatcher().match([record_factory(PM, doi="   ")], reference)
        assert result.unmatched and not result.matched

    def test_ambiguous_match_is_flagged_not_assigned(self, record_factory):
        reference = table_of(
            MatchRow(id=1, src=EPMC, pmid="1"),
            MatchRow(id=2, src=EPMC, doi="d2"),
        )
        record = record_factory(PM, pmid="1", doi="d2")
        result = IdentifierMatcher().match([record], reference)

        outcome = result.outcomes[0]
        assert outcome.identity is None
        assert outcome.ambiguous is True
        assert len(result.anomalies) == 1
        assert result.anomalies[0].record is record
        assert result.anomalies[0].conflicting_ids == (1, 2)

    def test_ambiguous_match_logs_warning(self, record_factory, caplog):
        reference = table_of(MatchRow(id=1, src=EPMC, pmid="1"), MatchRow(id=2, src=EPMC, doi="d2"))
        with caplog.at_level("WARNING"):
            IdentifierMatcher().match([record_factory(PM, pmid="1", doi="d2")], reference)
        assert "Ambiguous match" in caplog.text

    def test_multiple_rows_same_identity_is_not_ambiguous(self, record_factory):
        reference = table_of(
            MatchRow(id=4, src=EPMC, pmid="1"),
            MatchRow(id=4, src=PMC, doi="d"),
        )
        result = IdentifierMatcher().match([record_factory(PM, pmid="1", doi="d")], reference)
        assert result.outcomes[0].identity == 4
        assert result.anomalies == []

    def test_outcomes_preserve_input_order(self, record_factory):
        reference = table_of(MatchRow(id=1, src=EPMC, pmid="1"))
        records = [record_factory(PM, pmid="9"), record_factory(PM, pmid="1")]
        result = IdentifierMatcher().match(records, reference)
        assert [o.record for o in result.outcomes] == records
        assert [o.identity for o in result.outcomes] == [None, 1]

    def test_match_keys_restrict_matching(self, record_factory):
        reference = table_of(MatchRow(id=1, src=EPMC, doi="d"))
        result = match_records([record_factory(PM, doi="d")], reference, match_keys=("pmid",))
        assert result.outcomes[0].identity is None

    def test_unknown_match_key_raises(self):
        with pytest.raises(ValueError, match="Unknown match keys"):
            IdentifierMatcher(("isbn",))

    def test_empty_match_keys_raise(self):
        with pytest.raises(ValueError):
            IdentifierMatcher(())


# ============================================================
# mint_identities
# ============================================================


class TestMintIdentities:
    def test_sequential_from_starting_id(self, record_factory):
        records = [record_factory(pmid="1"), record_factory(pmid="2"), record_factory(pmid="3")]
        assert IdentifierMatcher().mint_identities(records, 10) == [10, 11, 12]

    def test_shared_identifier_shares_identity(self, record_factory):
        records = [
            record_factory(doi="x"),
            record_factory(pmid="5"),
            record_factory(pmid="9", doi="x"),
        ]
        assert IdentifierMatcher().mint_identities(records, 1) == [1, 2, 1]

    def test_transitive_grouping_within_batch(self, record_factory):
        records = [
            record_factory(pmid="1"),
            record_factory(doi="d"),
            record_factory(pmid="1", doi="d"),
        ]
        assert IdentifierMatcher().mint_identities(records, 1) == [1, 1, 1]

    def test_identityless_records_always_fresh(self, record_factory):
        records = [record_factory(), record_factory(), record_factory()]
        assert IdentifierMatcher().mint_identities(records, 1) == [1, 2, 3]

    def test_non_positive_starting_id_raises(self, record_factory):
        with pytest.raises(ValueError):
            IdentifierMatcher().mint_identities([record_factory(pmid="1")], 0)

    def test_empty_input(self):
        assert IdentifierMatcher().mint_identities([], 1) == []


# ============================================================
# fold
# ============================================================


class TestFold:
    def test_seed_gets_one_to_n(self, record_factory):
        records = [record_factory(EPMC, pmid=str(i)) for i in range(1, 5)]
        folded = IdentifierMatcher().fold(MatchTable(), records, source=EPMC)
        assert [row.id for row in folded.table] == [1, 2, 3, 4]
        assert folded.stats.new_identities == 4
        assert folded.stats.matched == 0

    def test_fold_does_not_mutate_input_table(self, record_factory):
        table = table_of(MatchRow(id=1, src=EPMC, pmid="1"))
        folded = IdentifierMatcher().fold(table, [record_factory(PM, pmid="2")])
        assert len(table) == 1
        assert len(folded.table) == 2

    def test_new_identities_start_after_max(self, record_factory):
        table = table_of(MatchRow(id=1, src=EPMC, pmid="1"), MatchRow(id=5, src=EPMC, pmid="5"))
        folded = IdentifierMatcher().fold(table, [record_factory(PM, pmid="7")])
        assert folded.rows[0].id == 6

    def test_intra_batch_closure(self, record_factory):
        table = table_of(MatchRow(id=1, src=EPMC, pmid="1"))
        batch = [record_factory(PM, doi="d"), record_factory(PM, pmid="1", doi="d")]
        folded = IdentifierMatcher().fold(table, batch)
        assert [row.id for row in folded.rows] == [1, 1]
        assert folded.stats.matched == 2
        assert folded.stats.new_identities == 0

    def test_closure_chain_across_rounds(self, record_factory):
        table = table_of(MatchRow(id=1, src=EPMC, pmid="1"))
        batch = [
            record_factory(PM, pmcid="PMC3"),
            record_factory(PM, doi="d", pmcid="PMC3"),
            record_factory(PM, pmid="1", doi="d"),
        ]
        folded = IdentifierMatcher().fold(table, batch)
        assert [row.id for row in folded.rows] == [1, 1, 1]

    def test_batch_records_linking_two_identities_are_flagged(self, record_factory):
        result = build_match_table(
            [
                (EPMC, [record_factory(EPMC, pmid="1"), record_factory(EPMC, doi="d2")]),
                (PMC, [record_factory(PMC, pmid="1", pmcid="PMCZ"), record_factory(PMC, doi="d2", pmcid="PMCZ")]),
            ]
        )
        pmc_rows = [row for row in result.table if row.src is PMC]

        assert len({row.id for row in pmc_rows}) == 1
        assert pmc_rows[0].id == 3
        assert len(result.anomalies) == 2
        assert all(a.conflicting_ids == (1, 2) for a in result.anomalies)
        assert result.stats[1].ambiguous == 2
        assert result.stats[1].matched == 0

    def test_ambiguous_record_gets_fresh_identity(self, record_factory):
        table = table_of(MatchRow(id=1, src=EPMC, pmid="1"), MatchRow(id=2, src=EPMC, doi="d2"))
        folded = IdentifierMatcher().fold(table, [record_factory(PM, pmid="1", doi="d2")], source=PM)

        assert folded.rows[0].id == 3
        assert len(folded.anomalies) == 1
        assert folded.anomalies[0].conflicting_ids == (1, 2)
        assert folded.stats.to_dict() == {
            "source": "pm",
            "input_records": 1,
            "matched": 0,
            "minted_records": 1,
            "new_identities": 1,
            "ambiguous": 1,
        }

    def test_rows_keep_record_fields(self, record_factory):
        record = record_factory(PM, search_id="ns_id|website", pmid="1", source_native_id="X1")
        row = IdentifierMatcher().fold(MatchTable(), [record]).rows[0]
        assert row.src is PM
        assert row.search_id == "ns_id|website"
        assert row.source_native_id == "X1"
        assert row.to_record() == record


# ============================================================
# build_match_table
# ============================================================


class TestBuildMatchTable:
    def test_transitive_identity_across_sources(self, record_factory):
        result = build_match_table(
            [
                (EPMC, [record_factory(EPMC, pmid="1")]),
                (PMC, [record_factory(PMC, pmid="1", doi="d1")]),
                (PM, [record_factory(PM, doi="d1")]),
            ]
        )
        assert result.table.identities == {1}
        assert result.distinct_publications == 1

    def test_disjoint_records_get_distinct_identities(self, record_factory):
        result = build_match_table(
            [
                (EPMC, [record_factory(EPMC, pmid="1"), record_factory(EPMC, doi="a")]),
                (PMC, [record_factory(PMC, pmcid="PMC9")]),
                (PM, [record_factory(PM, pmid="2")]),
            ]
        )
        assert ids_by_source(result.table) == {EPMC: [1, 2], PMC: [3], PM: [4]}

    def test_identities_are_unique_and_monotonic(self, record_factory):
        result = build_match_table(
            [
                (EPMC, [record_factory(EPMC, pmid=str(i)) for i in range(5)]),
                (PMC, [record_factory(PMC, pmid=str(i)) for i in range(3, 8)]),
                (PM, [record_factory(PM, pmid=str(i)) for i in range(6, 10)]),
            ]
        )
        first_seen = []
        for row in result.table:
            if row.id not in first_seen:
                first_seen.append(row.id)
        assert first_seen == list(range(1, 11))

    def test_records_without_identifiers_are_never_merged(self, record_factory):
        result = build_match_table(
            [
                (EPMC, [record_factory(EPMC, source_native_id="A")]),
                (PM, [record_factory(PM, source_native_id="A")]),
            ]
        )
        assert [row.id for row in result.table] == [1, 2]

    def test_stats_per_source(self, record_factory):
        result = build_match_table(
            [
                (EPMC, [record_factory(EPMC, pmid="1")]),
                (PM, [record_factory(PM, pmid="1"), record_factory(PM, pmid="2")]),
            ]
        )
        assert [s.source for s in result.stats] == [EPMC, PM]
        assert result.stats[1].matched == 1
        assert result.stats[1].new_identities == 1

    def test_idempotent(self, record_factory):
        batches = [
            (EPMC, [record_factory(EPMC, pmid="1", doi="a"), record_factory(EPMC, doi="b")]),
            (PMC, [record_factory(PMC, pmcid="PMC1", doi="b"), record_factory(PMC, pmcid="PMC2")]),
            (PM, [record_factory(PM, pmid="1"), record_factory(PM, pmid="3")]),
        ]
        first = build_match_table(batches)
        second = build_match_table(batches)
        assert first.table == second.table

    def test_empty_batches(self):
        result = IdentifierMatcher().build_match_table([(EPMC, []), (PM, [])])
        assert len(result.table) == 0
        assert result.table.max_id == 0
