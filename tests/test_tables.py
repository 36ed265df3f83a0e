"""Tests for CSV table storage."""

import pytest

from litsearch.domain.entities import MatchRow, MatchTable, Source
from litsearch.infrastructure.storage import (
    MATCH_COLUMNS,
    read_match_table,
    read_records,
    read_table,
    write_match_table,
    write_records,
    write_table,
)
from litsearch.shared.exceptions import ParseError


class TestWriteTable:
    def test_columns_and_none_cells(self, temp_dir):
        path = write_table(temp_dir / "out" / "t.csv", [{"a": 1, "b": None, "extra": "x"}], ["a", "b"])
        assert path.read_text(encoding="utf-8").splitlines() == ["a,b", "1,"]

    def test_header_only_for_no_rows(self, temp_dir):
        path = write_table(temp_dir / "t.csv", [], ["src", "search_id", "error"])
        assert read_table(path) == []
        assert path.read_text(encoding="utf-8").strip() == "src,search_id,error"

    def test_missing_required_column(self, temp_dir):
        path = write_table(temp_dir / "t.csv", [{"a": 1}], ["a"])
        with pytest.raises(ParseError, match="missing columns"):
            read_table(path, required=["b"])


class TestRecords:
    def test_round_trip(self, temp_dir, record_factory):
        records = [
            record_factory(Source.EUROPE_PMC, "generic_name", pmid="1", doi="10.1/a", source_native_id="1"),
            record_factory(Source.EUROPE_PMC, "website", pmcid="PMC2"),
        ]
        path = write_records(temp_dir / "epmc_search_results.csv", records)
        assert read_records(path) == records

    def test_na_cells_are_absent(self, temp_dir):
        path = temp_dir / "pm.csv"
        path.write_text("src,search_id,pmid,pmcid,doi\npm,ns_id,1,NA,\n", encoding="utf-8")
        record = read_records(path)[0]
        assert record.pmcid is None
        assert record.doi is None
        assert record.source_native_id is None

    def test_unknown_source(self, temp_dir):
        path = temp_dir / "bad.csv"
        path.write_text("src,search_id,pmid,pmcid,doi\nscopus,x,1,,\n", encoding="utf-8")
        with pytest.raises(ParseError, match="unknown source"):
            read_records(path)


class TestMatchTable:
    def test_round_trip(self, temp_dir):
        table = MatchTable(
            (
                MatchRow(id=1, src=Source.EUROPE_PMC, pmid="1", search_id="ns_id", source_native_id="1"),
                MatchRow(id=1, src=Source.PUBMED, pmid="1", doi="10.1/a", search_id="ns_id|website"),
                MatchRow(id=2, src=Source.PMC, pmcid="PMC9"),
            )
        )
        path = write_match_table(temp_dir / "src_comparison.csv", table)

        header = path.read_text(encoding="utf-8").splitlines()[0]
        assert header == ",".join(MATCH_COLUMNS)
        assert read_match_table(path) == table

    def test_invalid_id(self, temp_dir):
        path = temp_dir / "m.csv"
        path.write_text("id,src,pmid,pmcid,doi,search_id,source_native_id\n0,pm,1,,,,\n", encoding="utf-8")
        with pytest.raises(ParseError, match="invalid id"):
            read_match_table(path)
