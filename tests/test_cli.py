"""Tests for the litsearch command line interface."""

from unittest.mock import AsyncMock, patch

import pytest

from litsearch.application.pipeline import RunReport
from litsearch.domain.entities import Source
from litsearch.infrastructure.storage import read_match_table, write_records
from litsearch.presentation.cli import build_parser, load_config, main


@pytest.fixture
def tables(temp_dir, record_factory):
    epmc = write_records(
        temp_dir / "epmc_search_results.csv",
        [record_factory(Source.EUROPE_PMC, "ns_id", pmid="1", source_native_id="1")],
    )
    pm = write_records(
        temp_dir / "pm_search_results.csv",
        [
            record_factory(Source.PUBMED, "ns_id", pmid="1"),
            record_factory(Source.PUBMED, "github", pmid="2"),
        ],
    )
    return [epmc, pm]


class TestParser:
    def test_run_overrides(self, temp_dir):
        args = build_parser().parse_args(["run", "--data-dir", str(temp_dir), "--limit", "50", "--email", "a@b.org"])
        config = load_config(args)
        assert config.data_dir == temp_dir
        assert config.limit == 50
        assert config.email == "a@b.org"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMatchCommand:
    def test_writes_match_table(self, tables, temp_dir, capsys):
        output = temp_dir / "out" / "src_comparison.csv"
        assert main(["match", *map(str, tables), "-o", str(output)]) == 0

        table = read_match_table(output)
        assert len(table) == 2
        assert len(table.identities) == 1
        assert "1 distinct publications" in capsys.readouterr().out

    def test_all_searches(self, tables, temp_dir):
        output = temp_dir / "all.csv"
        assert main(["match", *map(str, tables), "-o", str(output), "--all-searches"]) == 0
        assert len(read_match_table(output).identities) == 2

    def test_bad_table_returns_error(self, temp_dir):
        bad = temp_dir / "bad.csv"
        bad.write_text("src,pmid,pmcid,doi\nscopus,1,,\n", encoding="utf-8")
        assert main(["match", str(bad), "-o", str(temp_dir / "out.csv")]) == 1


class TestRunCommand:
    def test_config_error_returns_2(self, temp_dir):
        config = temp_dir / "config.yaml"
        config.write_text("best_search: [nope]\n", encoding="utf-8")
        assert main(["run", "--config", str(config)]) == 2

    def test_invalid_limit_returns_2(self):
        assert main(["run", "--limit", "0"]) == 2

    def test_run_prints_summary(self, temp_dir, capsys):
        report = RunReport(records={Source.PUBMED: []})
        with patch("litsearch.presentation.cli.run_analysis", AsyncMock(return_value=report)) as run_analysis:
            code = main(["run", "--data-dir", str(temp_dir / "data"), "--no-plots", "--refresh"])

        assert code == 0
        assert run_analysis.call_args.kwargs == {"refresh": True, "make_plots": False}
        out = capsys.readouterr().out
        assert "Distinct publications: 0" in out
        assert "PubMed: 0 hits" in out
