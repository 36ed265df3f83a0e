"""
AnalysisRunner - one reproducible literature search run.

Steps:
1. Search every term on every source (raw responses cached)
2. Convert PubMed / PMC ids to PMID / PMCID / DOI triples (cached)
3. Normalize hits into per-source record tables
4. Count hits, record NCBI query translations and failed searches
5. Keep the best searches, collapse hits found by several of them
6. Fold the sources into one MatchTable
7. Write tables and plots
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from litsearch.application.matching import IdentifierMatcher, ReconciliationResult
from litsearch.application.reporting import tables as report_tables
from litsearch.application.search import (
    SearchAggregator,
    SearchCollaborator,
    collapse_searches,
    normalize_outcomes,
)
from litsearch.domain.entities import AmbiguousMatch, CitationRecord, IdentifierSet, SearchOutcome, Source
from litsearch.infrastructure.cache import ResponseCache
from litsearch.infrastructure.ncbi import IdConverterClient, PMCSearcher, PubMedSearcher
from litsearch.infrastructure.ncbi.base import DEFAULT_EMAIL
from litsearch.infrastructure.sources import EuropePMCClient
from litsearch.infrastructure.storage import (
    read_records,
    write_match_table,
    write_records,
    write_table,
)
from litsearch.shared.settings import RunConfig

logger = logging.getLogger(__name__)

# Output file names
SEARCH_COUNTS_FILE = "search_res_n.csv"
ACTUAL_SEARCH_FILE = "actual_search_terms.csv"
FAILURES_FILE = "search_failures.csv"
SEARCH_NUM_FILE = "search_num.csv"
MATCH_TABLE_FILE = "src_comparison.csv"
AMBIGUOUS_FILE = "ambiguous_matches.csv"
SOURCE_OVERLAP_FILE = "source_overlap_n.csv"
SOURCE_OVERLAP_PLOT = "search_src_overlap-upset.png"
SOURCE_VENN_PLOT = "search_src_overlap-venn.png"
TOTAL_HITS_PLOT = "total_hits-graph.png"
RUN_CONFIG_FILE = "run_config.yaml"

# ID converter idtype and cache namespace per NCBI source
_ID_TYPES = {Source.PUBMED: "pmid", Source.PMC: "pmcid"}


def records_file(source: Source) -> str:
    return f"{source.value}_search_results.csv"


def ids_namespace(source: Source) -> str:
    return f"{source.value}_ids_raw"


@dataclass
class RunReport:
    """What one run produced."""

    outcomes: dict[Source, dict[str, SearchOutcome]] = field(default_factory=dict)
    records: dict[Source, list[CitationRecord]] = field(default_factory=dict)
    reconciliation: ReconciliationResult | None = None
    failures: list[dict[str, Any]] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)

    @property
    def anomalies(self) -> list[AmbiguousMatch]:
        return self.reconciliation.anomalies if self.reconciliation else []

    def summary(self) -> dict[str, Any]:
        return {
            "records": {src.value: len(recs) for src, recs in self.records.items()},
            "distinct_publications": self.reconciliation.distinct_publications if self.reconciliation else 0,
            "failed_searches": len(self.failures),
            "ambiguous_matches": len(self.anomalies),
            "files_written": len(self.written),
        }


def default_searchers(config: RunConfig) -> list[SearchCollaborator]:
    """Europe PMC, PubMed Central and PubMed collaborators for a config."""
    return [
        EuropePMCClient(email=config.email),
        PMCSearcher(email=config.email or DEFAULT_EMAIL, api_key=config.api_key),
        PubMedSearcher(email=config.email or DEFAULT_EMAIL, api_key=config.api_key),
    ]


def id_map_from_cache(data: Mapping[str, Any]) -> dict[str, IdentifierSet]:
    return {
        key: IdentifierSet(pmid=value.get("pmid"), pmcid=value.get("pmcid"), doi=value.get("doi"))
        for key, value in data.items()
    }


class AnalysisRunner:
    """
    Runs the search / reconcile / report pipeline for one RunConfig.

    Collaborators are injectable; by default the real Europe PMC, PMC,
    PubMed and ID converter clients are used.
    """

    def __init__(
        self,
        config: RunConfig,
        searchers: Sequence[SearchCollaborator] | None = None,
        id_converter: IdConverterClient | None = None,
        cache: ResponseCache | None = None,
        make_plots: bool = True,
    ):
        self.config = config
        self._searchers = list(searchers) if searchers is not None else None
        self._id_converter = id_converter
        self._cache = cache
        self._make_plots = make_plots

    async def run(self, refresh: bool = False) -> RunReport:
        """
        Execute the whole pipeline.

        Args:
            refresh: Ignore cached responses and stored per-source tables

        Raises:
            ConfigurationError: Invalid configuration
        """
        config = self.config
        config.validate()
        config.ensure_dirs()

        cache = self._cache if self._cache is not None else ResponseCache(config.cache_dir)
        if refresh:
            cache.clear()

        owned: list[Any] = []
        searchers = self._searchers
        if searchers is None:
            searchers = default_searchers(config)
            owned.extend(searchers)
        converter = self._id_converter
        if converter is None:
            converter = IdConverterClient(email=config.email, api_key=config.api_key)
            owned.append(converter)

        run_report = RunReport()
        try:
            aggregator = SearchAggregator(searchers, cache=cache, limit=config.limit)
            run_report.outcomes = await aggregator.search_all(config.search_terms)
            cache.save()

            for source in config.source_order:
                outcomes = run_report.outcomes.get(source, {})
                run_report.records[source] = await self._source_records(source, outcomes, cache, converter, refresh)
            cache.save()
            logger.info(f"Response cache: {cache.stats}")
        finally:
            for client in owned:
                close = getattr(client, "close", None)
                if close is not None:
                    await close()

        self._write_config(run_report)
        self._write_records(run_report)
        self._write_search_tables(run_report)
        run_report.reconciliation = self._reconcile(run_report)
        self._write_match_tables(run_report)
        if self._make_plots:
            self._write_plots(run_report)

        logger.info(f"Run complete: {run_report.summary()}")
        return run_report

    # ── Records ──────────────────────────────────────────────────────────

    async def _source_records(
        self,
        source: Source,
        outcomes: Mapping[str, SearchOutcome],
        cache: ResponseCache,
        converter: IdConverterClient,
        refresh: bool,
    ) -> list[CitationRecord]:
        path = self.config.data_dir / records_file(source)
        if path.exists() and not refresh and all(o.ok for o in outcomes.values()):
            stored = read_records(path)
            expected = {search_id for search_id, o in outcomes.items() if o.hits}
            if {r.search_id for r in stored} == expected:
                logger.info(f"Reading stored {source.label} records from {path}")
                return stored
            logger.info(f"Stored {source.label} records do not match the current search terms, rebuilding")

        id_map = None
        if source in _ID_TYPES:
            hits = [str(h) for o in outcomes.values() for h in o.hits]
            id_map = await self._convert_ids(source, hits, cache, converter)
        return normalize_outcomes(source, outcomes, id_map)

    async def _convert_ids(
        self,
        source: Source,
        ids: list[str],
        cache: ResponseCache,
        converter: IdConverterClient,
    ) -> dict[str, IdentifierSet]:
        """Resolve ids through the cache first, the converter for the rest."""
        namespace = ids_namespace(source)
        unique = list(dict.fromkeys(ids))
        cached, missing = cache.get_many(namespace, unique)
        logger.info(f"{source.label} ID conversion: {len(cached)} cached, {len(missing)} to fetch")

        if missing:
            converted = await converter.convert(missing, idtype=_ID_TYPES[source])
            for key, resolved in converted.records.items():
                value = {"pmid": resolved.pmid, "pmcid": resolved.pmcid, "doi": resolved.doi}
                cache.set(namespace, key, value)
                cached[key] = value
            if converted.failed:
                logger.warning(f"{source.label}: {len(converted.failed)} ids could not be converted")
        return id_map_from_cache(cached)

    def _best_records(
        self,
        records: Mapping[Source, Sequence[CitationRecord]],
    ) -> list[tuple[Source, list[CitationRecord]]]:
        """Best-search records per source, collapsed, in fold order."""
        best = self.config.best_search
        return [(source, collapse_searches(records.get(source, []), best)) for source in self.config.source_order]

    def _reconcile(self, run_report: RunReport) -> ReconciliationResult:
        matcher = IdentifierMatcher(self.config.match_keys)
        return matcher.build_match_table(self._best_records(run_report.records))

    # ── Output ───────────────────────────────────────────────────────────

    def _write(self, run_report: RunReport, name: str, rows: Iterable[Mapping[str, Any]], columns: list[str]) -> None:
        run_report.written.append(write_table(self.config.data_dir / name, rows, columns))

    def _write_config(self, run_report: RunReport) -> None:
        """Store the effective configuration next to the tables it produced."""
        path = self.config.data_dir / RUN_CONFIG_FILE
        path.write_text(self.config.to_yaml(), encoding="utf-8")
        run_report.written.append(path)

    def _write_records(self, run_report: RunReport) -> None:
        for source, records in run_report.records.items():
            run_report.written.append(write_records(self.config.data_dir / records_file(source), records))

    def _write_search_tables(self, run_report: RunReport) -> None:
        config = self.config
        terms = config.search_terms

        counts = report_tables.search_counts(run_report.records, terms)
        self._write(run_report, SEARCH_COUNTS_FILE, counts, report_tables.SEARCH_COUNT_COLUMNS)

        translations = report_tables.actual_searches(run_report.outcomes, terms)
        self._write(run_report, ACTUAL_SEARCH_FILE, translations, report_tables.ACTUAL_SEARCH_COLUMNS)

        run_report.failures = report_tables.failure_rows(run_report.outcomes)
        self._write(run_report, FAILURES_FILE, run_report.failures, report_tables.FAILURE_COLUMNS)

        labels = report_tables.search_labels(list(terms), config.search_labels)
        legend = report_tables.search_number_rows(labels, terms)
        self._write(run_report, SEARCH_NUM_FILE, legend, report_tables.SEARCH_NUMBER_COLUMNS)

    def _write_match_tables(self, run_report: RunReport) -> None:
        result = run_report.reconciliation
        if result is None:
            return
        run_report.written.append(write_match_table(self.config.data_dir / MATCH_TABLE_FILE, result.table))

        anomalies = report_tables.ambiguous_rows(result.anomalies)
        self._write(run_report, AMBIGUOUS_FILE, anomalies, report_tables.AMBIGUOUS_COLUMNS)

        overlaps = report_tables.source_overlap(result.table, self.config.source_order)
        rows = report_tables.overlap_rows(overlaps)
        self._write(run_report, SOURCE_OVERLAP_FILE, rows, report_tables.OVERLAP_COLUMNS)

    def _write_plots(self, run_report: RunReport) -> None:
        """Draw the plots; a failing plot is logged and skipped."""
        from litsearch.application.reporting import plots

        config = self.config
        graphics = config.graphics_dir
        labels = report_tables.search_labels(list(config.search_terms), config.search_labels)

        jobs: list[tuple[str, Any]] = []
        for source, records in run_report.records.items():
            overlap = report_tables.search_overlap(records, labels)
            jobs.append((f"{source.value}_search_overlap.png", lambda p, o=overlap: plots.plot_overlap(o, p)))
            filtered = report_tables.search_overlap(records, labels, min_count=config.min_count)
            jobs.append(
                (
                    f"{source.value}_search_overlap-min{config.min_count}.png",
                    lambda p, o=filtered: plots.plot_overlap(o, p, figsize=(6.6, 3)),
                )
            )

        if run_report.reconciliation is not None:
            src_overlap = report_tables.source_overlap(run_report.reconciliation.table, config.source_order)
            jobs.append((SOURCE_OVERLAP_PLOT, lambda p: plots.plot_overlap(src_overlap, p, xlabel="Source")))
            source_labels = [s.label for s in config.source_order]
            jobs.append((SOURCE_VENN_PLOT, lambda p: plots.plot_source_venn(src_overlap, p, categories=source_labels)))

        totals = report_tables.total_hits(run_report.records, config.best_search)
        jobs.append((TOTAL_HITS_PLOT, lambda p: plots.plot_total_hits(totals, p, labels=config.search_terms)))

        for name, draw in jobs:
            try:
                run_report.written.append(draw(graphics / name))
            except Exception:
                logger.exception(f"Failed to draw {name}")


async def run_analysis(
    config: RunConfig,
    searchers: Sequence[SearchCollaborator] | None = None,
    refresh: bool = False,
    make_plots: bool = True,
) -> RunReport:
    """Convenience wrapper around AnalysisRunner.run."""
    return await AnalysisRunner(config, searchers=searchers, make_plots=make_plots).run(refresh=refresh)


def reconcile_tables(
    paths: Iterable[str | Path],
    source_order: Sequence[Source],
    match_keys: Sequence[str],
    search_ids: Iterable[str] | None = None,
) -> ReconciliationResult:
    """
    Reconcile previously written per-source tables offline.

    Records are grouped by their ``src`` column and folded in ``source_order``.
    """
    by_source: dict[Source, list[CitationRecord]] = {}
    for path in paths:
        for record in read_records(path):
            by_source.setdefault(record.source, []).append(record)

    selected = list(search_ids) if search_ids is not None else None
    batches = [
        (source, collapse_searches(by_source[source], selected)) for source in source_order if source in by_source
    ]
    return IdentifierMatcher(match_keys).build_match_table(batches)
