"""
litsearch command line interface.

Usage:
    # Full run with the default Disease Ontology search terms
    litsearch run --email your@email.com

    # Custom terms, re-query everything, skip plots
    litsearch run --config searches.yaml --refresh --no-plots

    # Reconcile stored per-source tables offline
    litsearch match data/lit_search/epmc_search_results.csv data/lit_search/pmc_search_results.csv \
        data/lit_search/pm_search_results.csv -o src_comparison.csv

Environment Variables:
    NCBI_EMAIL: Email for NCBI Entrez API
    NCBI_API_KEY: Optional API key for higher rate limits
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from litsearch import __version__
from litsearch.application.pipeline import reconcile_tables, run_analysis
from litsearch.application.reporting import tables as report_tables
from litsearch.domain.entities import Source
from litsearch.infrastructure.storage import write_match_table, write_table
from litsearch.shared.exceptions import ConfigurationError, LitSearchError
from litsearch.shared.settings import RunConfig

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="litsearch",
        description="Search PubMed, PubMed Central and Europe PMC and reconcile the hits",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    common.add_argument("--config", type=Path, help="YAML run configuration")

    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", parents=[common], help="Search all sources, reconcile and report")
    run.add_argument("--data-dir", type=Path, help="Output directory for tables (default: data/lit_search)")
    run.add_argument("--graphics-dir", type=Path, help="Output directory for plots (default: graphics/lit_search)")
    run.add_argument("--email", help="Email for NCBI Entrez API (default: $NCBI_EMAIL)")
    run.add_argument("--api-key", help="NCBI API key for higher rate limits (default: $NCBI_API_KEY)")
    run.add_argument("--limit", type=int, help="Maximum hits per search (default: 10000)")
    run.add_argument("--refresh", action="store_true", help="Ignore cached responses and stored tables")
    run.add_argument("--no-plots", action="store_true", help="Write tables only")

    match = sub.add_parser("match", parents=[common], help="Reconcile stored per-source record tables")
    match.add_argument("tables", nargs="+", type=Path, help="Per-source CSV tables ({src}_search_results.csv)")
    match.add_argument("-o", "--output", type=Path, default=Path("src_comparison.csv"), help="MatchTable CSV")
    match.add_argument(
        "--all-searches",
        action="store_true",
        help="Match hits of every search instead of the best_search subset",
    )

    return parser


def load_config(args: argparse.Namespace) -> RunConfig:
    """RunConfig from --config (or defaults) with command line overrides applied."""
    config = RunConfig.from_yaml(args.config) if args.config else RunConfig()
    for attr in ("data_dir", "graphics_dir", "email", "api_key", "limit"):
        value = getattr(args, attr, None)
        if value is not None:
            setattr(config, attr, value)
    config.validate()
    return config


def _run(args: argparse.Namespace, config: RunConfig) -> int:
    report = asyncio.run(run_analysis(config, refresh=args.refresh, make_plots=not args.no_plots))

    summary = report.summary()
    print(f"Distinct publications: {summary['distinct_publications']}")
    for src, n in summary["records"].items():
        print(f"  {Source(src).label}: {n} hits")
    if report.failures:
        print(f"Failed searches: {len(report.failures)} (see search_failures.csv)")
    if report.anomalies:
        print(f"Ambiguous matches: {len(report.anomalies)} (see ambiguous_matches.csv)")
    print(f"Wrote {summary['files_written']} files to {config.data_dir} and {config.graphics_dir}")
    return 0


def _match(args: argparse.Namespace, config: RunConfig) -> int:
    search_ids = None if args.all_searches else config.best_search
    result = reconcile_tables(args.tables, config.source_order, config.match_keys, search_ids=search_ids)

    write_match_table(args.output, result.table)
    if result.anomalies:
        anomalies_path = args.output.with_name(f"{args.output.stem}-ambiguous.csv")
        write_table(anomalies_path, report_tables.ambiguous_rows(result.anomalies), report_tables.AMBIGUOUS_COLUMNS)
        print(f"Ambiguous matches: {len(result.anomalies)} (see {anomalies_path})")

    print(f"{len(result.table)} records, {result.distinct_publications} distinct publications -> {args.output}")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    try:
        config = load_config(args)
        if args.command == "run":
            return _run(args, config)
        return _match(args, config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except LitSearchError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
