"""
Run pipeline.

Key Components:
- AnalysisRunner / run_analysis: search, reconcile and report in one run
- reconcile_tables: offline reconciliation of stored per-source tables
"""

from __future__ import annotations

from .runner import AnalysisRunner, RunReport, default_searchers, reconcile_tables, run_analysis

__all__ = [
    "AnalysisRunner",
    "RunReport",
    "default_searchers",
    "reconcile_tables",
    "run_analysis",
]
