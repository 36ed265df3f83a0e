"""
Reporting: count tables, overlap counts and summary plots.

Plots are imported lazily by the pipeline so that table code does not pull
in matplotlib.
"""

from __future__ import annotations

from .tables import (
    OverlapCount,
    actual_searches,
    ambiguous_rows,
    failure_rows,
    overlap_counts,
    overlap_rows,
    record_item_id,
    search_counts,
    search_labels,
    search_number_rows,
    search_overlap,
    source_overlap,
    total_hits,
)

__all__ = [
    "OverlapCount",
    "actual_searches",
    "ambiguous_rows",
    "failure_rows",
    "overlap_counts",
    "overlap_rows",
    "record_item_id",
    "search_counts",
    "search_labels",
    "search_number_rows",
    "search_overlap",
    "source_overlap",
    "total_hits",
]
