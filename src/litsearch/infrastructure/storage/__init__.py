"""CSV table storage."""

from __future__ import annotations

from .tables import (
    MATCH_COLUMNS,
    RECORD_COLUMNS,
    read_match_table,
    read_records,
    read_table,
    write_match_table,
    write_records,
    write_table,
)

__all__ = [
    "MATCH_COLUMNS",
    "RECORD_COLUMNS",
    "read_match_table",
    "read_records",
    "read_table",
    "write_match_table",
    "write_records",
    "write_table",
]
