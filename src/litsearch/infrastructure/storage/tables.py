"""
Tabular I/O - CSV files with a fixed column set per table type.

Absent identifiers are written as empty cells; on read, empty cells and "NA"
are treated as absent.
"""

from __future__ import annotations

import csv
import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from litsearch.domain.entities import CitationRecord, MatchRow, MatchTable, Source
from litsearch.shared.exceptions import ErrorContext, ParseError

logger = logging.getLogger(__name__)

RECORD_COLUMNS = ["src", "search_id", "pmid", "pmcid", "doi", "source_native_id"]
MATCH_COLUMNS = ["id", "src", "pmid", "pmcid", "doi", "search_id", "source_native_id"]

_ABSENT = frozenset({"", "NA"})


def write_table(
    path: str | Path,
    rows: Iterable[Mapping[str, Any]],
    columns: Sequence[str],
) -> Path:
    """
    Write rows as CSV with the given column order.

    None values become empty cells; keys not in ``columns`` are ignored.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(columns), extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow({k: "" if v is None else v for k, v in row.items()})
            count += 1
    logger.debug(f"Wrote {count} rows to {path}")
    return path


def read_table(path: str | Path, required: Sequence[str] = ()) -> list[dict[str, str]]:
    """
    Read a CSV file into dicts.

    Raises:
        ParseError: File has no header or misses a required column
    """
    path = Path(path)
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise ParseError("empty table", source=str(path))
        missing = [c for c in required if c not in reader.fieldnames]
        if missing:
            raise ParseError(
                f"missing columns {missing}",
                source=str(path),
                context=ErrorContext(operation="read_table", input_value=str(path)),
            )
        return [dict(row) for row in reader]


def _cell(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return None if value in _ABSENT else value


def _source(value: str | None, path: Path, line: int) -> Source:
    try:
        return Source(_cell(value))
    except ValueError as e:
        raise ParseError(f"line {line}: unknown source {value!r}", source=str(path)) from e


# ── Per-source records ──────────────────────────────────────────────────────


def record_to_row(record: CitationRecord) -> dict[str, Any]:
    return {
        "src": record.source.value,
        "search_id": record.search_id,
        "pmid": record.pmid,
        "pmcid": record.pmcid,
        "doi": record.doi,
        "source_native_id": record.source_native_id,
    }


def write_records(path: str | Path, records: Iterable[CitationRecord]) -> Path:
    return write_table(path, (record_to_row(r) for r in records), RECORD_COLUMNS)


def read_records(path: str | Path) -> list[CitationRecord]:
    """Read a per-source table written by ``write_records``."""
    path = Path(path)
    records = []
    for line, row in enumerate(read_table(path, required=("src", "pmid", "pmcid", "doi")), start=2):
        records.append(
            CitationRecord(
                source=_source(row.get("src"), path, line),
                search_id=_cell(row.get("search_id")) or "",
                pmid=_cell(row.get("pmid")),
                pmcid=_cell(row.get("pmcid")),
                doi=_cell(row.get("doi")),
                source_native_id=_cell(row.get("source_native_id")),
            )
        )
    return records


# ── MatchTable ──────────────────────────────────────────────────────────────


def match_row_to_dict(row: MatchRow) -> dict[str, Any]:
    return {
        "id": row.id,
        "src": row.src.value,
        "pmid": row.pmid,
        "pmcid": row.pmcid,
        "doi": row.doi,
        "search_id": row.search_id,
        "source_native_id": row.source_native_id,
    }


def write_match_table(path: str | Path, table: MatchTable) -> Path:
    return write_table(path, (match_row_to_dict(r) for r in table), MATCH_COLUMNS)


def read_match_table(path: str | Path) -> MatchTable:
    """
    Read a MatchTable written by ``write_match_table``.

    Raises:
        ParseError: Unknown source or non-positive / non-integer id
    """
    path = Path(path)
    rows = []
    for line, row in enumerate(read_table(path, required=("id", "src")), start=2):
        raw_id = _cell(row.get("id")) or ""
        if not raw_id.isdigit() or int(raw_id) < 1:
            raise ParseError(f"line {line}: invalid id {raw_id!r}", source=str(path))
        rows.append(
            MatchRow(
                id=int(raw_id),
                src=_source(row.get("src"), path, line),
                pmid=_cell(row.get("pmid")),
                pmcid=_cell(row.get("pmcid")),
                doi=_cell(row.get("doi")),
                search_id=_cell(row.get("search_id")) or "",
                source_native_id=_cell(row.get("source_native_id")),
            )
        )
    return MatchTable(tuple(rows))
