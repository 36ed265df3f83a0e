"""
Result Normalizer - raw search hits -> CitationRecord.

Pure functions, no I/O. Each source returns a different hit shape:
- PubMed: PMID strings (DOI / PMCID come from the ID converter map)
- PubMed Central: PMCID strings, sometimes without the "PMC" prefix
- Europe PMC: result dicts carrying id, pmid, pmcid and doi

Malformed or placeholder identifiers are treated as absent; nothing here
raises on bad input data.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from litsearch.domain.entities import CitationRecord, IdentifierSet, SearchOutcome, Source

logger = logging.getLogger(__name__)

_PLACEHOLDERS = frozenset({"", "na", "n/a", "none", "nan", "null"})
_DOI_PREFIXES = ("https://doi.org/", "http://doi.org/", "https://dx.doi.org/", "http://dx.doi.org/", "doi:")
_PMCID_RE = re.compile(r"^PMC\d+$")


def _text(value: Any) -> str | None:
    """Coerce a raw field to stripped text; placeholders become None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if value != value or not value.is_integer():  # NaN or fractional
            return None
        value = int(value)
    text = str(value).strip()
    if text.lower() in _PLACEHOLDERS:
        return None
    return text


def clean_pmid(value: Any) -> str | None:
    """Normalize a PMID: digits only, optional "PMID:" prefix removed."""
    text = _text(value)
    if text is None:
        return None
    if text.lower().startswith("pmid:"):
        text = text[5:].strip()
    return text if text.isdigit() else None


def clean_pmcid(value: Any) -> str | None:
    """Normalize a PMCID to the "PMC1234567" form."""
    text = _text(value)
    if text is None:
        return None
    text = text.upper()
    if text.isdigit():
        text = f"PMC{text}"
    return text if _PMCID_RE.match(text) else None


def clean_doi(value: Any) -> str | None:
    """Normalize a DOI: lower-case, resolver prefixes removed, must start with "10."."""
    text = _text(value)
    if text is None:
        return None
    text = text.lower()
    for prefix in _DOI_PREFIXES:
        text = text.removeprefix(prefix)
    text = text.strip()
    return text if text.startswith("10.") else None


def _lookup(id_map: Mapping[str, IdentifierSet] | None, key: str | None) -> IdentifierSet:
    if id_map is None or key is None:
        return IdentifierSet()
    return id_map.get(key) or IdentifierSet()


def normalize_epmc_hits(hits: Iterable[Any], search_id: str) -> list[CitationRecord]:
    """Europe PMC result dicts -> records; non-dict hits are skipped."""
    records = []
    for hit in hits:
        if not isinstance(hit, Mapping):
            logger.debug(f"Skipping non-dict Europe PMC hit in {search_id}: {hit!r}")
            continue
        records.append(
            CitationRecord(
                source=Source.EUROPE_PMC,
                search_id=search_id,
                pmid=clean_pmid(hit.get("pmid")),
                pmcid=clean_pmcid(hit.get("pmcid")),
                doi=clean_doi(hit.get("doi")),
                source_native_id=_text(hit.get("id")),
            )
        )
    return records


def normalize_pubmed_hits(
    hits: Iterable[Any],
    search_id: str,
    id_map: Mapping[str, IdentifierSet] | None = None,
) -> list[CitationRecord]:
    """
    PubMed PMIDs -> records.

    Args:
        hits: PMIDs returned by the search
        search_id: Name of the query term
        id_map: Converted identifiers keyed by PMID
    """
    records = []
    for hit in hits:
        pmid = clean_pmid(hit)
        converted = _lookup(id_map, pmid)
        records.append(
            CitationRecord(
                source=Source.PUBMED,
                search_id=search_id,
                pmid=pmid,
                pmcid=clean_pmcid(converted.pmcid),
                doi=clean_doi(converted.doi),
            )
        )
    return records


def normalize_pmc_hits(
    hits: Iterable[Any],
    search_id: str,
    id_map: Mapping[str, IdentifierSet] | None = None,
) -> list[CitationRecord]:
    """
    PubMed Central ids -> records.

    Args:
        hits: PMCIDs (with or without the "PMC" prefix)
        search_id: Name of the query term
        id_map: Converted identifiers keyed by PMCID
    """
    records = []
    for hit in hits:
        pmcid = clean_pmcid(hit)
        converted = _lookup(id_map, pmcid)
        records.append(
            CitationRecord(
                source=Source.PMC,
                search_id=search_id,
                pmid=clean_pmid(converted.pmid),
                pmcid=pmcid,
                doi=clean_doi(converted.doi),
            )
        )
    return records


def normalize_outcomes(
    source: Source,
    outcomes: Mapping[str, SearchOutcome],
    id_map: Mapping[str, IdentifierSet] | None = None,
) -> list[CitationRecord]:
    """
    Flatten all search outcomes of one source into records, in term order.

    Failed searches contribute no records.
    """
    records: list[CitationRecord] = []
    for search_id, outcome in outcomes.items():
        hits = outcome.hits
        if source is Source.EUROPE_PMC:
            records.extend(normalize_epmc_hits(hits, search_id))
        elif source is Source.PUBMED:
            records.extend(normalize_pubmed_hits(hits, search_id, id_map))
        else:
            records.extend(normalize_pmc_hits(hits, search_id, id_map))
    return records


def collapse_searches(
    records: Iterable[CitationRecord],
    search_ids: Iterable[str] | None = None,
) -> list[CitationRecord]:
    """
    Keep records of the given searches and merge hits found by several of them.

    Records with the same ``dedup_key`` collapse into one whose ``search_id``
    lists every search that found it, "|"-joined in first-seen order. Records
    without any identifier are never merged.
    """
    wanted = set(search_ids) if search_ids is not None else None
    merged: dict[Any, tuple[CitationRecord, list[str]]] = {}
    for i, record in enumerate(records):
        if wanted is not None and record.search_id not in wanted:
            continue
        key = record.dedup_key if any(record.dedup_key) else ("__unkeyed__", i)
        if key in merged:
            first, found_by = merged[key]
            if record.search_id not in found_by:
                found_by.append(record.search_id)
        else:
            merged[key] = (record, [record.search_id])
    return [replace(first, search_id="|".join(found_by)) for first, found_by in merged.values()]
