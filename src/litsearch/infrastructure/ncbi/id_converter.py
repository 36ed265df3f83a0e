"""
PMC ID Converter Module - PMID / PMCID / DOI cross-walk

Resolves the identifiers PubMed and PubMed Central searches return into full
PMID / PMCID / DOI triples, so that their hits can be matched against Europe
PMC records.

API Documentation: https://www.ncbi.nlm.nih.gov/pmc/tools/id-converter-api/
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from litsearch.domain.entities import IdentifierSet
from litsearch.infrastructure.sources.base_client import BaseAPIClient
from litsearch.shared.exceptions import LitSearchError, ParseError

logger = logging.getLogger(__name__)

IDCONV_API_BASE = "https://www.ncbi.nlm.nih.gov/pmc/utils/idconv/v1.0/"
MAX_IDS_PER_REQUEST = 200  # ID converter API limit

SUPPORTED_ID_TYPES = ("pmid", "pmcid", "doi")


@dataclass
class ConversionResult:
    """
    Identifier triples keyed by the requested id.

    Attributes:
        records: requested id -> resolved identifiers
        failed: requested ids the service could not resolve, or whose batch failed
    """

    records: dict[str, IdentifierSet] = field(default_factory=dict)
    failed: list[str] = field(default_factory=list)

    def merge(self, other: ConversionResult) -> None:
        self.records.update(other.records)
        self.failed.extend(i for i in other.failed if i not in self.failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "records": {
                key: {"pmid": ids.pmid, "pmcid": ids.pmcid, "doi": ids.doi} for key, ids in self.records.items()
            },
            "failed": list(self.failed),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversionResult:
        records = {
            key: IdentifierSet(pmid=value.get("pmid"), pmcid=value.get("pmcid"), doi=value.get("doi"))
            for key, value in (data.get("records") or {}).items()
        }
        return cls(records=records, failed=list(data.get("failed") or []))


class IdConverterClient(BaseAPIClient):
    """
    NCBI PMC ID converter client.

    Usage:
        async with IdConverterClient(email="your@email.com") as conv:
            result = await conv.convert(["PMC3531190"], idtype="pmcid")
            print(result.records["PMC3531190"].pmid)
    """

    _service_name = "NCBI ID converter"

    def __init__(
        self,
        email: str | None = None,
        tool: str = "litsearch",
        api_key: str | None = None,
        timeout: float = 30.0,
        batch_size: int = MAX_IDS_PER_REQUEST,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._email = email
        self._tool = tool
        self._api_key = api_key
        self._batch_size = max(1, min(batch_size, MAX_IDS_PER_REQUEST))
        super().__init__(
            base_url=IDCONV_API_BASE,
            timeout=timeout,
            min_interval=0.1 if api_key else 0.34,
            headers={"Accept": "application/json"},
            client=client,
        )

    async def convert(self, ids: Sequence[str], idtype: str = "pmid") -> ConversionResult:
        """
        Convert ids in batches of up to 200.

        A batch that fails is logged and its ids are reported in ``failed``;
        the remaining batches still run.

        Args:
            ids: Identifiers of one type
            idtype: "pmid", "pmcid" or "doi"

        Returns:
            ConversionResult keyed by the requested id
        """
        if idtype not in SUPPORTED_ID_TYPES:
            msg = f"Unsupported idtype: {idtype!r}"
            raise ValueError(msg)

        unique_ids = list(dict.fromkeys(i.strip() for i in ids if i and i.strip()))
        result = ConversionResult()

        for i in range(0, len(unique_ids), self._batch_size):
            batch = unique_ids[i : i + self._batch_size]
            try:
                result.merge(await self._convert_batch(batch, idtype))
            except LitSearchError as e:
                logger.warning(f"ID conversion failed for batch {i // self._batch_size + 1} ({len(batch)} ids): {e}")
                result.merge(ConversionResult(failed=batch))

        logger.info(f"ID converter: resolved {len(result.records)} of {len(unique_ids)} {idtype}s")
        return result

    async def _convert_batch(self, batch: list[str], idtype: str) -> ConversionResult:
        params: dict[str, Any] = {
            "ids": ",".join(batch),
            "idtype": idtype,
            "format": "json",
            "tool": self._tool,
        }
        if self._email:
            params["email"] = self._email
        if self._api_key:
            params["api_key"] = self._api_key

        data = await self._make_request("", params=params)
        if not isinstance(data, dict) or not isinstance(data.get("records"), list):
            raise ParseError("response has no records list", source=self._service_name)

        return self._parse_records(data["records"], batch)

    @staticmethod
    def _parse_records(records: list[dict[str, Any]], batch: list[str]) -> ConversionResult:
        result = ConversionResult()
        requested = {i.upper(): i for i in batch}

        for rec in records:
            if not isinstance(rec, dict):
                continue
            requested_id = str(rec.get("requested-id", ""))
            key = requested.get(requested_id.upper(), requested_id)
            if rec.get("status") == "error" or "errmsg" in rec:
                result.failed.append(key)
                continue
            result.records[key] = IdentifierSet(
                pmid=_str_or_none(rec.get("pmid")),
                pmcid=_str_or_none(rec.get("pmcid")),
                doi=_str_or_none(rec.get("doi")),
            )

        # Ids the service silently dropped count as unresolved
        result.failed.extend(i for i in batch if i not in result.records and i not in result.failed)
        return result


def _str_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
