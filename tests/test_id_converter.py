"""Tests for the NCBI ID converter client."""

from unittest.mock import AsyncMock, patch

import pytest

from litsearch.domain.entities import IdentifierSet
from litsearch.infrastructure.ncbi import ConversionResult, IdConverterClient
from litsearch.shared.exceptions import ServiceUnavailableError


class TestIdConverterClient:
    @pytest.fixture
    def client(self, mock_email):
        return IdConverterClient(email=mock_email)

    @pytest.mark.asyncio
    async def test_convert_parses_records(self, client, mock_idconv_response):
        with patch.object(client, "_make_request", AsyncMock(return_value=mock_idconv_response)) as mock:
            result = await client.convert(["12345678", "23456789", "99999999"], idtype="pmid")

        assert result.records["12345678"] == IdentifierSet(pmid="12345678", pmcid="PMC1111111", doi="10.1000/test.1")
        assert result.records["23456789"].pmcid is None
        assert result.failed == ["99999999"]

        params = mock.call_args.kwargs["params"]
        assert params["ids"] == "12345678,23456789,99999999"
        assert params["idtype"] == "pmid"
        assert params["format"] == "json"
        assert params["email"] == "test@example.com"

    @pytest.mark.asyncio
    async def test_batches_of_200(self, client):
        ids = [str(i) for i in range(450)]

        async def respond(url, params):
            batch = params["ids"].split(",")
            return {"records": [{"requested-id": i, "pmid": i} for i in batch]}

        with patch.object(client, "_make_request", AsyncMock(side_effect=respond)) as mock:
            result = await client.convert(ids)

        assert mock.await_count == 3
        assert [len(c.kwargs["params"]["ids"].split(",")) for c in mock.call_args_list] == [200, 200, 50]
        assert len(result.records) == 450

    @pytest.mark.asyncio
    async def test_failed_batch_is_skipped(self, client):
        ok = {"records": [{"requested-id": "PMC2", "pmcid": "PMC2", "pmid": "2"}]}
        side_effects = [ServiceUnavailableError("HTTP 502"), ok]
        small = IdConverterClient(batch_size=1)
        with patch.object(small, "_make_request", AsyncMock(side_effect=side_effects)):
            result = await small.convert(["PMC1", "PMC2"], idtype="pmcid")

        assert result.failed == ["PMC1"]
        assert result.records["PMC2"].pmid == "2"
        await small.close()
        await client.close()

    @pytest.mark.asyncio
    async def test_silently_dropped_ids_are_failed(self, client):
        with patch.object(client, "_make_request", AsyncMock(return_value={"records": []})):
            result = await client.convert(["1"])
        assert result.failed == ["1"]

    @pytest.mark.asyncio
    async def test_duplicates_and_blanks_are_ignored(self, client):
        with patch.object(client, "_make_request", AsyncMock(return_value={"records": []})) as mock:
            await client.convert(["1", " 1 ", "", "2"])
        assert mock.call_args.kwargs["params"]["ids"] == "1,2"

    @pytest.mark.asyncio
    async def test_unsupported_idtype(self, client):
        with pytest.raises(ValueError):
            await client.convert(["1"], idtype="isbn")

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_request(self, client):
        with patch.object(client, "_make_request", AsyncMock()) as mock:
            result = await client.convert([])
        mock.assert_not_awaited()
        assert result.records == {}


class TestConversionResult:
    def test_dict_round_trip(self):
        result = ConversionResult(records={"1": IdentifierSet(pmid="1", doi="10.1/a")}, failed=["2"])
        assert ConversionResult.from_dict(result.to_dict()) == result
