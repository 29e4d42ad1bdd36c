"""
Unit tests for the Bridge API client
"""

import pytest
import httpx
from datetime import datetime, timezone, timedelta
from unittest.mock import AsyncMock
from ingestion.extractors.bridge_client import BridgeApiClient, STATUS_FILTER
from core.exceptions import (
    ConfigurationError,
    AuthenticationError,
    ResourceNotFoundError,
    PermanentUpstreamError,
    MalformedResponseError,
    RetriesExhaustedError,
    ServerError,
    NetworkError,
    TransientUpstreamError,
)
from tests.fakes import FakeBridge, make_listing


def client_for(handler, **kwargs) -> BridgeApiClient:
    options = {
        "server_token": "secret-token",
        "dataset_id": "testmls",
        "base_url": "https://bridge.test/api/v2/OData/",
        "request_delay": 0,
        "retry_delay": 0,
    }
    options.update(kwargs)
    return BridgeApiClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)), **options)


class TestFilters:
    """Test OData filter construction"""

    def test_incremental_filter_without_cursor_is_status_only(self):
        client = BridgeApiClient(server_token="t", dataset_id="d")
        assert client.build_incremental_filter(None) == STATUS_FILTER

    def test_incremental_filter_from_naive_datetime(self):
        client = BridgeApiClient(server_token="t", dataset_id="d")
        result = client.build_incremental_filter(datetime(2024, 1, 15, 10, 30, 0))

        assert result == f"ModificationTimestamp gt 2024-01-15T10:30:00Z and {STATUS_FILTER}"

    def test_incremental_filter_converts_offset_to_utc(self):
        client = BridgeApiClient(server_token="t", dataset_id="d")
        eastern = timezone(timedelta(hours=-5))
        result = client.build_incremental_filter(datetime(2024, 1, 15, 5, 0, 0, tzinfo=eastern))

        assert result.startswith("ModificationTimestamp gt 2024-01-15T10:00:00Z and ")

    def test_incremental_filter_from_string(self):
        client = BridgeApiClient(server_token="t", dataset_id="d")
        result = client.build_incremental_filter("2024-01-15T10:30:00.123Z")

        assert "ModificationTimestamp gt 2024-01-15T10:30:00Z" in result

    def test_status_filter_lists_synced_statuses(self):
        assert STATUS_FILTER == (
            "(StandardStatus eq 'Active' or StandardStatus eq 'Pending' "
            "or StandardStatus eq 'Active Under Contract')"
        )
        assert BridgeApiClient(server_token="t", dataset_id="d").build_resync_filter() == STATUS_FILTER


class TestCredentials:

    def test_has_credentials(self):
        assert BridgeApiClient(server_token="t", dataset_id="d").has_credentials()
        assert not BridgeApiClient(server_token="", dataset_id="d").has_credentials()
        assert not BridgeApiClient(server_token="t", dataset_id="").has_credentials()

    @pytest.mark.asyncio
    async def test_validate_credentials_missing_raises(self):
        client = BridgeApiClient(server_token="", dataset_id="")
        with pytest.raises(ConfigurationError):
            await client.validate_credentials()

    @pytest.mark.asyncio
    async def test_validate_credentials_probes_one_row(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json={"value": []})

        client = client_for(handler)
        assert await client.validate_credentials() is True
        assert requests[0].url.params["$top"] == "1"
        assert requests[0].url.params["access_token"] == "secret-token"


class TestFetchListings:
    """Test Property pagination"""

    @pytest.mark.asyncio
    async def test_follows_next_link_until_exhausted(self):
        bridge = FakeBridge(
            listings=[make_listing(f"L{i}", f"2024-01-15T10:0{i}:00Z") for i in range(5)],
            page_size=2
        )
        batches = []

        async def on_batch(listings, total):
            batches.append(([l["ListingKey"] for l in listings], total))
            return False

        client = bridge.client()
        total = await client.fetch_listings("x", on_batch, session_limit=0)

        assert total == 5
        assert client.listings_exhausted is True
        assert batches == [(["L0", "L1"], 2), (["L2", "L3"], 4), (["L4"], 5)]
        first = bridge.requests_for("Property")[0]
        assert first.url.params["$orderby"] == "ModificationTimestamp asc"
        assert first.url.params["$top"] == "200"

    @pytest.mark.asyncio
    async def test_stops_when_callback_requests(self):
        bridge = FakeBridge(
            listings=[make_listing(f"L{i}", f"2024-01-15T10:0{i}:00Z") for i in range(6)],
            page_size=2
        )
        on_batch = AsyncMock(return_value=True)
        client = bridge.client()

        total = await client.fetch_listings("x", on_batch, session_limit=0)

        assert total == 2
        assert on_batch.await_count == 1
        assert client.listings_exhausted is False

    @pytest.mark.asyncio
    async def test_stop_on_last_page_is_exhausted(self):
        bridge = FakeBridge(listings=[make_listing("L0"), make_listing("L1")], page_size=2)
        client = bridge.client()

        await client.fetch_listings("x", AsyncMock(return_value=True), session_limit=0)

        assert client.listings_exhausted is True

    @pytest.mark.asyncio
    async def test_stops_at_session_limit(self):
        bridge = FakeBridge(
            listings=[make_listing(f"L{i}", f"2024-01-15T10:0{i}:00Z") for i in range(6)],
            page_size=2
        )
        on_batch = AsyncMock(return_value=False)

        total = await bridge.client().fetch_listings("x", on_batch, session_limit=4)

        assert total == 4
        assert len(bridge.requests_for("Property")) == 2

    @pytest.mark.asyncio
    async def test_empty_first_page(self):
        bridge = FakeBridge(listings=[])
        on_batch = AsyncMock()

        assert await bridge.client().fetch_listings("x", on_batch) == 0
        on_batch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_next_link_gets_token_appended(self):
        seen = []

        def handler(request):
            seen.append(request.url)
            if len(seen) == 1:
                return httpx.Response(200, json={
                    "value": [make_listing("L1")],
                    "@odata.nextLink": "https://bridge.test/api/v2/OData/testmls/Property?$skip=1"
                })
            return httpx.Response(200, json={"value": []})

        await client_for(handler).fetch_listings("x", AsyncMock(return_value=False))

        assert seen[1].params["access_token"] == "secret-token"
        assert seen[1].params["$skip"] == "1"

    @pytest.mark.asyncio
    async def test_non_list_value_is_malformed(self):
        client = client_for(lambda request: httpx.Response(200, json={"value": {"ListingKey": "L1"}}))

        with pytest.raises(MalformedResponseError):
            await client.fetch_listings("x", AsyncMock())


class TestFetchRelated:
    """Test chunked related-resource lookups"""

    @pytest.mark.asyncio
    async def test_dedupes_and_drops_empty_ids(self):
        bridge = FakeBridge(related={"Member": [{"MemberMlsId": "A1"}, {"MemberMlsId": "A2"}]})

        records = await bridge.client().fetch_related_resource(
            "Member", "MemberMlsId", ["A1", "", None, "A2", "A1"]
        )

        assert [r["MemberMlsId"] for r in records] == ["A1", "A2"]
        request = bridge.requests_for("Member")[0]
        assert request.url.params["$filter"] == "MemberMlsId eq 'A1' or MemberMlsId eq 'A2'"

    @pytest.mark.asyncio
    async def test_no_ids_makes_no_request(self):
        bridge = FakeBridge()
        assert await bridge.client().fetch_related_resource("Office", "OfficeMlsId", [None, ""]) == []
        assert bridge.requests == []

    @pytest.mark.asyncio
    async def test_chunks_large_id_lists(self):
        ids = [f"K{i}" for i in range(120)]
        bridge = FakeBridge(related={"Media": [{"ResourceRecordKey": i, "MediaKey": f"M{i}"} for i in ids]})

        records = await bridge.client().fetch_media_for_listings(ids)

        assert len(records) == 120
        assert len(bridge.requests_for("Media")) == 3

    @pytest.mark.asyncio
    async def test_quotes_are_escaped(self):
        bridge = FakeBridge(related={"Office": [{"OfficeMlsId": "O'Brien"}]})

        records = await bridge.client().fetch_related_resource("Office", "OfficeMlsId", ["O'Brien"])

        assert records == [{"OfficeMlsId": "O'Brien"}]
        assert bridge.requests_for("Office")[0].url.params["$filter"] == "OfficeMlsId eq 'O''Brien'"


class TestRetries:
    """Test retry and error classification"""

    @pytest.mark.asyncio
    async def test_retries_server_error_then_succeeds(self):
        responses = iter([
            httpx.Response(503, text="busy"),
            httpx.Response(200, json={"value": []}),
        ])
        client = client_for(lambda request: next(responses))

        assert await client._request("https://bridge.test/x?access_token=t") == {"value": []}
        assert client.request_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        client = client_for(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(RetriesExhaustedError) as exc_info:
            await client._request("https://bridge.test/x?access_token=t")

        assert client.request_count == 4
        assert isinstance(exc_info.value.original_exception, ServerError)

    @pytest.mark.asyncio
    async def test_rate_limit_honors_retry_after(self, monkeypatch):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr("ingestion.extractors.bridge_client.asyncio.sleep", fake_sleep)
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "7"}),
            httpx.Response(200, json={"value": []}),
        ])
        client = client_for(lambda request: next(responses))

        await client._request("https://bridge.test/x?access_token=t")

        assert sleeps == [7.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("retry_after, expected", [
        ("86400", BridgeApiClient.MAX_RETRY_AFTER),
        ("0", 2),
    ])
    async def test_rate_limit_retry_after_is_clamped(self, monkeypatch, retry_after, expected):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr("ingestion.extractors.bridge_client.asyncio.sleep", fake_sleep)
        responses = iter([
            httpx.Response(429, headers={"Retry-After": retry_after}),
            httpx.Response(200, json={"value": []}),
        ])
        client = client_for(lambda request: next(responses), retry_delay=2)

        await client._request("https://bridge.test/x?access_token=t")

        assert sleeps == [expected]

    @pytest.mark.asyncio
    async def test_backoff_is_exponential(self, monkeypatch):
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        monkeypatch.setattr("ingestion.extractors.bridge_client.asyncio.sleep", fake_sleep)
        client = client_for(lambda request: httpx.Response(502), retry_delay=2)

        with pytest.raises(RetriesExhaustedError):
            await client._request("https://bridge.test/x?access_token=t")

        assert sleeps == [2, 4, 8]

    @pytest.mark.asyncio
    async def test_network_errors_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) == 1:
                raise httpx.ConnectError("Connection refused", request=request)
            return httpx.Response(200, json={"value": []})

        assert await client_for(handler)._request("https://bridge.test/x?access_token=t") == {"value": []}
        assert len(calls) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,error", [
        (401, AuthenticationError),
        (403, AuthenticationError),
        (404, ResourceNotFoundError),
        (400, PermanentUpstreamError),
    ])
    async def test_permanent_errors_are_not_retried(self, status, error):
        client = client_for(lambda request: httpx.Response(status, text="nope"))

        with pytest.raises(error) as exc_info:
            await client._request("https://bridge.test/x?access_token=secret-token")

        assert client.request_count == 1
        assert "secret-token" not in exc_info.value.context["url"]

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed(self):
        client = client_for(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(MalformedResponseError):
            await client._request("https://bridge.test/x?access_token=t")
        assert client.request_count == 1

    def test_network_error_is_transient(self):
        assert issubclass(NetworkError, TransientUpstreamError)
        assert not issubclass(AuthenticationError, TransientUpstreamError)
