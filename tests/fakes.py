"""
Test doubles for the Bridge OData endpoint
"""

import httpx
import re
from datetime import datetime
from typing import Dict, List, Any, Optional
from ingestion.extractors.bridge_client import BridgeApiClient


# Related resource -> field its $filter matches on
RELATED_KEYS = {
    "Member": "MemberMlsId",
    "Office": "OfficeMlsId",
    "Media": "ResourceRecordKey",
    "OpenHouse": "ListingKey",
}

_QUOTED = re.compile(r"'((?:[^']|'')*)'")
_MODIFIED_AFTER = re.compile(r"ModificationTimestamp gt (\S+)")


def _parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class FakeBridge:
    """
    In-process stand-in for the Bridge OData endpoint.

    Serves Property pages honoring the ModificationTimestamp predicate and
    $top, answers related lookups by key, and can fail any resource with
    a fixed HTTP status.
    """

    def __init__(
        self,
        listings: Optional[List[Dict[str, Any]]] = None,
        page_size: Optional[int] = None,
        related: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        fail: Optional[Dict[str, int]] = None
    ):
        self.listings = listings or []
        self.page_size = page_size
        self.related = related or {}
        self.fail = fail or {}
        self.requests: List[httpx.Request] = []

    def requests_for(self, resource: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(f"/{resource}")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        resource = request.url.path.rsplit("/", 1)[-1]

        if resource in self.fail:
            return httpx.Response(self.fail[resource], json={"error": "unavailable"})

        if resource == "Property":
            return self._property_page(request)

        key_field = RELATED_KEYS[resource]
        wanted = {v.replace("''", "'") for v in _QUOTED.findall(request.url.params.get("$filter", ""))}
        records = [r for r in self.related.get(resource, []) if r.get(key_field) in wanted]
        return httpx.Response(200, json={"value": records})

    def _property_page(self, request: httpx.Request) -> httpx.Response:
        params = request.url.params
        listings = sorted(self.listings, key=lambda l: l["ModificationTimestamp"])

        match = _MODIFIED_AFTER.search(params.get("$filter", ""))
        if match:
            after = _parse_ts(match.group(1))
            listings = [l for l in listings if _parse_ts(l["ModificationTimestamp"]) > after]

        size = self.page_size or int(params.get("$top", 200))
        offset = int(params.get("$skip", 0))
        body: Dict[str, Any] = {"value": listings[offset:offset + size]}

        if offset + size < len(listings):
            body["@odata.nextLink"] = str(request.url.copy_set_param("$skip", str(offset + size)))

        return httpx.Response(200, json=body)

    def client(self, **kwargs) -> BridgeApiClient:
        options = {
            "server_token": "test-token",
            "dataset_id": "testmls",
            "base_url": "https://bridge.test/api/v2/OData",
            "request_delay": 0,
            "retry_delay": 0,
        }
        options.update(kwargs)
        return BridgeApiClient(
            client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
            **options
        )


def make_listing(listing_key: str, modified: str = "2024-01-15T10:00:00Z", **overrides) -> Dict[str, Any]:
    """Provider Property payload with sensible defaults"""
    listing = {
        "ListingKey": listing_key,
        "ListingId": f"MLS-{listing_key}",
        "ModificationTimestamp": modified,
        "StandardStatus": "Active",
        "PropertyType": "Residential",
        "ListPrice": 500000,
        "LivingArea": 2000,
        "BedroomsTotal": 3,
        "BathroomsTotalInteger": 2,
        "City": "Boston",
        "StateOrProvince": "MA",
        "ListingContractDate": "2024-01-01",
        "ListAgentMlsId": "AG1",
        "ListOfficeMlsId": "OF1",
    }
    listing.update(overrides)
    return listing


