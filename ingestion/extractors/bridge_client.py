"""
Bridge RESO Web API client with rate limiting and retry logic.

This module provides the upstream side of the sync engine:
- OData pagination over the Property resource via @odata.nextLink
- Chunked lookups of related resources (Member, Office, Media, OpenHouse)
- A fixed delay between requests to stay under provider rate limits
- Exponential backoff retry for transient failures
- Immediate failure, without retry, on permanent errors
"""

import httpx
import asyncio
from typing import List, Dict, Any, Optional, Union, Callable, Awaitable, Iterable
from datetime import datetime, timezone
from core.config import settings
from core.exceptions import (
    ConfigurationError,
    TransientUpstreamError,
    NetworkError,
    RateLimitError,
    ServerError,
    PermanentUpstreamError,
    AuthenticationError,
    ResourceNotFoundError,
    MalformedResponseError,
    RetriesExhaustedError,
)
from ingestion.transformers.field_maps import SYNCED_STATUSES
import logging

logger = logging.getLogger(__name__)

STATUS_FILTER = "(" + " or ".join(
    f"StandardStatus eq '{status}'" for status in SYNCED_STATUSES
) + ")"

# Receives (listings, total_fetched_so_far); a truthy return stops pagination
BatchCallback = Callable[[List[Dict[str, Any]], int], Awaitable[Any]]


class BridgeApiClient:
    """
    Async client for the Bridge Interactive OData endpoint.

    Use as an async context manager; the underlying httpx.AsyncClient is
    created on entry and closed on exit unless one was injected.

    Attributes:
        PAGE_SIZE: Listings per Property page
        RELATED_CHUNK_SIZE: Ids per related-resource request
        RELATED_PAGE_SIZE: $top for related-resource requests
        MAX_RETRIES: Retries after the first attempt of a request
        MAX_RETRY_AFTER: Ceiling in seconds for a provider Retry-After
        request_count: Requests issued by this client, retries included
        listings_exhausted: Whether the last fetch_listings call reached the
            end of the result set
    """

    PAGE_SIZE = 200
    RELATED_CHUNK_SIZE = 50
    RELATED_PAGE_SIZE = 200
    MAX_RETRIES = 3
    MAX_RETRY_AFTER = 300

    def __init__(
        self,
        server_token: Optional[str] = None,
        dataset_id: Optional[str] = None,
        base_url: Optional[str] = None,
        request_delay: Optional[float] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.server_token = server_token if server_token is not None else (settings.BRIDGE_SERVER_TOKEN or "")
        self.dataset_id = dataset_id if dataset_id is not None else (settings.BRIDGE_DATASET_ID or "")
        self.base_url = (base_url or settings.BRIDGE_BASE_URL).rstrip("/")
        self.request_delay = settings.BRIDGE_REQUEST_DELAY_SECONDS if request_delay is None else request_delay
        self.retry_delay = settings.BRIDGE_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay
        self.timeout = settings.BRIDGE_TIMEOUT_SECONDS if timeout is None else timeout
        self.max_retries = self.MAX_RETRIES
        self.request_count = 0
        self.listings_exhausted = False

        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> "BridgeApiClient":
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def aclose(self):
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def has_credentials(self) -> bool:
        return bool(self.server_token) and bool(self.dataset_id)

    async def validate_credentials(self) -> bool:
        """
        Probe the Property resource with a one-row request.

        Raises:
            ConfigurationError: If token or dataset id is missing
            AuthenticationError: If the provider rejects the token
        """
        if not self.has_credentials():
            raise ConfigurationError(
                "Bridge API credentials not configured",
                context={"dataset_id": self.dataset_id or None}
            )

        response = await self._request(self._build_url("Property", {"$top": "1"}))
        return "value" in response

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def build_incremental_filter(
        self,
        last_modified: Optional[Union[str, datetime]] = None
    ) -> str:
        """
        Filter for listings modified after last_modified.

        Args:
            last_modified: ISO timestamp string or datetime; naive values
                are taken as UTC. None yields the status predicate only.
        """
        if last_modified is None:
            return STATUS_FILTER

        if isinstance(last_modified, str):
            last_modified = datetime.fromisoformat(last_modified.strip().replace("Z", "+00:00"))

        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)
        else:
            last_modified = last_modified.astimezone(timezone.utc)

        formatted = last_modified.strftime("%Y-%m-%dT%H:%M:%SZ")
        return f"ModificationTimestamp gt {formatted} and {STATUS_FILTER}"

    def build_resync_filter(self) -> str:
        return STATUS_FILTER

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def fetch_listings(
        self,
        filter_expr: str,
        on_batch: BatchCallback,
        session_limit: int = 1000
    ) -> int:
        """
        Page through Property results in ModificationTimestamp order.

        Pagination ends when a page is empty, when there is no nextLink,
        when on_batch returns a truthy stop signal, or once session_limit
        listings have been fetched (0 = unlimited).

        Returns:
            Number of listings handed to on_batch
        """
        self.listings_exhausted = False
        total = 0
        page = 0
        url: Optional[str] = self._build_url("Property", {
            "$filter": filter_expr,
            "$top": str(self.PAGE_SIZE),
            "$orderby": "ModificationTimestamp asc",
        })

        while url is not None:
            page += 1
            response = await self._request(url)
            listings = self._records(response, url)

            if not listings:
                logger.debug(f"Empty page {page}, pagination finished")
                url = None
                break

            total += len(listings)
            logger.info(f"Fetched page {page} ({len(listings)} listings, {total} total)")
            url = self._next_link(response)

            stop = await on_batch(listings, total)
            if stop:
                logger.info(f"Batch handler requested stop after {total} listings")
                break

            if session_limit > 0 and total >= session_limit:
                logger.info(f"Session limit {session_limit} reached")
                break

        self.listings_exhausted = url is None
        return total

    async def fetch_related_resource(
        self,
        resource: str,
        key_field: str,
        ids: Iterable[Optional[str]]
    ) -> List[Dict[str, Any]]:
        """
        Look up records of a related resource by key.

        Empty ids are dropped and duplicates removed (first occurrence
        wins). Ids are sent RELATED_CHUNK_SIZE at a time as an OR predicate.
        """
        unique_ids: List[str] = []
        seen = set()
        for value in ids:
            if value is None:
                continue
            value = str(value)
            if not value or value in seen:
                continue
            seen.add(value)
            unique_ids.append(value)

        if not unique_ids:
            return []

        records: List[Dict[str, Any]] = []
        for start in range(0, len(unique_ids), self.RELATED_CHUNK_SIZE):
            chunk = unique_ids[start:start + self.RELATED_CHUNK_SIZE]
            predicate = " or ".join(
                f"{key_field} eq '{_quote(value)}'" for value in chunk
            )
            url: Optional[str] = self._build_url(resource, {
                "$filter": predicate,
                "$top": str(self.RELATED_PAGE_SIZE),
            })

            while url is not None:
                response = await self._request(url)
                records.extend(self._records(response, url))
                url = self._next_link(response)

        logger.debug(f"Fetched {len(records)} {resource} records for {len(unique_ids)} ids")
        return records

    async def fetch_media_for_listings(self, listing_keys: Iterable[str]) -> List[Dict[str, Any]]:
        return await self.fetch_related_resource("Media", "ResourceRecordKey", listing_keys)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _build_url(self, resource: str, params: Dict[str, str]) -> str:
        query = dict(params)
        query["access_token"] = self.server_token
        url = httpx.URL(f"{self.base_url}/{self.dataset_id}/{resource}", params=query)
        return str(url)

    def _next_link(self, response: Dict[str, Any]) -> Optional[str]:
        link = response.get("@odata.nextLink")
        if not link:
            return None
        if "access_token" not in link:
            separator = "&" if "?" in link else "?"
            link = f"{link}{separator}access_token={self.server_token}"
        return link

    def _records(self, response: Dict[str, Any], url: str) -> List[Dict[str, Any]]:
        records = response.get("value") or []
        if not isinstance(records, list):
            raise MalformedResponseError(
                "OData 'value' is not a list",
                context={"url": _redact(url), "value_type": type(records).__name__}
            )
        return records

    async def _request(self, url: str) -> Dict[str, Any]:
        """
        GET url with rate limiting and retry.

        Raises:
            RetriesExhaustedError: A transient failure outlived every retry
            PermanentUpstreamError: Any non-retryable failure (first attempt)
        """
        client = self._get_client()
        safe_url = _redact(url)
        last_error: Optional[TransientUpstreamError] = None

        for attempt in range(self.max_retries + 1):
            if self.request_count > 0 and self.request_delay > 0:
                await asyncio.sleep(self.request_delay)
            self.request_count += 1

            try:
                response = await client.get(
                    url,
                    headers={"Accept": "application/json"},
                    timeout=self.timeout
                )
                return self._parse_response(response, safe_url, attempt)

            except TransientUpstreamError as e:
                last_error = e

            except httpx.TimeoutException as e:
                last_error = NetworkError(
                    "Request timeout",
                    context={"url": safe_url, "timeout": self.timeout, "retry_count": attempt},
                    original_exception=e
                )

            except httpx.NetworkError as e:
                last_error = NetworkError(
                    "Network error",
                    context={"url": safe_url, "retry_count": attempt},
                    original_exception=e
                )

            if attempt < self.max_retries:
                delay = self.retry_delay * (2 ** attempt)
                if isinstance(last_error, RateLimitError) and last_error.retry_after is not None:
                    delay = min(max(last_error.retry_after, delay), self.MAX_RETRY_AFTER)
                logger.warning(
                    f"{last_error.message}. Retrying in {delay} seconds "
                    f"(attempt {attempt + 1}/{self.max_retries + 1})"
                )
                if delay > 0:
                    await asyncio.sleep(delay)

        raise RetriesExhaustedError(
            f"Bridge API request failed after {self.max_retries} retries",
            context={"url": safe_url, "retry_count": self.max_retries},
            original_exception=last_error
        )

    def _parse_response(self, response: httpx.Response, safe_url: str, attempt: int) -> Dict[str, Any]:
        status = response.status_code
        context = {"url": safe_url, "status_code": status, "retry_count": attempt}

        if status in (401, 403):
            raise AuthenticationError("Bridge API rejected the server token", context=context)

        if status == 404:
            raise ResourceNotFoundError("Bridge API resource not found", context=context)

        if status == 429:
            retry_after = _parse_retry_after(response.headers.get("Retry-After"))
            raise RateLimitError("Bridge API rate limit hit", context=context, retry_after=retry_after)

        if status >= 500:
            context["response_body"] = response.text[:500]
            raise ServerError(f"Bridge API server error (HTTP {status})", context=context)

        if status >= 400:
            context["response_body"] = response.text[:500]
            raise PermanentUpstreamError(f"Bridge API error (HTTP {status})", context=context)

        try:
            data = response.json()
        except ValueError as e:
            context["response_body"] = response.text[:500]
            raise MalformedResponseError(
                "Bridge API returned invalid JSON",
                context=context,
                original_exception=e
            )

        if not isinstance(data, dict):
            raise MalformedResponseError(
                "Bridge API response is not a JSON object",
                context={**context, "body_type": type(data).__name__}
            )

        return data


def _quote(value: str) -> str:
    """Escape a literal for an OData string comparison"""
    return value.replace("'", "''")


def _redact(url: str) -> str:
    """URL without the access token, for logs and error context"""
    try:
        return str(httpx.URL(url).copy_remove_param("access_token"))
    except httpx.InvalidURL:
        return url.split("?", 1)[0]


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None
