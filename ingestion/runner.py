# ============================================================================
# File: ingestion/runner.py
# Description: Listing extraction orchestrator with session pause/resume
# ============================================================================
"""
Extraction Orchestrator - sequences one bounded sync session.

This module provides the run lifecycle:
- Distributed lock around every session
- Incremental or full filter selection, resuming paused runs
- Per-record normalize, diff and upsert with failure isolation
- Consecutive-error circuit breaker
- Related-entity enrichment isolated per resource type
- Run metrics persisted after every batch
"""

from typing import Dict, Any, List, Optional
from datetime import datetime, timedelta
from collections import OrderedDict
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ingestion.base import (
    PropertyStore,
    AgentStore,
    OfficeStore,
    MediaStore,
    OpenHouseStore,
    ChangeHistoryStore,
    RunTracker,
    DistributedLock,
)
from ingestion.extractors.bridge_client import BridgeApiClient
from ingestion.transformers.normalizer import ListingNormalizer
from ingestion.loaders.property_repository import PropertyRepository
from ingestion.loaders.related_repository import (
    AgentRepository,
    OfficeRepository,
    MediaRepository,
    OpenHouseRepository,
)
from ingestion.loaders.history_repository import PropertyHistoryRepository
from ingestion.loaders.run_tracker import ExtractionRunTracker
from ingestion.loaders.lock import DatabaseLock
from models.base import ExtractionKind, RunStatus, TriggerSource
from schemas.sync import BatchResult, EnrichmentResult, RunStats
from core.exceptions import (
    SyncException,
    ConfigurationError,
    LockContentionError,
    CircuitBreakerOpenError,
    MissingListingKeyError,
    RelatedDataError,
    StoreError,
)

logger = logging.getLogger(__name__)

LOCK_NAME = "listing_sync_lock"
LOCK_TIMEOUT = 10
SESSION_LIMIT = 1000
MAX_CONSECUTIVE_ERRORS = 5
MAX_ERROR_DETAILS = 50


class SessionState:
    """Bookkeeping for the current invocation only"""

    def __init__(self):
        self.processed = 0
        self.consecutive_errors = 0
        self.max_modification: Optional[datetime] = None
        self.limit_reached = False

    def observe(self, modification_timestamp: Optional[datetime]):
        if modification_timestamp is None:
            return
        if self.max_modification is None or modification_timestamp > self.max_modification:
            self.max_modification = modification_timestamp


class ExtractionOrchestrator:
    """
    Listing sync orchestrator

    Responsibilities:
    - Guarantee at most one session runs at a time
    - Choose and resume the right run
    - Drive pagination and process every batch
    - Isolate per-record and per-resource failures
    - Record accurate run metrics and the resume cursor
    """

    def __init__(
        self,
        api_client: BridgeApiClient,
        normalizer: ListingNormalizer,
        properties: PropertyStore,
        agents: AgentStore,
        offices: OfficeStore,
        media: MediaStore,
        open_houses: OpenHouseStore,
        history: ChangeHistoryStore,
        runs: RunTracker,
        lock: DistributedLock,
        session_limit: int = SESSION_LIMIT,
        lock_timeout: float = LOCK_TIMEOUT
    ):
        self.api_client = api_client
        self.normalizer = normalizer
        self.properties = properties
        self.agents = agents
        self.offices = offices
        self.media = media
        self.open_houses = open_houses
        self.history = history
        self.runs = runs
        self.lock = lock
        self.session_limit = session_limit
        self.lock_timeout = lock_timeout

    @classmethod
    def from_session(
        cls,
        db_session: AsyncSession,
        api_client: BridgeApiClient,
        normalizer: Optional[ListingNormalizer] = None,
        **kwargs
    ) -> "ExtractionOrchestrator":
        """Wire the SQLAlchemy stores around one database session"""
        return cls(
            api_client=api_client,
            normalizer=normalizer or ListingNormalizer(),
            properties=PropertyRepository(db_session),
            agents=AgentRepository(db_session),
            offices=OfficeRepository(db_session),
            media=MediaRepository(db_session),
            open_houses=OpenHouseRepository(db_session),
            history=PropertyHistoryRepository(db_session),
            runs=ExtractionRunTracker(db_session),
            lock=DatabaseLock(db_session),
            **kwargs
        )

    async def run(self, is_resync: bool = False, triggered_by: str = "cron") -> RunStats:
        """
        Run one sync session.

        Args:
            is_resync: Fetch every synced listing instead of changes since
                the cursor
            triggered_by: "cron", "manual" or "continuation"; a continuation
                resumes the last paused run when there is one

        Returns:
            RunStats with status "completed" or "paused"

        Raises:
            ConfigurationError: Upstream credentials are missing
            LockContentionError: Another session holds the lock
            CircuitBreakerOpenError: Too many consecutive record failures
            SyncException: Any other failure; the run is marked failed first
        """
        if not self.api_client.has_credentials():
            raise ConfigurationError(
                "Bridge API credentials not configured",
                context={"triggered_by": triggered_by}
            )

        if not await self.lock.acquire(LOCK_NAME, self.lock_timeout):
            raise LockContentionError(
                "Could not acquire extraction lock; another extraction may be running",
                context={"lock_name": LOCK_NAME, "timeout": self.lock_timeout}
            )

        try:
            return await self._run_locked(is_resync, triggered_by)
        finally:
            try:
                await self.lock.release(LOCK_NAME)
            except StoreError as e:
                logger.error(
                    f"Failed to release {LOCK_NAME}; lease will expire: {e.message}",
                    extra={"error_context": e.to_dict()}
                )

    async def _run_locked(self, is_resync: bool, triggered_by: str) -> RunStats:
        paused = None
        if triggered_by == TriggerSource.CONTINUATION.value:
            paused = await self.runs.get_last_paused_run()

        if paused is not None:
            stats = self._resume_stats(paused)
            cursor = paused.last_modification_timestamp
            await self.runs.reactivate_run(stats.run_id)
            logger.info(f"Continuing paused run {stats.run_id} from cursor {cursor}")
        else:
            kind = ExtractionKind.FULL if is_resync else ExtractionKind.INCREMENTAL
            run_id = await self.runs.start_run(kind.value, triggered_by)
            stats = RunStats(run_id=run_id)
            cursor = None

        state = SessionState()

        try:
            if paused is not None:
                if is_resync:
                    logger.info(
                        f"Run {stats.run_id}: continuing from cursor instead of the resync filter"
                    )
                if cursor is None:
                    cursor = await self.properties.latest_modification_timestamp()
                # Listings sharing the cursor second may not have been fetched yet
                replay_from = cursor - timedelta(seconds=1) if cursor is not None else None
                filter_expr = self.api_client.build_incremental_filter(replay_from)
            elif is_resync:
                filter_expr = self.api_client.build_resync_filter()
            else:
                cursor = await self.properties.latest_modification_timestamp()
                filter_expr = self.api_client.build_incremental_filter(cursor)

            logger.info(f"Run {stats.run_id}: fetching with filter {filter_expr}")

            async def on_batch(listings: List[Dict[str, Any]], total_fetched: int) -> bool:
                batch = BatchResult()
                try:
                    await self._process_batch(listings, batch, state, stats)
                finally:
                    stats.add_batch(batch)
                    state.processed += batch.processed

                await self.runs.update_metrics(stats.run_id, self._metrics(stats))

                if not await self.lock.extend(LOCK_NAME):
                    raise LockContentionError(
                        "Extraction lock was lost during the run",
                        context={"lock_name": LOCK_NAME, "run_id": stats.run_id}
                    )

                logger.info(
                    f"Run {stats.run_id} batch: processed={batch.processed} "
                    f"created={batch.created} updated={batch.updated} "
                    f"archived={batch.archived} errors={batch.errors}"
                )

                if self.session_limit > 0 and (
                    state.processed >= self.session_limit or total_fetched >= self.session_limit
                ):
                    state.limit_reached = True
                    return True
                return False

            await self.api_client.fetch_listings(filter_expr, on_batch, self.session_limit)

            if state.limit_reached and not self.api_client.listings_exhausted:
                resume_cursor = state.max_modification or cursor
                await self.runs.pause_run(stats.run_id, resume_cursor)
                stats.status = RunStatus.PAUSED.value
                stats.resume_cursor = resume_cursor.isoformat() if resume_cursor else None
                logger.info(
                    f"Run {stats.run_id} paused at session limit "
                    f"({state.processed} processed, cursor {stats.resume_cursor})"
                )
            else:
                await self.runs.complete_run(stats.run_id)
                stats.status = RunStatus.COMPLETED.value
                logger.info(
                    f"Run {stats.run_id} completed: processed={stats.processed} "
                    f"created={stats.created} updated={stats.updated} "
                    f"archived={stats.archived} errors={stats.errors}"
                )

            return stats

        except Exception as e:
            stats.status = RunStatus.FAILED.value
            reason = e.message if isinstance(e, SyncException) else str(e) or type(e).__name__

            if isinstance(e, SyncException):
                logger.error(f"Run {stats.run_id} failed: {reason}", extra={"error_context": e.to_dict()})
            else:
                logger.exception(f"Run {stats.run_id} failed with unexpected error")

            try:
                await self.runs.fail_run(stats.run_id, reason, self._metrics(stats))
            except StoreError as track_error:
                logger.error(
                    f"Could not mark run {stats.run_id} failed: {track_error.message}",
                    extra={"error_context": track_error.to_dict()}
                )

            raise

    async def _process_batch(
        self,
        listings: List[Dict[str, Any]],
        batch: BatchResult,
        state: SessionState,
        stats: RunStats
    ) -> None:
        listing_keys: List[str] = []
        agent_ids: List[str] = []
        office_ids: List[str] = []

        for raw in listings:
            try:
                record = self.normalizer.normalize_property(raw)
                listing_key = record.listing_key
                if not listing_key:
                    raise MissingListingKeyError(
                        "Listing has no ListingKey",
                        context={"listing_id": raw.get("ListingId")}
                    )

                existing = await self.properties.find_by_key(listing_key)
                changes = []
                was_archived = False
                if existing is not None:
                    changes = self.normalizer.detect_changes(existing, record)
                    was_archived = bool(getattr(existing, "is_archived", 0))

                outcome = await self.properties.upsert(record)

                if changes:
                    await self.history.log_changes(listing_key, changes)

            except Exception as e:
                batch.errors += 1
                state.consecutive_errors += 1

                if isinstance(e, SyncException):
                    logger.warning(f"Skipping listing: {e.message}", extra={"error_context": e.to_dict()})
                else:
                    logger.warning(f"Skipping listing after unexpected error: {e!r}")

                if state.consecutive_errors >= MAX_CONSECUTIVE_ERRORS:
                    raise CircuitBreakerOpenError(
                        f"Aborting run: {state.consecutive_errors} consecutive record errors",
                        context={
                            "consecutive_errors": state.consecutive_errors,
                            "threshold": MAX_CONSECUTIVE_ERRORS,
                        },
                        original_exception=e
                    )
                continue

            state.consecutive_errors = 0
            state.observe(record.modification_timestamp)

            batch.processed += 1
            if outcome == "created":
                batch.created += 1
            else:
                batch.updated += 1
            if record.is_archived and not was_archived:
                batch.archived += 1

            listing_keys.append(listing_key)
            for agent_id in (record.list_agent_mls_id, record.buyer_agent_mls_id):
                if agent_id:
                    agent_ids.append(agent_id)
            for office_id in (record.list_office_mls_id, record.buyer_office_mls_id):
                if office_id:
                    office_ids.append(office_id)

        results = [
            await self._enrich("agents", agent_ids, self._store_agents),
            await self._enrich("offices", office_ids, self._store_offices),
            await self._enrich("media", listing_keys, self._store_media),
            await self._enrich("open_houses", listing_keys, self._store_open_houses),
        ]

        for result in results:
            if not result.ok:
                stats.enrichment_errors += 1
                stats.enrichment_failures.append(result.model_dump())

        del stats.enrichment_failures[:-MAX_ERROR_DETAILS]

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    async def _enrich(self, resource: str, ids: List[str], step) -> EnrichmentResult:
        """Run one enrichment step, turning any failure into a result value"""
        if not ids:
            return EnrichmentResult(resource=resource)

        requested = len(set(ids))
        try:
            stored = await step(ids)
        except Exception as e:
            error = RelatedDataError(
                f"{resource} enrichment failed",
                context={"resource": resource, "requested": requested},
                original_exception=e
            )
            logger.error(str(error), extra={"error_context": error.to_dict()})
            return EnrichmentResult(
                resource=resource,
                requested=requested,
                error=f"{type(e).__name__}: {e.message if isinstance(e, SyncException) else e}"
            )

        return EnrichmentResult(resource=resource, requested=requested, stored=stored)

    async def _store_agents(self, agent_ids: List[str]) -> int:
        stored = 0
        records = await self.api_client.fetch_related_resource("Member", "MemberMlsId", agent_ids)
        for raw in records:
            agent = self.normalizer.normalize_agent(raw)
            if agent.agent_mls_id:
                await self.agents.upsert(agent)
                stored += 1
        return stored

    async def _store_offices(self, office_ids: List[str]) -> int:
        stored = 0
        records = await self.api_client.fetch_related_resource("Office", "OfficeMlsId", office_ids)
        for raw in records:
            office = self.normalizer.normalize_office(raw)
            if office.office_mls_id:
                await self.offices.upsert(office)
                stored += 1
        return stored

    async def _store_media(self, listing_keys: List[str]) -> int:
        stored = 0
        records = await self.api_client.fetch_media_for_listings(listing_keys)

        for listing_key, items in _group_by(records, "ResourceRecordKey").items():
            media = [self.normalizer.normalize_media(raw, listing_key) for raw in items]
            stored += await self.media.replace_for_listing(listing_key, media)

            ordered = sorted(media, key=lambda m: m.order_index if m.order_index is not None else 0)
            main_photo_url = ordered[0].media_url if ordered else None
            if main_photo_url:
                await self.properties.update(listing_key, {
                    "main_photo_url": main_photo_url,
                    "photo_count": len(media),
                })

        return stored

    async def _store_open_houses(self, listing_keys: List[str]) -> int:
        stored = 0
        records = await self.api_client.fetch_related_resource("OpenHouse", "ListingKey", listing_keys)

        for listing_key, items in _group_by(records, "ListingKey").items():
            open_houses = [self.normalizer.normalize_open_house(raw, listing_key) for raw in items]
            stored += await self.open_houses.replace_for_listing(listing_key, open_houses)

        return stored

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _resume_stats(paused) -> RunStats:
        failures = list(paused.error_details or [])
        return RunStats(
            run_id=paused.id,
            processed=paused.listings_processed or 0,
            created=paused.listings_created or 0,
            updated=paused.listings_updated or 0,
            archived=paused.listings_archived or 0,
            errors=paused.errors_count or 0,
            enrichment_errors=paused.enrichment_errors_count or len(failures),
            enrichment_failures=failures,
        )

    @staticmethod
    def _metrics(stats: RunStats) -> Dict[str, Any]:
        return {**stats.metrics(), "error_details": list(stats.enrichment_failures)}


def _group_by(records: List[Dict[str, Any]], key_field: str) -> "OrderedDict[str, List[Dict[str, Any]]]":
    grouped: "OrderedDict[str, List[Dict[str, Any]]]" = OrderedDict()
    for record in records:
        key = record.get(key_field)
        if key:
            grouped.setdefault(str(key), []).append(record)
    return grouped
