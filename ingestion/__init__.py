"""
Listing sync pipeline components.

This package contains the extraction engine that keeps the local listing
store in step with the Bridge RESO Web API:

Modules:
    base: Abstract collaborator interfaces (stores, run tracker, lock)
    runner: Extraction orchestrator that sequences one bounded session
    scheduler: APScheduler integration for incremental, continuation and
        cleanup jobs

Subpackages:
    extractors: Bridge API client with pagination, rate limiting and retry
    transformers: Field maps, normalization and change detection
    loaders: SQLAlchemy stores, run tracker and distributed lock

Architecture:
    Each session follows the same path:

    1. Lock - acquire the named lock or give up after a bounded wait
    2. Fetch - page through listings ordered by modification time
    3. Normalize - map, coerce and validate each listing, diff it against
       the stored row
    4. Upsert - write the listing and its change log
    5. Enrich - fetch agents, offices, media and open houses per batch
    6. Pause or complete - persist the resume cursor at the session limit

    Per-record failures are isolated up to a consecutive-error threshold;
    enrichment failures are isolated per resource type.

Usage:
    from ingestion.extractors.bridge_client import BridgeApiClient
    from ingestion.runner import ExtractionOrchestrator

Example:
    async with async_session_maker() as session:
        async with BridgeApiClient() as client:
            orchestrator = ExtractionOrchestrator.from_session(session, client)
            stats = await orchestrator.run(triggered_by="manual")

    print(f"Processed {stats.processed} listings ({stats.status})")

Error Handling:
    All components raise the exceptions in core.exceptions; transient
    upstream errors are retried inside the client, everything else
    surfaces to the orchestrator, which records it on the run.
"""

from ingestion.extractors.bridge_client import BridgeApiClient
from ingestion.transformers.normalizer import ListingNormalizer
from ingestion.runner import ExtractionOrchestrator
from ingestion.scheduler import SyncScheduler

__all__ = [
    "ExtractionOrchestrator",
    "SyncScheduler",
    "BridgeApiClient",
    "ListingNormalizer",
]
