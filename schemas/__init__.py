"""
Pydantic schemas for data validation and serialization.

This package defines Pydantic models for normalized provider records,
sync results and API responses:

Schemas:
    normalized: Typed normalized records (property, media, agent, office,
        open house) and change-log entries
    sync: Run statistics, batch counters and enrichment results
    api: API endpoint response schemas

Usage:
    from schemas.normalized import NormalizedProperty, ChangeLogEntry
    from schemas.sync import RunStats
    from schemas.api import ExtractionStatusResponse

Example:
    # Validate a normalized listing
    record = NormalizedProperty(listing_key="abc123", list_price="500000")

    # Pydantic coerces provider values to the column types
    assert record.list_price == 500000.0

Validation:
    Normalized records forbid unknown fields, so a field map entry without
    a matching column fails loudly instead of being dropped.
"""

from schemas.normalized import (
    NormalizedRecord,
    NormalizedProperty,
    NormalizedMedia,
    NormalizedAgent,
    NormalizedOffice,
    NormalizedOpenHouse,
    ChangeLogEntry,
)
from schemas.sync import BatchResult, EnrichmentResult, RunStats
from schemas.api import ExtractionRunInfo, ExtractionStatusResponse, HealthCheckResponse

__all__ = [
    "NormalizedRecord",
    "NormalizedProperty",
    "NormalizedMedia",
    "NormalizedAgent",
    "NormalizedOffice",
    "NormalizedOpenHouse",
    "ChangeLogEntry",
    "BatchResult",
    "EnrichmentResult",
    "RunStats",
    "ExtractionRunInfo",
    "ExtractionStatusResponse",
    "HealthCheckResponse",
]
