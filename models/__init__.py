"""
SQLAlchemy ORM models for database tables.

This package defines the database schema using SQLAlchemy ORM models:

Models:
    base: Base declarative class and shared enums (ExtractionKind,
        RunStatus, TriggerSource, ChangeType)
    property: Denormalized listing table
    related: Agents, offices, media and open houses
    property_history: Append-only per-field change log
    extraction_run: Extraction run tracking and metrics
    sync_lock: Named lease used as the cross-process run lock

Usage:
    from models.property import Property
    from models.extraction_run import ExtractionRun
    from models.base import RunStatus

Example:
    # Look up a listing
    result = await session.execute(
        select(Property).where(Property.listing_key == "abc123")
    )
    listing = result.scalar_one_or_none()

Relationships:
    Tables are joined by provider keys (listing_key, agent_mls_id,
    office_mls_id) rather than foreign keys, because related records
    arrive in separate upstream calls and may precede or trail listings.
"""

from models.base import Base
from models.property import Property
from models.related import Agent, Office, Media, OpenHouse
from models.property_history import PropertyHistory
from models.extraction_run import ExtractionRun
from models.sync_lock import SyncLock

__all__ = [
    "Base",
    "Property",
    "Agent",
    "Office",
    "Media",
    "OpenHouse",
    "PropertyHistory",
    "ExtractionRun",
    "SyncLock",
]
