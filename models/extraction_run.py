from sqlalchemy import Column, String, Enum, DateTime, Float, Integer, Text, Index, JSON
from datetime import datetime
from models.base import Base, BigIntegerPK, ExtractionKind, RunStatus


class ExtractionRun(Base):
    """
    One ingestion session, or a chain of sessions when a paused run is
    continued.

    Purpose:
    - Audit trail of every sync
    - Live progress (counters are written after every batch)
    - Resume cursor for paused runs
    """
    __tablename__ = "extraction_runs"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)

    # Run metadata
    kind = Column(Enum(ExtractionKind), default=ExtractionKind.INCREMENTAL, nullable=False)
    triggered_by = Column(String(50), nullable=False, default="cron")
    status = Column(Enum(RunStatus), default=RunStatus.RUNNING, nullable=False, index=True)

    # Counters
    listings_processed = Column(Integer, nullable=False, default=0)
    listings_created = Column(Integer, nullable=False, default=0)
    listings_updated = Column(Integer, nullable=False, default=0)
    listings_archived = Column(Integer, nullable=False, default=0)
    errors_count = Column(Integer, nullable=False, default=0)
    enrichment_errors_count = Column(Integer, nullable=False, default=0)

    # Resume cursor (max ModificationTimestamp seen before pausing)
    last_modification_timestamp = Column(DateTime, nullable=True)

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Error tracking
    error_message = Column(Text, nullable=True)
    error_details = Column(JSON, nullable=True)  # Most recent enrichment failures

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_extraction_run_status_started", "status", "started_at"),
    )
