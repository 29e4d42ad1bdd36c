"""
Pydantic schemas for API request/response models
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Dict, Any
from datetime import datetime
from models.base import ExtractionKind, RunStatus


# ============================================================================
# Health Check Schemas
# ============================================================================

class HealthCheckResponse(BaseModel):
    """Health check response model"""
    status: str = Field("healthy", description="Overall system status: healthy, degraded, unhealthy")
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    database_connected: bool
    credentials_configured: bool
    last_run_status: Optional[RunStatus] = None
    last_run_at: Optional[datetime] = None

    model_config = ConfigDict(
        use_enum_values=True,
        json_schema_extra={
            "example": {
                "status": "healthy",
                "timestamp": "2026-02-16T10:30:00Z",
                "database_connected": True,
                "credentials_configured": True,
                "last_run_status": "completed",
                "last_run_at": "2026-02-16T10:15:00Z"
            }
        }
    )

    @model_validator(mode="after")
    def determine_status(self):
        """Determine overall health status"""
        if not self.database_connected:
            self.status = "unhealthy"
        elif not self.credentials_configured or self.last_run_status == RunStatus.FAILED.value:
            self.status = "degraded"
        else:
            self.status = "healthy"
        return self


# ============================================================================
# Extraction Schemas
# ============================================================================

class ExtractionRunInfo(BaseModel):
    """One extraction run as exposed by status and history"""
    id: int
    kind: ExtractionKind
    status: RunStatus
    triggered_by: str
    listings_processed: int = 0
    listings_created: int = 0
    listings_updated: int = 0
    listings_archived: int = 0
    errors_count: int = 0
    enrichment_errors_count: int = 0
    last_modification_timestamp: Optional[datetime] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    error_message: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class ExtractionStatusResponse(BaseModel):
    """Current extraction state"""
    is_running: bool
    last_run: Optional[ExtractionRunInfo] = None


class ExtractionHistoryResponse(BaseModel):
    """Most recent runs, newest first"""
    runs: List[ExtractionRunInfo]
    count: int


class TriggerResponse(BaseModel):
    """Outcome of a manually triggered session"""
    run_id: int
    status: str
    processed: int
    created: int
    updated: int
    archived: int
    errors: int
    enrichment_errors: int = 0
    resume_cursor: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "run_id": 42,
                "status": "paused",
                "processed": 1000,
                "created": 120,
                "updated": 880,
                "archived": 3,
                "errors": 0,
                "enrichment_errors": 0,
                "resume_cursor": "2026-02-16T09:59:12"
            }
        }
    )


class ListingStatsResponse(BaseModel):
    """Listing counts by status"""
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    total_properties: int
    by_status: Dict[str, int]
    last_modification: Optional[datetime] = None


# ============================================================================
# Error Response Schema
# ============================================================================

class ErrorResponse(BaseModel):
    """Standard error response"""
    error: str
    detail: Optional[Any] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": "LockContentionError",
                "detail": "Could not acquire extraction lock; another extraction may be running",
                "timestamp": "2026-02-16T10:30:00Z"
            }
        }
    )
