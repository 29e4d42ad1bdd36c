"""
Extraction status, history, trigger and listing statistics endpoints
"""

from fastapi import APIRouter, Depends, Query, Request, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from api.dependencies import get_db, get_orchestrator
from schemas.api import (
    ExtractionRunInfo,
    ExtractionStatusResponse,
    ExtractionHistoryResponse,
    TriggerResponse,
    ListingStatsResponse,
)
from ingestion.runner import ExtractionOrchestrator
from ingestion.loaders.run_tracker import ExtractionRunTracker
from ingestion.loaders.property_repository import PropertyRepository
from models.base import TriggerSource
from core.exceptions import SyncException, LockContentionError, ConfigurationError
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/extraction", tags=["Extraction"])


@router.get("/status", response_model=ExtractionStatusResponse)
async def get_status(db: AsyncSession = Depends(get_db)):
    """Whether a run is in flight, and the most recent run"""
    runs = ExtractionRunTracker(db)
    last_run = await runs.get_last_run()

    return ExtractionStatusResponse(
        is_running=await runs.is_running(),
        last_run=ExtractionRunInfo.model_validate(last_run) if last_run else None
    )


@router.get("/history", response_model=ExtractionHistoryResponse)
async def get_history(
    limit: int = Query(20, ge=1, le=100, description="Number of recent runs to return"),
    db: AsyncSession = Depends(get_db)
):
    runs = await ExtractionRunTracker(db).get_history(limit)
    items = [ExtractionRunInfo.model_validate(run) for run in runs]
    return ExtractionHistoryResponse(runs=items, count=len(items))


@router.post("/trigger", response_model=TriggerResponse)
async def trigger_extraction(
    request: Request,
    sync_type: str = Query(
        "incremental",
        alias="type",
        pattern="^(incremental|full)$",
        description="incremental (changes since the cursor) or full"
    ),
    orchestrator: ExtractionOrchestrator = Depends(get_orchestrator)
):
    """
    Run one sync session now.

    Returns 409 when another session holds the lock and 503 when upstream
    credentials are not configured.
    """
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")
    logger.info(f"[{request_id}] POST /extraction/trigger type={sync_type}")

    try:
        stats = await orchestrator.run(
            is_resync=sync_type == "full",
            triggered_by=TriggerSource.MANUAL.value
        )
    except LockContentionError as e:
        raise HTTPException(status_code=409, detail=e.message)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message)
    except SyncException as e:
        logger.error(f"[{request_id}] Triggered extraction failed: {e.message}")
        raise HTTPException(status_code=500, detail=e.message)

    return TriggerResponse(
        run_id=stats.run_id,
        status=stats.status,
        processed=stats.processed,
        created=stats.created,
        updated=stats.updated,
        archived=stats.archived,
        errors=stats.errors,
        enrichment_errors=stats.enrichment_errors,
        resume_cursor=stats.resume_cursor
    )


@router.get("/stats", response_model=ListingStatsResponse)
async def get_listing_stats(db: AsyncSession = Depends(get_db)):
    properties = PropertyRepository(db)
    by_status = await properties.count_by_status()

    return ListingStatsResponse(
        total_properties=sum(by_status.values()),
        by_status=by_status,
        last_modification=await properties.latest_modification_timestamp()
    )
