"""
Health check endpoint with database and sync status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from api.dependencies import get_db
from schemas.api import HealthCheckResponse
from ingestion.loaders.run_tracker import ExtractionRunTracker
from core.config import settings
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Whether Bridge credentials are configured
    - Status of the most recent extraction run
    """

    # Check database connectivity
    db_connected = False
    last_run = None

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
        last_run = await ExtractionRunTracker(db).get_last_run()
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {str(e)}")

    return HealthCheckResponse(
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        credentials_configured=bool(settings.BRIDGE_SERVER_TOKEN and settings.BRIDGE_DATASET_ID),
        last_run_status=last_run.status if last_run else None,
        last_run_at=last_run.started_at if last_run else None
    )
