
"""
FastAPI application initialization
"""

from fastapi import FastAPI
from api.routes import health, extraction
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.logging import setup_logging
from ingestion.scheduler import SyncScheduler
import logging

setup_logging()
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Listing Sync API",
    description="Status and control surface for the listing sync engine",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(RequestContextMiddleware)

# Initialize Scheduler
scheduler = SyncScheduler()


# Include routers
app.include_router(health.router)
app.include_router(extraction.router)


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Listing Sync API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.SCHEDULER_ENABLED:
        scheduler.start()
    else:
        logger.info("Scheduler disabled")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Listing Sync API")
    if scheduler.scheduler.running:
        scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Listing Sync API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "status": "/extraction/status",
            "history": "/extraction/history",
            "trigger": "/extraction/trigger",
            "stats": "/extraction/stats"
        }
    }
