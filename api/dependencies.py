"""
FastAPI dependencies shared by the routers
"""

from typing import AsyncGenerator
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import async_session_maker
from ingestion.extractors.bridge_client import BridgeApiClient
from ingestion.runner import ExtractionOrchestrator


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Database session per request"""
    async with async_session_maker() as session:
        yield session


async def get_api_client() -> AsyncGenerator[BridgeApiClient, None]:
    async with BridgeApiClient() as client:
        yield client


async def get_orchestrator(
    db: AsyncSession = Depends(get_db),
    client: BridgeApiClient = Depends(get_api_client)
) -> ExtractionOrchestrator:
    return ExtractionOrchestrator.from_session(db, client)
