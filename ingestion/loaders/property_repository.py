"""
Load normalized listings into the properties table (idempotent upsert)
"""

from typing import Dict, Any, Optional
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import SQLAlchemyError
from ingestion.base import PropertyStore
from models.property import Property
from schemas.normalized import NormalizedProperty
from core.exceptions import UpsertError, StoreError
import logging

logger = logging.getLogger(__name__)


class PropertyRepository(PropertyStore):
    """
    Listing persistence keyed by listing_key.

    Ensures:
    - One row per listing_key however often it is re-ingested
    - Only fields present in the normalized record are written
    - A failed write is rolled back before the error is raised
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def find_by_key(self, listing_key: str) -> Optional[Property]:
        result = await self.db.execute(
            select(Property).where(Property.listing_key == listing_key)
        )
        return result.scalar_one_or_none()

    async def upsert(self, record: NormalizedProperty) -> str:
        """
        Insert or update a listing.

        Returns:
            "created" or "updated"

        Raises:
            UpsertError: If the record has no key or the write fails
        """
        values = record.to_row()
        listing_key = values.get("listing_key")
        if not listing_key:
            raise UpsertError(
                "Cannot upsert a listing without listing_key",
                context={"table_name": "properties"}
            )

        try:
            existing = await self.find_by_key(listing_key)

            if existing is None:
                self.db.add(Property(**values))
                outcome = "created"
            else:
                for field, value in values.items():
                    setattr(existing, field, value)
                existing.updated_at = datetime.utcnow()
                outcome = "updated"

            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise UpsertError(
                "Failed to upsert listing",
                context={"record_key": listing_key, "table_name": "properties"},
                original_exception=e
            )

        logger.debug(f"Listing {listing_key} {outcome}")
        return outcome

    async def update(self, listing_key: str, values: Dict[str, Any]) -> None:
        if not values:
            return

        try:
            await self.db.execute(
                update(Property)
                .where(Property.listing_key == listing_key)
                .values(**values, updated_at=datetime.utcnow())
            )
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(
                "Failed to update listing",
                context={
                    "record_key": listing_key,
                    "operation": "UPDATE",
                    "table_name": "properties",
                    "fields": sorted(values),
                },
                original_exception=e
            )

    async def latest_modification_timestamp(self) -> Optional[datetime]:
        result = await self.db.execute(select(func.max(Property.modification_timestamp)))
        return result.scalar()

    async def count_by_status(self) -> Dict[str, int]:
        """Listing count per standard_status"""
        result = await self.db.execute(
            select(Property.standard_status, func.count(Property.id))
            .group_by(Property.standard_status)
        )
        return {
            (status or "Unknown"): count
            for status, count in result.all()
        }
