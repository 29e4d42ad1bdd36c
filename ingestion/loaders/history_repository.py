"""
Append-only property change log
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from ingestion.base import ChangeHistoryStore
from models.base import ChangeType
from models.property_history import PropertyHistory
from schemas.normalized import ChangeLogEntry
from core.exceptions import StoreError
import logging

logger = logging.getLogger(__name__)


class PropertyHistoryRepository(ChangeHistoryStore):
    """Writes one property_history row per changed field"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def log_changes(self, listing_key: str, changes: List[ChangeLogEntry]) -> None:
        if not changes:
            return

        try:
            for change in changes:
                self.db.add(PropertyHistory(
                    listing_key=listing_key,
                    change_type=ChangeType(change.change_type),
                    field_name=change.field,
                    old_value=_stored(change.old_value),
                    new_value=_stored(change.new_value),
                    changed_at=change.observed_at,
                ))
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(
                "Failed to log listing changes",
                context={
                    "record_key": listing_key,
                    "operation": "INSERT",
                    "table_name": "property_history",
                    "changes": len(changes),
                },
                original_exception=e
            )

        logger.debug(f"Logged {len(changes)} changes for {listing_key}")

    async def get_for_listing(
        self,
        listing_key: str,
        change_type: Optional[ChangeType] = None
    ) -> List[PropertyHistory]:
        """Newest first"""
        query = select(PropertyHistory).where(PropertyHistory.listing_key == listing_key)
        if change_type is not None:
            query = query.where(PropertyHistory.change_type == change_type)
        query = query.order_by(PropertyHistory.changed_at.desc(), PropertyHistory.id.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())


def _stored(value) -> Optional[str]:
    return None if value is None else str(value)
