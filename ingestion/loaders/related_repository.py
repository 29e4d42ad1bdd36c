"""
Stores for agents, offices, media and open houses
"""

from typing import List, Dict, Any
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from ingestion.base import AgentStore, OfficeStore, MediaStore, OpenHouseStore
from models.related import Agent, Office, Media, OpenHouse
from schemas.normalized import NormalizedRecord
from core.exceptions import UpsertError, StoreError
import logging

logger = logging.getLogger(__name__)


class KeyedRepository:
    """Upsert by a single natural key column"""

    model = None
    key_field: str = ""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def find_by_key(self, key: str):
        result = await self.db.execute(
            select(self.model).where(getattr(self.model, self.key_field) == key)
        )
        return result.scalar_one_or_none()

    async def upsert(self, record: NormalizedRecord) -> None:
        values = record.to_row()
        key = values.get(self.key_field)
        table_name = self.model.__tablename__
        if not key:
            raise UpsertError(
                f"Cannot upsert without {self.key_field}",
                context={"table_name": table_name}
            )

        try:
            existing = await self.find_by_key(key)
            if existing is None:
                self.db.add(self.model(**values))
            else:
                for field, value in values.items():
                    setattr(existing, field, value)
                existing.updated_at = datetime.utcnow()
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise UpsertError(
                f"Failed to upsert {table_name} row",
                context={"record_key": key, "table_name": table_name},
                original_exception=e
            )


class AgentRepository(KeyedRepository, AgentStore):
    model = Agent
    key_field = "agent_mls_id"


class OfficeRepository(KeyedRepository, OfficeStore):
    model = Office
    key_field = "office_mls_id"


class ListingScopedRepository:
    """Rows owned by a listing, replaced as a whole set"""

    model = None

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def get_for_listing(self, listing_key: str) -> list:
        result = await self.db.execute(
            select(self.model)
            .where(self.model.listing_key == listing_key)
            .order_by(self.model.id)
        )
        return list(result.scalars().all())

    async def replace_for_listing(self, listing_key: str, items: List[NormalizedRecord]) -> int:
        table_name = self.model.__tablename__
        try:
            await self.db.execute(
                delete(self.model).where(self.model.listing_key == listing_key)
            )
            for item in items:
                values: Dict[str, Any] = item.to_row()
                values["listing_key"] = listing_key
                self.db.add(self.model(**values))
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(
                f"Failed to replace {table_name} rows",
                context={
                    "record_key": listing_key,
                    "operation": "REPLACE",
                    "table_name": table_name,
                },
                original_exception=e
            )

        return len(items)


class MediaRepository(ListingScopedRepository, MediaStore):
    model = Media


class OpenHouseRepository(ListingScopedRepository, OpenHouseStore):
    model = OpenHouse

    async def cleanup_expired(self, days_old: int = 7) -> int:
        """Delete open houses dated more than days_old days ago"""
        cutoff = datetime.utcnow().date() - timedelta(days=days_old)
        try:
            result = await self.db.execute(
                delete(OpenHouse).where(OpenHouse.open_house_date < cutoff)
            )
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(
                "Failed to clean up expired open houses",
                context={"operation": "DELETE", "table_name": "open_houses"},
                original_exception=e
            )

        logger.info(f"Deleted {result.rowcount} open houses older than {cutoff}")
        return result.rowcount
