"""
Table-backed distributed lock
"""

from typing import Optional
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from ingestion.base import DistributedLock
from models.sync_lock import SyncLock
from core.config import settings
from core.exceptions import StoreError
import asyncio
import logging
import os
import socket
import uuid

logger = logging.getLogger(__name__)


class DatabaseLock(DistributedLock):
    """
    Lease rows in sync_locks, one per lock name.

    Acquisition is an INSERT guarded by the primary key; a concurrent
    holder makes it fail with IntegrityError and the caller polls until
    its timeout. Expired leases are deleted before each attempt.

    Attributes:
        owner: Identity written to the lease; release only removes own leases
        ttl_seconds: Lease lifetime
        poll_interval: Seconds between acquisition attempts
    """

    def __init__(
        self,
        db_session: AsyncSession,
        owner: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        poll_interval: float = 0.5
    ):
        self.db = db_session
        self.owner = owner or f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"
        self.ttl_seconds = settings.SYNC_LOCK_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.poll_interval = poll_interval

    async def acquire(self, name: str, timeout: float) -> bool:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            if await self._try_acquire(name):
                logger.info(f"Acquired lock {name} as {self.owner}")
                return True

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.info(f"Lock {name} still held after {timeout}s")
                return False

            await asyncio.sleep(min(self.poll_interval, remaining))

    async def release(self, name: str) -> None:
        try:
            await self.db.execute(
                delete(SyncLock)
                .where(SyncLock.name == name, SyncLock.owner == self.owner)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(
                f"Failed to release lock {name}",
                context={"lock_name": name, "owner": self.owner, "table_name": "sync_locks"},
                original_exception=e
            )

        logger.info(f"Released lock {name}")

    async def extend(self, name: str) -> bool:
        """Push the lease expiry ttl_seconds into the future; False when no longer held"""
        expires_at = datetime.utcnow() + timedelta(seconds=self.ttl_seconds)
        try:
            result = await self.db.execute(
                update(SyncLock)
                .where(SyncLock.name == name, SyncLock.owner == self.owner)
                .values(expires_at=expires_at)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()

        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(
                f"Failed to extend lock {name}",
                context={"lock_name": name, "owner": self.owner, "table_name": "sync_locks"},
                original_exception=e
            )

        if result.rowcount == 0:
            logger.warning(f"Lock {name} is no longer held by {self.owner}")
            return False

        logger.debug(f"Extended lock {name} until {expires_at.isoformat()}")
        return True

    async def _try_acquire(self, name: str) -> bool:
        now = datetime.utcnow()
        try:
            await self.db.execute(
                delete(SyncLock)
                .where(SyncLock.name == name, SyncLock.expires_at <= now)
                .execution_options(synchronize_session=False)
            )
            lease = SyncLock(
                name=name,
                owner=self.owner,
                acquired_at=now,
                expires_at=now + timedelta(seconds=self.ttl_seconds),
            )
            self.db.add(lease)
            await self.db.commit()
            # Leases are managed with bulk statements only
            self.db.expunge(lease)
            return True

        except IntegrityError:
            await self.db.rollback()
            return False
