"""
Abstract collaborators the extraction orchestrator depends on.

SQLAlchemy implementations live in ingestion.loaders.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, Optional
from datetime import datetime
from schemas.normalized import (
    NormalizedProperty,
    NormalizedAgent,
    NormalizedOffice,
    NormalizedMedia,
    NormalizedOpenHouse,
    ChangeLogEntry,
)


class PropertyStore(ABC):
    """Persistence for denormalized listing rows"""

    @abstractmethod
    async def find_by_key(self, listing_key: str) -> Optional[Any]:
        """Return the stored record for listing_key, or None"""
        pass

    @abstractmethod
    async def upsert(self, record: NormalizedProperty) -> str:
        """
        Insert or update a listing by listing_key.

        Returns:
            "created" or "updated"
        """
        pass

    @abstractmethod
    async def update(self, listing_key: str, values: Dict[str, Any]) -> None:
        """Set individual columns on an existing listing"""
        pass

    @abstractmethod
    async def latest_modification_timestamp(self) -> Optional[datetime]:
        """Highest modification_timestamp stored, or None when empty"""
        pass


class AgentStore(ABC):
    @abstractmethod
    async def upsert(self, record: NormalizedAgent) -> None:
        pass


class OfficeStore(ABC):
    @abstractmethod
    async def upsert(self, record: NormalizedOffice) -> None:
        pass


class MediaStore(ABC):
    @abstractmethod
    async def replace_for_listing(self, listing_key: str, items: List[NormalizedMedia]) -> int:
        """Replace every media row of a listing; returns rows written"""
        pass


class OpenHouseStore(ABC):
    @abstractmethod
    async def replace_for_listing(self, listing_key: str, items: List[NormalizedOpenHouse]) -> int:
        """Replace every open house of a listing; returns rows written"""
        pass


class ChangeHistoryStore(ABC):
    @abstractmethod
    async def log_changes(self, listing_key: str, changes: List[ChangeLogEntry]) -> None:
        """Append change entries for a listing"""
        pass


class RunTracker(ABC):
    """
    Lifecycle and metrics of extraction runs.

    Status transitions:
        running -> paused | completed | failed
        paused -> running (continuation)
    """

    @abstractmethod
    async def start_run(self, kind: str, triggered_by: str) -> int:
        """Create a running run and return its id"""
        pass

    @abstractmethod
    async def update_metrics(self, run_id: int, metrics: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def reactivate_run(self, run_id: int) -> None:
        """Move a paused run back to running"""
        pass

    @abstractmethod
    async def pause_run(self, run_id: int, resume_cursor: Optional[datetime]) -> None:
        pass

    @abstractmethod
    async def complete_run(self, run_id: int) -> None:
        pass

    @abstractmethod
    async def fail_run(
        self,
        run_id: int,
        reason: str,
        metrics: Optional[Dict[str, Any]] = None
    ) -> None:
        pass

    @abstractmethod
    async def get_last_paused_run(self) -> Optional[Any]:
        """
        Most recent paused run, or None.

        The returned object exposes id, listings_* counters, errors_count,
        last_modification_timestamp and error_details.
        """
        pass


class DistributedLock(ABC):
    """Named mutual exclusion shared by every process that runs syncs"""

    @abstractmethod
    async def acquire(self, name: str, timeout: float) -> bool:
        """Wait up to timeout seconds; True when the lock is now held"""
        pass

    @abstractmethod
    async def release(self, name: str) -> None:
        pass

    @abstractmethod
    async def extend(self, name: str) -> bool:
        """Renew a held lease; False when it has been lost to another owner"""
        pass
