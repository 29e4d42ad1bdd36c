"""
Extraction run lifecycle and metrics persistence
"""

from typing import Dict, Any, Optional, List
from datetime import datetime, timedelta
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from sqlalchemy.exc import SQLAlchemyError
from ingestion.base import RunTracker
from models.base import ExtractionKind, RunStatus
from models.extraction_run import ExtractionRun
from core.exceptions import StoreError
import logging

logger = logging.getLogger(__name__)

METRIC_COLUMNS = frozenset({
    "listings_processed",
    "listings_created",
    "listings_updated",
    "listings_archived",
    "errors_count",
    "enrichment_errors_count",
    "error_details",
})


class ExtractionRunTracker(RunTracker):
    """
    Persists ExtractionRun rows.

    Every state change is committed immediately so progress is visible to
    the status API while a run is still in flight.
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def start_run(self, kind: str, triggered_by: str) -> int:
        run = ExtractionRun(
            kind=ExtractionKind(kind),
            triggered_by=triggered_by,
            status=RunStatus.RUNNING,
            started_at=datetime.utcnow(),
        )
        self.db.add(run)
        await self._commit("INSERT")
        await self.db.refresh(run)

        logger.info(f"Started {run.kind.value} run {run.id} (triggered by {triggered_by})")
        return run.id

    async def update_metrics(self, run_id: int, metrics: Dict[str, Any]) -> None:
        run = await self._get(run_id)
        self._apply_metrics(run, metrics)
        await self._commit("UPDATE")

    async def reactivate_run(self, run_id: int) -> None:
        run = await self._get(run_id)
        run.status = RunStatus.RUNNING
        run.completed_at = None
        run.duration_seconds = None
        await self._commit("UPDATE")
        logger.info(f"Reactivated paused run {run_id}")

    async def pause_run(self, run_id: int, resume_cursor: Optional[datetime]) -> None:
        run = await self._get(run_id)
        run.status = RunStatus.PAUSED
        run.last_modification_timestamp = resume_cursor
        self._finish(run)
        await self._commit("UPDATE")

    async def complete_run(self, run_id: int) -> None:
        run = await self._get(run_id)
        run.status = RunStatus.COMPLETED
        self._finish(run)
        await self._commit("UPDATE")

    async def fail_run(
        self,
        run_id: int,
        reason: str,
        metrics: Optional[Dict[str, Any]] = None
    ) -> None:
        """Mark a run failed; discards any uncommitted work first"""
        await self.db.rollback()

        run = await self._get(run_id)
        run.status = RunStatus.FAILED
        run.error_message = reason
        if metrics:
            self._apply_metrics(run, metrics)
        self._finish(run)
        await self._commit("UPDATE")

    async def get_last_paused_run(self) -> Optional[ExtractionRun]:
        result = await self.db.execute(
            select(ExtractionRun)
            .where(ExtractionRun.status == RunStatus.PAUSED)
            .order_by(ExtractionRun.started_at.desc(), ExtractionRun.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_last_run(self) -> Optional[ExtractionRun]:
        result = await self.db.execute(
            select(ExtractionRun)
            .order_by(ExtractionRun.started_at.desc(), ExtractionRun.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_history(self, limit: int = 20) -> List[ExtractionRun]:
        result = await self.db.execute(
            select(ExtractionRun)
            .order_by(ExtractionRun.started_at.desc(), ExtractionRun.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def is_running(self) -> bool:
        result = await self.db.execute(
            select(func.count(ExtractionRun.id))
            .where(ExtractionRun.status == RunStatus.RUNNING)
        )
        return result.scalar() > 0

    async def cleanup_old(self, days_to_keep: int = 30) -> int:
        """Delete runs started more than days_to_keep days ago"""
        cutoff = datetime.utcnow() - timedelta(days=days_to_keep)
        result = await self.db.execute(
            delete(ExtractionRun).where(ExtractionRun.started_at < cutoff)
        )
        await self._commit("DELETE")

        logger.info(f"Deleted {result.rowcount} extraction runs older than {days_to_keep} days")
        return result.rowcount

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get(self, run_id: int) -> ExtractionRun:
        run = await self.db.get(ExtractionRun, run_id)
        if run is None:
            raise StoreError(
                f"Extraction run {run_id} not found",
                context={"run_id": run_id, "table_name": "extraction_runs"}
            )
        return run

    @staticmethod
    def _apply_metrics(run: ExtractionRun, metrics: Dict[str, Any]) -> None:
        for column, value in metrics.items():
            if column in METRIC_COLUMNS:
                setattr(run, column, value)

    @staticmethod
    def _finish(run: ExtractionRun) -> None:
        run.completed_at = datetime.utcnow()
        run.duration_seconds = (run.completed_at - run.started_at).total_seconds()

    async def _commit(self, operation: str) -> None:
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise StoreError(
                "Failed to persist extraction run",
                context={"operation": operation, "table_name": "extraction_runs"},
                original_exception=e
            )
