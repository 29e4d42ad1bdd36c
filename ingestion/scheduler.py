import logging
from typing import Optional, Callable, Dict
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from core.database import async_session_maker
from core.exceptions import SyncException, LockContentionError, ConfigurationError
from ingestion.runner import ExtractionOrchestrator
from ingestion.extractors.bridge_client import BridgeApiClient
from ingestion.loaders.run_tracker import ExtractionRunTracker
from ingestion.loaders.related_repository import OpenHouseRepository
from models.base import TriggerSource
from schemas.sync import RunStats

logger = logging.getLogger(__name__)


class SyncScheduler:
    """
    APScheduler wrapper that invokes the orchestrator on fixed intervals.

    Jobs:
        incremental_sync: new incremental run (triggered_by "cron")
        continuation_sync: resumes a paused run, skipped when none is paused
        cleanup: prunes old open houses and extraction runs
    """

    def __init__(
        self,
        session_factory: Optional[Callable] = None,
        client_factory: Optional[Callable[[], BridgeApiClient]] = None
    ):
        self.scheduler = AsyncIOScheduler()
        self.session_factory = session_factory or async_session_maker
        self.client_factory = client_factory or BridgeApiClient

    async def run_sync_job(
        self,
        triggered_by: str = TriggerSource.CRON.value,
        is_resync: bool = False
    ) -> Optional[RunStats]:
        """Job to run one sync session; failures are logged, not raised"""
        logger.info(f"Scheduler: starting sync job ({triggered_by})")
        async with self.session_factory() as session:
            async with self.client_factory() as client:
                orchestrator = ExtractionOrchestrator.from_session(session, client)
                try:
                    stats = await orchestrator.run(is_resync=is_resync, triggered_by=triggered_by)
                except LockContentionError as e:
                    logger.info(f"Scheduler: sync skipped - {e.message}")
                    return None
                except ConfigurationError as e:
                    logger.warning(f"Scheduler: sync not configured - {e.message}")
                    return None
                except SyncException as e:
                    logger.error(f"Scheduler: sync job failed - {e.message}", extra={"error_context": e.to_dict()})
                    return None
                except Exception as e:
                    logger.error(f"Scheduler: sync job failed - {e}")
                    return None

        logger.info(f"Scheduler: run {stats.run_id} finished with status {stats.status}")
        return stats

    async def run_incremental_job(self) -> Optional[RunStats]:
        return await self.run_sync_job(TriggerSource.CRON.value)

    async def run_continuation_job(self) -> Optional[RunStats]:
        async with self.session_factory() as session:
            paused = await ExtractionRunTracker(session).get_last_paused_run()

        if paused is None:
            logger.debug("Scheduler: no paused run to continue")
            return None

        return await self.run_sync_job(TriggerSource.CONTINUATION.value)

    async def run_cleanup_job(self) -> Dict[str, int]:
        async with self.session_factory() as session:
            open_houses = await OpenHouseRepository(session).cleanup_expired(
                settings.OPEN_HOUSE_RETENTION_DAYS
            )
            runs = await ExtractionRunTracker(session).cleanup_old(settings.RUN_RETENTION_DAYS)

        logger.info(f"Scheduler: cleanup removed {open_houses} open houses and {runs} runs")
        return {"open_houses_deleted": open_houses, "runs_deleted": runs}

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_incremental_job,
            trigger=IntervalTrigger(minutes=settings.SYNC_INTERVAL_MINUTES),
            id="incremental_sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.add_job(
            self.run_continuation_job,
            trigger=IntervalTrigger(minutes=settings.CONTINUATION_INTERVAL_MINUTES),
            id="continuation_sync",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.add_job(
            self.run_cleanup_job,
            trigger=IntervalTrigger(hours=settings.CLEANUP_INTERVAL_HOURS),
            id="cleanup",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info("Sync Scheduler started")

    def stop(self):
        self.scheduler.shutdown()
        logger.info("Sync Scheduler stopped")
