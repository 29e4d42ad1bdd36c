import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from ingestion.scheduler import SyncScheduler
from schemas.sync import RunStats
from core.exceptions import LockContentionError, ConfigurationError, CircuitBreakerOpenError


def make_scheduler(session=None):
    session = session or AsyncMock()
    session_factory = MagicMock()
    session_factory.return_value.__aenter__.return_value = session

    client = MagicMock()
    client_factory = MagicMock()
    client_factory.return_value.__aenter__ = AsyncMock(return_value=client)
    client_factory.return_value.__aexit__ = AsyncMock(return_value=None)

    return SyncScheduler(session_factory=session_factory, client_factory=client_factory)


def test_scheduler_initialization():
    scheduler = SyncScheduler()
    assert scheduler.scheduler is not None
    assert scheduler.session_factory is not None
    assert scheduler.client_factory is not None


@pytest.mark.asyncio
async def test_sync_job_runs_orchestrator():
    with patch("ingestion.scheduler.ExtractionOrchestrator") as mock_orchestrator_cls:
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=RunStats(run_id=7, status="completed", processed=3))
        mock_orchestrator_cls.from_session.return_value = orchestrator

        stats = await make_scheduler().run_incremental_job()

        assert stats.run_id == 7
        orchestrator.run.assert_awaited_once_with(is_resync=False, triggered_by="cron")


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    LockContentionError("held"),
    ConfigurationError("no credentials"),
    CircuitBreakerOpenError("too many errors"),
    RuntimeError("unexpected"),
])
async def test_sync_job_swallows_failures(error):
    with patch("ingestion.scheduler.ExtractionOrchestrator") as mock_orchestrator_cls:
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(side_effect=error)
        mock_orchestrator_cls.from_session.return_value = orchestrator

        assert await make_scheduler().run_sync_job() is None


@pytest.mark.asyncio
async def test_continuation_skipped_without_paused_run():
    with patch("ingestion.scheduler.ExtractionRunTracker") as mock_tracker_cls, \
            patch("ingestion.scheduler.ExtractionOrchestrator") as mock_orchestrator_cls:
        mock_tracker_cls.return_value.get_last_paused_run = AsyncMock(return_value=None)

        assert await make_scheduler().run_continuation_job() is None
        mock_orchestrator_cls.from_session.assert_not_called()


@pytest.mark.asyncio
async def test_continuation_resumes_paused_run():
    with patch("ingestion.scheduler.ExtractionRunTracker") as mock_tracker_cls, \
            patch("ingestion.scheduler.ExtractionOrchestrator") as mock_orchestrator_cls:
        mock_tracker_cls.return_value.get_last_paused_run = AsyncMock(return_value=MagicMock(id=3))
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=RunStats(run_id=3, status="completed"))
        mock_orchestrator_cls.from_session.return_value = orchestrator

        stats = await make_scheduler().run_continuation_job()

        assert stats.run_id == 3
        orchestrator.run.assert_awaited_once_with(is_resync=False, triggered_by="continuation")


@pytest.mark.asyncio
async def test_cleanup_job():
    with patch("ingestion.scheduler.OpenHouseRepository") as mock_open_houses, \
            patch("ingestion.scheduler.ExtractionRunTracker") as mock_tracker_cls:
        mock_open_houses.return_value.cleanup_expired = AsyncMock(return_value=4)
        mock_tracker_cls.return_value.cleanup_old = AsyncMock(return_value=2)

        result = await make_scheduler().run_cleanup_job()

        assert result == {"open_houses_deleted": 4, "runs_deleted": 2}


@pytest.mark.asyncio
async def test_start_registers_jobs():
    scheduler = SyncScheduler()
    scheduler.start()
    try:
        job_ids = {job.id for job in scheduler.scheduler.get_jobs()}
        assert job_ids == {"incremental_sync", "continuation_sync", "cleanup"}
        assert all(job.max_instances == 1 for job in scheduler.scheduler.get_jobs())
    finally:
        scheduler.stop()
