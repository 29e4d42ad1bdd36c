"""
API endpoint tests
"""

import pytest
from datetime import datetime, timedelta
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from api.main import app
from api.dependencies import get_db, get_orchestrator
from ingestion.runner import ExtractionOrchestrator, LOCK_NAME
from models.base import Base, RunStatus, ExtractionKind
from models.extraction_run import ExtractionRun
from models.property import Property
from models.sync_lock import SyncLock
from core.config import settings
from tests.fakes import FakeBridge, make_listing


@pytest.fixture
def sync_engine(database_path):
    """Synchronous engine on the test database, for seeding and assertions"""
    engine = create_engine(f"sqlite:///{database_path}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_maker(database_path):
    """Async sessions for the app, opened inside the test client's event loop"""
    async_engine = create_async_engine(f"sqlite+aiosqlite:///{database_path}", poolclass=NullPool)
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def bridge():
    return FakeBridge(listings=[make_listing("L1"), make_listing("L2", "2024-01-15T11:00:00Z")])


@pytest.fixture
def client(sync_engine, session_maker, bridge):
    """Create test client with database and upstream overrides"""
    async def override_get_db():
        async with session_maker() as session:
            yield session

    async def override_get_orchestrator(db: AsyncSession = Depends(get_db)):
        return ExtractionOrchestrator.from_session(db, bridge.client(), lock_timeout=0)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_orchestrator] = override_get_orchestrator

    # Not used as a context manager: startup would start the scheduler
    yield TestClient(app)

    app.dependency_overrides.clear()


def seed_run(sync_engine, status=RunStatus.COMPLETED, started_at=None, **fields):
    with Session(sync_engine) as session:
        run = ExtractionRun(
            kind=ExtractionKind.INCREMENTAL,
            triggered_by="cron",
            status=status,
            started_at=started_at or datetime.utcnow(),
            **fields
        )
        session.add(run)
        session.commit()
        return run.id


def test_root_lists_endpoints(client):
    response = client.get("/")

    assert response.status_code == 200
    assert response.json()["endpoints"]["trigger"] == "/extraction/trigger"


def test_request_id_header(client):
    response = client.get("/", headers={"X-Request-ID": "req_abc"})

    assert response.headers["X-Request-ID"] == "req_abc"
    assert "X-API-Latency-ms" in response.headers


def test_health_reports_database_and_credentials(client, monkeypatch):
    monkeypatch.setattr(settings, "BRIDGE_SERVER_TOKEN", "token")
    monkeypatch.setattr(settings, "BRIDGE_DATASET_ID", "testmls")

    response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["database_connected"] is True
    assert data["credentials_configured"] is True
    assert data["last_run_status"] is None
    assert data["status"] == "healthy"


def test_health_degraded_after_failed_run(client, sync_engine, monkeypatch):
    monkeypatch.setattr(settings, "BRIDGE_SERVER_TOKEN", "token")
    monkeypatch.setattr(settings, "BRIDGE_DATASET_ID", "testmls")
    seed_run(sync_engine, status=RunStatus.FAILED, error_message="boom")

    data = client.get("/health").json()

    assert data["last_run_status"] == "failed"
    assert data["status"] == "degraded"


def test_health_degraded_without_credentials(client, monkeypatch):
    monkeypatch.setattr(settings, "BRIDGE_SERVER_TOKEN", None)

    data = client.get("/health").json()

    assert data["credentials_configured"] is False
    assert data["status"] == "degraded"


def test_status_with_no_runs(client):
    response = client.get("/extraction/status")

    assert response.status_code == 200
    assert response.json() == {"is_running": False, "last_run": None}


def test_status_reports_last_run(client, sync_engine):
    seed_run(sync_engine, started_at=datetime.utcnow() - timedelta(hours=1))
    run_id = seed_run(sync_engine, status=RunStatus.RUNNING, listings_processed=40)

    data = client.get("/extraction/status").json()

    assert data["is_running"] is True
    assert data["last_run"]["id"] == run_id
    assert data["last_run"]["status"] == "running"
    assert data["last_run"]["kind"] == "incremental"
    assert data["last_run"]["listings_processed"] == 40


def test_history_newest_first_with_limit(client, sync_engine):
    now = datetime.utcnow()
    ids = [seed_run(sync_engine, started_at=now - timedelta(minutes=10 - i)) for i in range(3)]

    data = client.get("/extraction/history?limit=2").json()

    assert data["count"] == 2
    assert [run["id"] for run in data["runs"]] == [ids[2], ids[1]]


def test_history_limit_validated(client):
    assert client.get("/extraction/history?limit=0").status_code == 422


def test_trigger_incremental(client, sync_engine, bridge):
    response = client.post("/extraction/trigger")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "completed"
    assert data["processed"] == 2
    assert data["created"] == 2

    with Session(sync_engine) as session:
        run = session.get(ExtractionRun, data["run_id"])
        assert run.triggered_by == "manual"
        assert run.kind == ExtractionKind.INCREMENTAL


def test_trigger_full(client, sync_engine):
    data = client.post("/extraction/trigger?type=full").json()

    with Session(sync_engine) as session:
        assert session.get(ExtractionRun, data["run_id"]).kind == ExtractionKind.FULL


def test_trigger_rejects_unknown_type(client):
    assert client.post("/extraction/trigger?type=everything").status_code == 422


def test_trigger_conflict_when_locked(client, sync_engine):
    with Session(sync_engine) as session:
        session.add(SyncLock(
            name=LOCK_NAME,
            owner="other-worker",
            acquired_at=datetime.utcnow(),
            expires_at=datetime.utcnow() + timedelta(hours=1),
        ))
        session.commit()

    response = client.post("/extraction/trigger")

    assert response.status_code == 409
    assert "lock" in response.json()["detail"]


def test_trigger_unavailable_without_credentials(sync_engine, session_maker, bridge):
    async def override_get_orchestrator():
        async with session_maker() as session:
            yield ExtractionOrchestrator.from_session(session, bridge.client(server_token=""))

    app.dependency_overrides[get_orchestrator] = override_get_orchestrator
    try:
        response = TestClient(app).post("/extraction/trigger")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503


def test_trigger_upstream_failure_is_server_error(client, bridge):
    bridge.fail = {"Property": 401}

    response = client.post("/extraction/trigger")

    assert response.status_code == 500


def test_listing_stats(client, sync_engine):
    with Session(sync_engine) as session:
        session.add_all([
            Property(listing_key="L1", standard_status="Active", modification_timestamp=datetime(2024, 1, 15, 10)),
            Property(listing_key="L2", standard_status="Active", modification_timestamp=datetime(2024, 1, 16, 9)),
            Property(listing_key="L3", standard_status="Pending"),
        ])
        session.commit()

    data = client.get("/extraction/stats").json()

    assert data["total_properties"] == 3
    assert data["by_status"] == {"Active": 2, "Pending": 1}
    assert data["last_modification"] == "2024-01-16T09:00:00"
