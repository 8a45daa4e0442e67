from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from api.infra.database import Database
from api.v1.communications import worker as worker_module
from api.v1.communications.models import DeliveryJobStatus
from api.v1.communications.worker import DeliveryWorker


class _SharedDatabase:
    """Database stand-in bound to the per-test in-memory engine."""

    def __init__(self, engine):
        self.SessionLocal = async_sessionmaker(bind=engine, expire_on_commit=False)
        self.closed = False

    @asynccontextmanager
    async def session(self):
        async with self.SessionLocal() as session:
            yield session

    async def close(self):
        self.closed = True


@pytest.fixture
def worker(test_engine, delivery_settings):
    settings = delivery_settings.model_copy(update={"delivery_poll_interval_s": 0.01})
    return DeliveryWorker(settings, database=_SharedDatabase(test_engine))


@pytest.mark.asyncio
async def test_run_once_processes_due_jobs(worker, make_send, make_job, db_session):
    send = await make_send()
    job = await make_job(send_id=send.id)

    summary = await worker.run_once()

    assert summary.processed == 1
    assert summary.sent == 1
    await db_session.refresh(job)
    assert job.status == DeliveryJobStatus.SENT.value
    assert job.locked_by is None


@pytest.mark.asyncio
async def test_worker_id_is_prefixed(worker):
    assert worker.worker_id.startswith("worker:")


@pytest.mark.asyncio
async def test_start_runs_until_stopped(worker):
    calls = []

    async def fake_run_once():
        calls.append(1)
        if len(calls) == 3:
            worker.stop()

    worker.run_once = fake_run_once

    await worker.start()

    assert len(calls) == 3
    assert worker.running is False


@pytest.mark.asyncio
async def test_start_survives_tick_errors(worker, monkeypatch):
    """A failing tick is logged and the loop keeps going."""
    monkeypatch.setattr(worker_module, "ERROR_BACKOFF_S", 0)
    calls = []

    async def flaky_run_once():
        calls.append(1)
        if len(calls) == 1:
            raise ConnectionError("database unavailable")
        worker.stop()

    worker.run_once = flaky_run_once

    await worker.start()

    assert len(calls) == 2


@pytest.mark.asyncio
async def test_start_twice_is_rejected(worker):
    worker.running = True

    with pytest.raises(RuntimeError, match="already running"):
        await worker.start()


@pytest.mark.asyncio
async def test_database_sqlite_engine(delivery_settings):
    """SQLite URLs get an engine without pool sizing options."""
    database = Database(delivery_settings)
    try:
        async with database.session() as session:
            assert session.bind is database.engine
    finally:
        await database.close()
