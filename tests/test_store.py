from datetime import timedelta

import pytest

from api.v1.communications.models import DeliveryJobStatus, SendDeliveryStatus
from api.v1.communications.schemas import JobOutcome
from api.v1.communications.store import DeliveryJobStore
from tests.conftest import NOW, naive


@pytest.fixture
def store(db_session, delivery_settings):
    return DeliveryJobStore(db_session, delivery_settings, worker_id="worker-1")


@pytest.mark.asyncio
async def test_list_due_orders_oldest_first(store, make_job):
    """Due jobs come back in creation order and respect the limit."""
    newest = await make_job(created_at=NOW - timedelta(minutes=1))
    oldest = await make_job(created_at=NOW - timedelta(minutes=10))
    middle = await make_job(created_at=NOW - timedelta(minutes=5))

    jobs = await store.list_due(limit=2, now=NOW)

    assert [job.id for job in jobs] == [oldest.id, middle.id]
    assert newest.id not in [job.id for job in jobs]


@pytest.mark.asyncio
async def test_list_due_skips_future_and_terminal_jobs(store, make_job):
    due = await make_job()
    await make_job(next_attempt_at=NOW + timedelta(seconds=30))
    await make_job(status=DeliveryJobStatus.SENT.value, attempts=1)
    await make_job(status=DeliveryJobStatus.FAILED.value, attempts=5)

    jobs = await store.list_due(limit=10, now=NOW)

    assert [job.id for job in jobs] == [due.id]


@pytest.mark.asyncio
async def test_claim_is_exclusive(db_session, delivery_settings, make_job):
    """A second worker loses the claim on an already claimed job."""
    job = await make_job()
    first = DeliveryJobStore(db_session, delivery_settings, worker_id="worker-1")
    second = DeliveryJobStore(db_session, delivery_settings, worker_id="worker-2")

    claimed = await first.claim(job.id, NOW)
    lost = await second.claim(job.id, NOW)

    assert claimed is not None
    assert claimed.id == job.id
    assert claimed.attempts == 0
    assert lost is None

    await db_session.refresh(job)
    assert job.status == DeliveryJobStatus.PROCESSING.value
    assert job.locked_by == "worker-1"
    assert naive(job.locked_at) == naive(NOW)


@pytest.mark.asyncio
async def test_claim_reclaims_stale_lock(store, make_job, db_session):
    """A processing job whose lock outlived the timeout is claimable again."""
    job = await make_job(
        status=DeliveryJobStatus.PROCESSING.value,
        attempts=2,
        locked_at=NOW - timedelta(seconds=901),
        locked_by="crashed-worker",
    )

    due = await store.list_due(limit=10, now=NOW)
    claimed = await store.claim(job.id, NOW)

    assert [j.id for j in due] == [job.id]
    assert claimed is not None
    assert claimed.attempts == 2

    await db_session.refresh(job)
    assert job.locked_by == "worker-1"


@pytest.mark.asyncio
async def test_claim_leaves_fresh_lock_alone(store, make_job, db_session):
    job = await make_job(
        status=DeliveryJobStatus.PROCESSING.value,
        locked_at=NOW - timedelta(seconds=30),
        locked_by="busy-worker",
    )

    assert await store.list_due(limit=10, now=NOW) == []
    assert await store.claim(job.id, NOW) is None

    await db_session.refresh(job)
    assert job.locked_by == "busy-worker"


@pytest.mark.asyncio
async def test_stale_reclaim_disabled_with_zero_timeout(
    db_session, delivery_settings, make_job
):
    settings = delivery_settings.model_copy(update={"delivery_lock_timeout_s": 0})
    store = DeliveryJobStore(db_session, settings, worker_id="worker-1")
    job = await make_job(
        status=DeliveryJobStatus.PROCESSING.value,
        locked_at=NOW - timedelta(days=2),
        locked_by="crashed-worker",
    )

    assert await store.claim(job.id, NOW) is None


@pytest.mark.asyncio
async def test_finalize_sent_updates_job_and_send(store, make_send, make_job, db_session):
    send = await make_send()
    job = await make_job(send_id=send.id, attempts=1, max_attempts=5)
    claimed = await store.claim(job.id, NOW)

    outcome = await store.finalize_sent(claimed, NOW)

    assert outcome == JobOutcome.SENT

    await db_session.refresh(job)
    await db_session.refresh(send)
    assert job.status == DeliveryJobStatus.SENT.value
    assert job.attempts == 2
    assert job.last_error is None
    assert job.locked_at is None
    assert job.locked_by is None
    assert send.delivery_status == SendDeliveryStatus.SENT.value


@pytest.mark.asyncio
async def test_schedule_retry_requeues_with_backoff(
    store, make_send, make_job, db_session
):
    send = await make_send()
    job = await make_job(send_id=send.id, attempts=2)
    claimed = await store.claim(job.id, NOW)

    outcome = await store.schedule_retry(claimed, "Mailbox full", NOW)

    assert outcome == JobOutcome.REQUEUED
    await db_session.refresh(job)
    await db_session.refresh(send)
    assert job.status == DeliveryJobStatus.PENDING.value
    assert job.attempts == 3
    assert job.last_error == "Mailbox full"
    assert naive(job.next_attempt_at) == naive(NOW + timedelta(seconds=240))
    assert job.locked_at is None
    assert send.delivery_status == SendDeliveryStatus.QUEUED.value


@pytest.mark.asyncio
async def test_schedule_retry_terminal_at_max_attempts(
    store, make_send, make_job, db_session
):
    send = await make_send()
    job = await make_job(send_id=send.id, attempts=4, max_attempts=5)
    claimed = await store.claim(job.id, NOW)

    outcome = await store.schedule_retry(claimed, "Mailbox full", NOW)

    assert outcome == JobOutcome.FAILED
    await db_session.refresh(job)
    await db_session.refresh(send)
    assert job.status == DeliveryJobStatus.FAILED.value
    assert job.attempts == 5
    assert job.is_terminal()
    assert send.delivery_status == SendDeliveryStatus.FAILED.value


@pytest.mark.asyncio
async def test_late_retry_does_not_undo_reclaimed_result(
    db_session, delivery_settings, make_send, make_job
):
    """A worker whose claim was reclaimed cannot overwrite the new owner's result."""
    send = await make_send()
    job = await make_job(send_id=send.id, attempts=1)
    slow = DeliveryJobStore(db_session, delivery_settings, worker_id="worker-a")
    fresh = DeliveryJobStore(db_session, delivery_settings, worker_id="worker-b")
    later = NOW + timedelta(seconds=901)

    claimed_a = await slow.claim(job.id, NOW)
    claimed_b = await fresh.claim(job.id, later)
    assert claimed_b is not None
    assert await fresh.finalize_sent(claimed_b, later) == JobOutcome.SENT

    outcome = await slow.schedule_retry(claimed_a, "late failure", later)

    assert outcome == JobOutcome.REQUEUED
    await db_session.refresh(job)
    await db_session.refresh(send)
    assert job.status == DeliveryJobStatus.SENT.value
    assert job.attempts == 2
    assert job.last_error is None
    assert send.delivery_status == SendDeliveryStatus.SENT.value


@pytest.mark.asyncio
async def test_late_finalize_does_not_revive_failed_job(
    db_session, delivery_settings, make_send, make_job
):
    send = await make_send()
    job = await make_job(send_id=send.id, attempts=4, max_attempts=5)
    slow = DeliveryJobStore(db_session, delivery_settings, worker_id="worker-a")
    fresh = DeliveryJobStore(db_session, delivery_settings, worker_id="worker-b")
    later = NOW + timedelta(seconds=901)

    claimed_a = await slow.claim(job.id, NOW)
    claimed_b = await fresh.claim(job.id, later)
    assert await fresh.schedule_retry(claimed_b, "Mailbox full", later) == JobOutcome.FAILED

    outcome = await slow.finalize_sent(claimed_a, later)

    assert outcome == JobOutcome.REQUEUED
    await db_session.refresh(job)
    await db_session.refresh(send)
    assert job.status == DeliveryJobStatus.FAILED.value
    assert job.attempts == 5
    assert job.last_error == "Mailbox full"
    assert send.delivery_status == SendDeliveryStatus.FAILED.value


@pytest.mark.asyncio
async def test_same_worker_cannot_finish_an_older_claim(
    db_session, delivery_settings, make_job
):
    """The lock timestamp distinguishes two claims held by one worker id."""
    job = await make_job(attempts=1)
    store = DeliveryJobStore(db_session, delivery_settings, worker_id="worker-a")
    later = NOW + timedelta(seconds=901)

    first = await store.claim(job.id, NOW)
    second = await store.claim(job.id, later)

    assert await store.finalize_sent(first, later) == JobOutcome.REQUEUED
    await db_session.refresh(job)
    assert job.status == DeliveryJobStatus.PROCESSING.value
    assert naive(job.locked_at) == naive(later)

    assert await store.finalize_sent(second, later) == JobOutcome.SENT
