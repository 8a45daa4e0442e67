"""
Delivery job processing: one job end to end, and the batch runner that an
external trigger invokes.
"""

import os
import socket
from collections.abc import Callable
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.communications.providers import UNKNOWN_DELIVERY_ERROR, deliver_message
from api.v1.communications.recipients import (
    build_delivery_recipients,
    load_outstanding_recipient_ids,
    update_recipient_statuses,
)
from api.v1.communications.schemas import (
    Delivered,
    DeliveryFailure,
    DeliveryRequest,
    MAX_BATCH_LIMIT,
    JobOutcome,
    ProcessJobsSummary,
    ProviderError,
)
from api.v1.communications.store import ClaimedJob, DeliveryJobStore
from api.v1.core.registries import DeliveryProviderRegistry, provider_registry

logger = get_logger(__name__)

MISSING_SEND_ERROR = "Message send record is missing."
MAX_SUMMARY_LENGTH = 500

Clock = Callable[[], datetime]


def default_worker_id() -> str:
    return f"{socket.gethostname()}-{os.getpid()}"


def utc_clock() -> datetime:
    return datetime.now(UTC)


def summarize_failure_errors(failed: list[DeliveryFailure]) -> str:
    """Unique failure messages in first-seen order, joined and truncated."""
    unique = list(dict.fromkeys(failure.error for failure in failed))
    return "; ".join(unique)[:MAX_SUMMARY_LENGTH]


def clamp_batch_limit(limit: int | None, settings: Settings) -> int:
    if limit is None:
        limit = settings.delivery_default_batch_size
    return max(1, min(limit, settings.delivery_max_batch_size, MAX_BATCH_LIMIT))


class DeliveryJobProcessor:
    """
    Drives delivery jobs through claim, delivery and bookkeeping.

    Once a job is claimed every failure, including database errors, ends in
    schedule_retry, so a claimed job always leaves the processing state unless
    another worker has since reclaimed it.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings,
        worker_id: str | None = None,
        registry: DeliveryProviderRegistry = provider_registry,
        clock: Clock = utc_clock,
    ):
        self.session = session
        self.settings = settings
        self.worker_id = worker_id or default_worker_id()
        self.registry = registry
        self.clock = clock
        self.store = DeliveryJobStore(session, settings, self.worker_id)

    async def process_pending_jobs(self, limit: int | None = None) -> ProcessJobsSummary:
        """Process due jobs sequentially, oldest first."""
        batch_limit = clamp_batch_limit(limit, self.settings)
        jobs = await self.store.list_due(batch_limit, self.clock())
        # Rows expire on rollback; keep only their ids
        job_ids = [job.id for job in jobs]

        summary = ProcessJobsSummary()
        for job_id in job_ids:
            outcome = await self.process_job(job_id)
            summary.record(outcome)

        if summary.processed:
            logger.info(
                "Delivery batch processed",
                worker_id=self.worker_id,
                limit=batch_limit,
                **summary.model_dump(),
            )
        return summary

    async def process_job(self, job_id: UUID) -> JobOutcome:
        claimed = await self.store.claim(job_id, self.clock())
        if claimed is None:
            return JobOutcome.REQUEUED

        try:
            return await self._deliver(claimed)
        except Exception as e:
            await self.session.rollback()
            logger.exception(
                "Delivery job attempt errored",
                job_id=str(claimed.id),
                send_id=str(claimed.send_id),
            )
            return await self._retry(claimed, str(e) or UNKNOWN_DELIVERY_ERROR)

    async def _deliver(self, job: ClaimedJob) -> JobOutcome:
        send = await self.store.load_send(job)
        if send is None:
            return await self._retry(job, MISSING_SEND_ERROR)

        recipient_ids = await load_outstanding_recipient_ids(self.session, job.send_id)
        if not recipient_ids:
            return await self.store.finalize_sent(job, self.clock())

        recipients = await build_delivery_recipients(self.session, recipient_ids)
        outcome = await deliver_message(
            DeliveryRequest(
                provider=job.provider,
                subject=send.subject,
                body=send.body,
                recipients=recipients,
            ),
            registry=self.registry,
        )

        if isinstance(outcome, ProviderError):
            # Transport-wide failure: no recipient was attempted
            return await self._retry(job, outcome.message)
        if not isinstance(outcome, Delivered):
            raise TypeError(f"Unexpected delivery outcome: {outcome!r}")

        await update_recipient_statuses(
            self.session,
            job.send_id,
            outcome.sent,
            outcome.failed,
            attempted_at=self.clock(),
        )
        if not outcome.failed:
            return await self.store.finalize_sent(job, self.clock())
        return await self._retry(job, summarize_failure_errors(outcome.failed))

    async def _retry(self, job: ClaimedJob, error_message: str) -> JobOutcome:
        return await self.store.schedule_retry(job, error_message, self.clock())


async def process_pending_jobs(
    session: AsyncSession,
    settings: Settings,
    limit: int | None = None,
    worker_id: str | None = None,
) -> ProcessJobsSummary:
    """Run one batch with a processor bound to ``session``."""
    processor = DeliveryJobProcessor(session, settings, worker_id=worker_id)
    return await processor.process_pending_jobs(limit)
