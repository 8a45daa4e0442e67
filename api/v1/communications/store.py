"""
Delivery job persistence: due-job listing, conditional claim, finalize and
reschedule.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.communications.backoff import compute_next_attempt
from api.v1.communications.models import (
    DeliveryJob,
    DeliveryJobStatus,
    MessageSend,
    SendDeliveryStatus,
)
from api.v1.communications.schemas import JobOutcome

logger = get_logger(__name__)


@dataclass(frozen=True)
class ClaimedJob:
    """Snapshot of a job row taken right after a successful claim."""

    id: UUID
    send_id: UUID
    parish_id: UUID
    provider: str
    attempts: int
    max_attempts: int
    locked_at: datetime
    locked_by: str

    @classmethod
    def from_row(cls, job: DeliveryJob) -> "ClaimedJob":
        return cls(
            id=job.id,
            send_id=job.send_id,
            parish_id=job.parish_id,
            provider=job.provider,
            attempts=job.attempts,
            max_attempts=job.max_attempts,
            locked_at=job.locked_at,
            locked_by=job.locked_by,
        )


class DeliveryJobStore:
    """
    Job store bound to one session and one worker identity.

    Every write commits immediately. Claim and listing errors propagate;
    losing a claim is not an error.
    """

    def __init__(self, session: AsyncSession, settings: Settings, worker_id: str):
        self.session = session
        self.settings = settings
        self.worker_id = worker_id

    def _stale_lock_cutoff(self, now: datetime) -> datetime | None:
        timeout = self.settings.delivery_lock_timeout_s
        if timeout <= 0:
            return None
        return now - timedelta(seconds=timeout)

    def _claimable(self, now: datetime):
        """Pending jobs, plus processing jobs whose claim has gone stale."""
        pending = DeliveryJob.status == DeliveryJobStatus.PENDING.value
        cutoff = self._stale_lock_cutoff(now)
        if cutoff is None:
            return pending
        return or_(
            pending,
            and_(
                DeliveryJob.status == DeliveryJobStatus.PROCESSING.value,
                DeliveryJob.locked_at.is_not(None),
                DeliveryJob.locked_at < cutoff,
            ),
        )

    async def list_due(self, limit: int, now: datetime) -> list[DeliveryJob]:
        """Claimable jobs whose next attempt is due, oldest first."""
        result = await self.session.execute(
            select(DeliveryJob)
            .where(self._claimable(now), DeliveryJob.next_attempt_at <= now)
            .order_by(DeliveryJob.created_at, DeliveryJob.id)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def claim(self, job_id: UUID, now: datetime) -> ClaimedJob | None:
        """
        Move a job to processing if nobody else has.

        Returns a snapshot of the claimed row, or None when the conditional update
        matched no row.
        """
        result = await self.session.execute(
            update(DeliveryJob)
            .where(DeliveryJob.id == job_id, self._claimable(now))
            .values(
                status=DeliveryJobStatus.PROCESSING.value,
                locked_at=now,
                locked_by=self.worker_id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        if result.rowcount == 0:
            logger.info("Delivery job claim lost", job_id=str(job_id))
            return None

        claimed = await self.session.execute(
            select(DeliveryJob)
            .where(DeliveryJob.id == job_id)
            .execution_options(populate_existing=True)
        )
        return ClaimedJob.from_row(claimed.scalar_one())

    async def load_send(self, job: ClaimedJob) -> MessageSend | None:
        result = await self.session.execute(
            select(MessageSend).where(MessageSend.id == job.send_id)
        )
        return result.scalar_one_or_none()

    def _owned_by_claim(self, job: ClaimedJob):
        """Row still holds the exact claim this worker took."""
        return and_(
            DeliveryJob.id == job.id,
            DeliveryJob.status == DeliveryJobStatus.PROCESSING.value,
            DeliveryJob.locked_by == job.locked_by,
            DeliveryJob.locked_at == job.locked_at,
        )

    async def _ownership_lost(self, job: ClaimedJob) -> JobOutcome:
        await self.session.rollback()
        logger.warning(
            "Delivery job ownership lost",
            job_id=str(job.id),
            send_id=str(job.send_id),
            worker_id=self.worker_id,
        )
        return JobOutcome.REQUEUED

    async def finalize_sent(self, job: ClaimedJob, now: datetime) -> JobOutcome:
        """
        Terminal success for the job and its send.

        Nothing is written when another worker reclaimed the job in the meantime.
        """
        result = await self.session.execute(
            update(DeliveryJob)
            .where(self._owned_by_claim(job))
            .values(
                status=DeliveryJobStatus.SENT.value,
                attempts=job.attempts + 1,
                last_error=None,
                locked_at=None,
                locked_by=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return await self._ownership_lost(job)

        await self.session.execute(
            update(MessageSend)
            .where(MessageSend.id == job.send_id)
            .values(delivery_status=SendDeliveryStatus.SENT.value)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        logger.info(
            "Delivery job sent",
            job_id=str(job.id),
            send_id=str(job.send_id),
            attempts=job.attempts + 1,
        )
        return JobOutcome.SENT

    async def schedule_retry(
        self, job: ClaimedJob, error_message: str, now: datetime
    ) -> JobOutcome:
        """
        Count a failed attempt and either requeue the job or abandon it.

        Returns FAILED when the job reached max_attempts, REQUEUED otherwise,
        including when the claim was lost to another worker.
        """
        attempts = job.attempts + 1
        is_terminal = attempts >= job.max_attempts

        if is_terminal:
            job_status = DeliveryJobStatus.FAILED.value
            send_status = SendDeliveryStatus.FAILED.value
            next_attempt_at = now
        else:
            job_status = DeliveryJobStatus.PENDING.value
            send_status = SendDeliveryStatus.QUEUED.value
            next_attempt_at = compute_next_attempt(
                attempts,
                now=now,
                base_s=self.settings.delivery_backoff_base_s,
                max_s=self.settings.delivery_max_backoff_s,
            )

        result = await self.session.execute(
            update(DeliveryJob)
            .where(self._owned_by_claim(job))
            .values(
                status=job_status,
                attempts=attempts,
                last_error=error_message,
                next_attempt_at=next_attempt_at,
                locked_at=None,
                locked_by=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return await self._ownership_lost(job)

        await self.session.execute(
            update(MessageSend)
            .where(MessageSend.id == job.send_id)
            .values(delivery_status=send_status)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

        if is_terminal:
            logger.error(
                "Delivery job failed permanently",
                job_id=str(job.id),
                send_id=str(job.send_id),
                attempts=attempts,
                error=error_message,
            )
            return JobOutcome.FAILED

        logger.warning(
            "Delivery job scheduled for retry",
            job_id=str(job.id),
            send_id=str(job.send_id),
            attempts=attempts,
            next_attempt_at=next_attempt_at.isoformat(),
            error=error_message,
        )
        return JobOutcome.REQUEUED
