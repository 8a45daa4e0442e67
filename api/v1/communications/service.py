"""
Delivery job service for logging message sends, enqueueing delivery jobs and
operator queries over jobs and sends.
"""

from collections import Counter
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.config.logging import get_logger
from api.config.settings import Settings
from api.v1.communications.models import (
    DeliveryJob,
    DeliveryJobStatus,
    MessageRecipient,
    MessageSend,
    RecipientDeliveryStatus,
    SendDeliveryStatus,
    UserProfile,
)
from api.v1.communications.providers import get_delivery_config
from api.v1.communications.schemas import (
    MAX_DETAIL_RECIPIENTS,
    AudienceType,
    DeliveryJobStatsResponse,
    MessageSendCreate,
    MessageSendDetailResponse,
    MessageSendResponse,
    RecipientDetail,
    RecipientStatusCounts,
)
from api.v1.core.exceptions import ValidationError

logger = get_logger(__name__)


class DeliveryJobService:
    """Service for queueing parish messages and inspecting delivery jobs."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def enqueue_delivery_job(
        self,
        session: AsyncSession,
        parish_id: UUID,
        send_id: UUID,
        provider: str,
    ) -> DeliveryJob:
        """
        Insert a pending job that is due immediately.

        Database errors are re-raised unchanged after the rollback.
        """
        now = datetime.now(UTC)
        job = DeliveryJob(
            parish_id=parish_id,
            send_id=send_id,
            provider=provider,
            status=DeliveryJobStatus.PENDING.value,
            attempts=0,
            max_attempts=self.settings.delivery_max_attempts,
            next_attempt_at=now,
            created_at=now,
            updated_at=now,
        )

        try:
            session.add(job)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

        logger.info(
            "Delivery job enqueued",
            job_id=str(job.id),
            send_id=str(send_id),
            parish_id=str(parish_id),
            provider=provider,
        )
        return job

    async def log_message_send(
        self, session: AsyncSession, send_create: MessageSendCreate
    ) -> MessageSend:
        """
        Record a message for an already resolved audience.

        With delivery enabled the send starts queued, recipients pending and a
        job is enqueued; if enqueueing fails the send is marked failed and the
        error propagates. With delivery disabled everything is not_configured
        and no job is created.
        """
        if (
            send_create.audience_type in (AudienceType.COHORT, AudienceType.COURSE)
            and not send_create.audience_value
        ):
            raise ValidationError(
                "audienceValue is required for cohort/course audiences."
            )

        config = get_delivery_config(self.settings)
        recipient_ids = list(dict.fromkeys(send_create.recipient_ids))

        if config.enabled:
            send_status = SendDeliveryStatus.QUEUED.value
            recipient_status = RecipientDeliveryStatus.PENDING.value
        else:
            send_status = SendDeliveryStatus.NOT_CONFIGURED.value
            recipient_status = RecipientDeliveryStatus.NOT_CONFIGURED.value

        send = MessageSend(
            parish_id=send_create.parish_id,
            created_by_clerk_user_id=send_create.created_by_clerk_user_id,
            audience_type=send_create.audience_type.value,
            audience_value=send_create.audience_value,
            subject=send_create.subject.strip(),
            body=send_create.body.strip(),
            recipient_count=len(recipient_ids),
            delivery_status=send_status,
            provider=config.provider,
            created_at=datetime.now(UTC),
        )
        session.add(send)
        await session.flush()

        session.add_all(
            [
                MessageRecipient(
                    send_id=send.id,
                    parish_id=send_create.parish_id,
                    clerk_user_id=clerk_user_id,
                    delivery_status=recipient_status,
                )
                for clerk_user_id in recipient_ids
            ]
        )
        await session.commit()

        logger.info(
            "Message send logged",
            send_id=str(send.id),
            parish_id=str(send.parish_id),
            recipient_count=send.recipient_count,
            delivery_status=send_status,
        )

        if config.enabled and config.provider:
            send_id = send.id
            try:
                await self.enqueue_delivery_job(
                    session, send_create.parish_id, send_id, config.provider
                )
            except Exception:
                logger.exception("Failed to enqueue delivery job", send_id=str(send_id))
                await session.execute(
                    update(MessageSend)
                    .where(MessageSend.id == send_id)
                    .values(delivery_status=SendDeliveryStatus.FAILED.value)
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
                raise

        return send

    async def get_job_by_id(
        self, session: AsyncSession, job_id: UUID
    ) -> DeliveryJob | None:
        result = await session.execute(select(DeliveryJob).where(DeliveryJob.id == job_id))
        return result.scalar_one_or_none()

    async def list_jobs(
        self,
        session: AsyncSession,
        statuses: list[DeliveryJobStatus] | None = None,
        send_id: UUID | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[DeliveryJob], int]:
        """List jobs oldest first with their total count."""
        base_query = select(DeliveryJob)
        if statuses:
            base_query = base_query.where(
                DeliveryJob.status.in_([status.value for status in statuses])
            )
        if send_id:
            base_query = base_query.where(DeliveryJob.send_id == send_id)

        count_query = select(func.count()).select_from(base_query.subquery())
        total = (await session.execute(count_query)).scalar() or 0

        jobs_result = await session.execute(
            base_query.order_by(DeliveryJob.created_at, DeliveryJob.id)
            .offset(offset)
            .limit(limit)
        )
        return list(jobs_result.scalars().all()), total

    async def get_job_stats(self, session: AsyncSession) -> DeliveryJobStatsResponse:
        """Queue statistics for operator dashboards and health checks."""
        now = datetime.now(UTC)

        status_result = await session.execute(
            select(DeliveryJob.status, func.count(DeliveryJob.id)).group_by(
                DeliveryJob.status
            )
        )
        by_status = {status: count for status, count in status_result.all()}
        for status in DeliveryJobStatus:
            by_status.setdefault(status.value, 0)

        due_now = (
            await session.execute(
                select(func.count(DeliveryJob.id)).where(
                    and_(
                        DeliveryJob.status == DeliveryJobStatus.PENDING.value,
                        DeliveryJob.next_attempt_at <= now,
                    )
                )
            )
        ).scalar() or 0

        stale_locks = 0
        if self.settings.delivery_lock_timeout_s > 0:
            cutoff = now - timedelta(seconds=self.settings.delivery_lock_timeout_s)
            stale_locks = (
                await session.execute(
                    select(func.count(DeliveryJob.id)).where(
                        and_(
                            DeliveryJob.status == DeliveryJobStatus.PROCESSING.value,
                            DeliveryJob.locked_at < cutoff,
                        )
                    )
                )
            ).scalar() or 0

        failed_last_hour = (
            await session.execute(
                select(func.count(DeliveryJob.id)).where(
                    and_(
                        DeliveryJob.status == DeliveryJobStatus.FAILED.value,
                        DeliveryJob.updated_at >= now - timedelta(hours=1),
                    )
                )
            )
        ).scalar() or 0

        return DeliveryJobStatsResponse(
            total_jobs=sum(by_status.values()),
            by_status=by_status,
            due_now=due_now,
            stale_locks=stale_locks,
            failed_last_hour=failed_last_hour,
        )

    async def get_send_detail(
        self,
        session: AsyncSession,
        send_id: UUID,
        parish_id: UUID | None = None,
    ) -> MessageSendDetailResponse | None:
        """
        A send with its recipients' delivery outcomes and profile contact data.

        Recipients are ordered by clerk user id and capped at
        MAX_DETAIL_RECIPIENTS; the summary counts only the listed recipients.
        Returns None when the send does not exist (or belongs to another parish).
        """
        send_query = select(MessageSend).where(MessageSend.id == send_id)
        if parish_id:
            send_query = send_query.where(MessageSend.parish_id == parish_id)
        send = (await session.execute(send_query)).scalar_one_or_none()
        if send is None:
            return None

        recipient_result = await session.execute(
            select(MessageRecipient, UserProfile)
            .outerjoin(
                UserProfile, UserProfile.clerk_user_id == MessageRecipient.clerk_user_id
            )
            .where(
                MessageRecipient.send_id == send.id,
                MessageRecipient.parish_id == send.parish_id,
            )
            .order_by(MessageRecipient.clerk_user_id)
            .limit(MAX_DETAIL_RECIPIENTS)
        )

        recipients = []
        for recipient, profile in recipient_result.all():
            recipients.append(
                RecipientDetail(
                    clerk_user_id=recipient.clerk_user_id,
                    display_name=profile.display_name if profile else None,
                    email=profile.email if profile else None,
                    delivery_status=recipient.delivery_status,
                    delivery_attempted_at=recipient.delivery_attempted_at,
                    delivery_error=recipient.delivery_error,
                )
            )

        by_status = Counter(recipient.delivery_status for recipient in recipients)
        summary = RecipientStatusCounts(
            total=len(recipients),
            **{status.value: by_status[status.value] for status in RecipientDeliveryStatus},
        )

        return MessageSendDetailResponse(
            send=MessageSendResponse.model_validate(send),
            summary=summary,
            recipients=recipients,
        )
