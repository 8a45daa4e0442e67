"""
Recipient reads and per-recipient status bookkeeping for delivery attempts.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from api.v1.communications.models import (
    MessageRecipient,
    RecipientDeliveryStatus,
    UserProfile,
)
from api.v1.communications.schemas import DeliveryFailure, DeliveryRecipient


async def load_outstanding_recipient_ids(
    session: AsyncSession, send_id: UUID
) -> list[str]:
    """Recipients of a send that have not been delivered to yet."""
    result = await session.execute(
        select(MessageRecipient.clerk_user_id)
        .where(
            MessageRecipient.send_id == send_id,
            MessageRecipient.delivery_status != RecipientDeliveryStatus.SENT.value,
        )
        .order_by(MessageRecipient.clerk_user_id)
    )
    return list(result.scalars().all())


async def build_delivery_recipients(
    session: AsyncSession, clerk_user_ids: list[str]
) -> list[DeliveryRecipient]:
    """Attach profile emails; members without a profile get email=None."""
    if not clerk_user_ids:
        return []

    result = await session.execute(
        select(UserProfile.clerk_user_id, UserProfile.email).where(
            UserProfile.clerk_user_id.in_(clerk_user_ids)
        )
    )
    email_by_user = {row.clerk_user_id: row.email for row in result.all()}

    return [
        DeliveryRecipient(clerk_user_id=user_id, email=email_by_user.get(user_id))
        for user_id in clerk_user_ids
    ]


async def update_recipient_statuses(
    session: AsyncSession,
    send_id: UUID,
    sent_ids: Iterable[str],
    failed: Iterable[DeliveryFailure],
    attempted_at: datetime | None = None,
) -> None:
    """
    Record the provider's per-recipient results.

    Failures are written in order, so a recipient listed several times keeps
    the last error. Database errors propagate to the caller.
    """
    attempted_at = attempted_at or datetime.now(UTC)
    sent_ids = list(sent_ids)

    if sent_ids:
        await session.execute(
            update(MessageRecipient)
            .where(
                MessageRecipient.send_id == send_id,
                MessageRecipient.clerk_user_id.in_(sent_ids),
            )
            .values(
                delivery_status=RecipientDeliveryStatus.SENT.value,
                delivery_attempted_at=attempted_at,
                delivery_error=None,
            )
            .execution_options(synchronize_session=False)
        )

    for failure in failed:
        await session.execute(
            update(MessageRecipient)
            .where(
                MessageRecipient.send_id == send_id,
                MessageRecipient.clerk_user_id == failure.clerk_user_id,
            )
            .values(
                delivery_status=RecipientDeliveryStatus.FAILED.value,
                delivery_attempted_at=attempted_at,
                delivery_error=failure.error,
            )
            .execution_options(synchronize_session=False)
        )

    await session.commit()
