"""
Parish communications models: message sends, recipients and delivery jobs.
"""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import (
    TIMESTAMP,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    Uuid,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from api.infra.database import Base


def utcnow() -> datetime:
    return datetime.now(UTC)


class DeliveryJobStatus(str, Enum):
    """Delivery job status enumeration."""

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


class SendDeliveryStatus(str, Enum):
    """Aggregate delivery status shown for a logged message."""

    NOT_CONFIGURED = "not_configured"
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"


class RecipientDeliveryStatus(str, Enum):
    """Per-recipient delivery status."""

    NOT_CONFIGURED = "not_configured"
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


TERMINAL_JOB_STATUSES = (DeliveryJobStatus.SENT.value, DeliveryJobStatus.FAILED.value)
DEFAULT_MAX_ATTEMPTS = 5


class UserProfile(Base):
    """Member profile; only the email is read by delivery."""

    __tablename__ = "user_profiles"

    clerk_user_id: Mapped[str] = mapped_column(Text, primary_key=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)


class MessageSend(Base):
    """A logged parish message and its aggregate delivery status."""

    __tablename__ = "parish_message_sends"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    parish_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    created_by_clerk_user_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    audience_type: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="all_members|stalled_learners|cohort|course",
    )
    audience_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    recipient_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    delivery_status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=SendDeliveryStatus.NOT_CONFIGURED.value,
        comment="not_configured|queued|sent|failed",
    )
    provider: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        default=utcnow,
    )

    __table_args__ = (
        CheckConstraint(
            "delivery_status IN ('not_configured', 'queued', 'sent', 'failed')",
            name="parish_message_sends_delivery_status_check",
        ),
    )


class MessageRecipient(Base):
    """One addressee of a message send."""

    __tablename__ = "parish_message_recipients"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    send_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("parish_message_sends.id"), nullable=False
    )
    parish_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    clerk_user_id: Mapped[str] = mapped_column(Text, nullable=False)
    delivery_status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=RecipientDeliveryStatus.NOT_CONFIGURED.value,
        comment="not_configured|pending|sent|failed",
    )
    delivery_attempted_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    delivery_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    provider_message_id: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "send_id", "clerk_user_id", name="uq_parish_message_recipients_send_user"
        ),
        CheckConstraint(
            "delivery_status IN ('not_configured', 'pending', 'sent', 'failed')",
            name="parish_message_recipients_delivery_status_check",
        ),
    )


class DeliveryJob(Base):
    """
    One outstanding unit of delivery work for a message send.

    Mutated only through the conditional claim and the targeted
    finalize/reschedule updates in the job store. Rows are never deleted.
    """

    __tablename__ = "parish_message_delivery_jobs"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    # No foreign key: a job outlives a deleted send and fails on its own
    send_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    parish_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    provider: Mapped[str] = mapped_column(
        Text, nullable=False, comment="Configured transport identifier"
    )

    # Job state
    status: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=DeliveryJobStatus.PENDING.value,
        comment="Job status: pending|processing|sent|failed",
    )
    attempts: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, comment="Number of attempts made"
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_MAX_ATTEMPTS,
        comment="Attempts before the job is abandoned",
    )
    next_attempt_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        default=utcnow,
        comment="Earliest time the job may be claimed",
    )
    last_error: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Last error message"
    )

    # Worker coordination
    locked_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True, comment="When job was claimed"
    )
    locked_by: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Worker ID that claimed the job"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        default=utcnow,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'sent', 'failed')",
            name="parish_message_delivery_jobs_status_check",
        ),
        CheckConstraint(
            "attempts >= 0 AND attempts <= max_attempts",
            name="parish_message_delivery_jobs_attempts_check",
        ),
        Index("ix_delivery_jobs_status_next_attempt_at", "status", "next_attempt_at"),
        Index("ix_delivery_jobs_send_id", "send_id"),
    )

    def is_terminal(self) -> bool:
        """Check if job reached sent or failed and will never be claimed again."""
        return self.status in TERMINAL_JOB_STATUSES
