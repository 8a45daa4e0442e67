"""
Parish communications Pydantic schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AudienceType(str, Enum):
    """Audiences a parish message can be addressed to."""

    ALL_MEMBERS = "all_members"
    STALLED_LEARNERS = "stalled_learners"
    COHORT = "cohort"
    COURSE = "course"


# Provider contract


class DeliveryRecipient(BaseModel):
    """Recipient payload handed to a provider."""

    clerk_user_id: str
    email: str | None = None


class DeliveryRequest(BaseModel):
    """One message to deliver through the named provider."""

    provider: str
    subject: str
    body: str
    recipients: list[DeliveryRecipient]


class DeliveryFailure(BaseModel):
    """A recipient the provider could not reach and why."""

    clerk_user_id: str
    error: str


class Delivered(BaseModel):
    """Provider ran; per-recipient results. A recipient may fail more than once."""

    kind: Literal["delivered"] = "delivered"
    sent: list[str] = Field(default_factory=list)
    failed: list[DeliveryFailure] = Field(default_factory=list)


class ProviderError(BaseModel):
    """Transport-wide failure; nobody was attempted."""

    kind: Literal["provider_error"] = "provider_error"
    message: str


DeliveryOutcome = Annotated[Delivered | ProviderError, Field(discriminator="kind")]


class DeliveryConfig(BaseModel):
    """Whether delivery is enabled and through which provider."""

    enabled: bool
    provider: str | None = None


# Job processing


class JobOutcome(str, Enum):
    """Result of processing a single job, aggregated by the batch runner."""

    SENT = "sent"
    FAILED = "failed"
    REQUEUED = "requeued"


MAX_BATCH_LIMIT = 50


class ProcessJobsRequest(BaseModel):
    """Optional body accepted by the worker trigger."""

    limit: int | None = Field(
        default=None, ge=1, le=MAX_BATCH_LIMIT, description="Maximum jobs to process"
    )


class ProcessJobsSummary(BaseModel):
    """Outcome counts of one batch run."""

    processed: int = 0
    sent: int = 0
    failed: int = 0
    requeued: int = 0

    def record(self, outcome: JobOutcome) -> None:
        self.processed += 1
        if outcome == JobOutcome.SENT:
            self.sent += 1
        elif outcome == JobOutcome.FAILED:
            self.failed += 1
        else:
            self.requeued += 1


class DeliveryJobResponse(BaseModel):
    """Schema for delivery job API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    send_id: UUID
    parish_id: UUID
    provider: str
    status: str
    attempts: int
    max_attempts: int
    next_attempt_at: datetime
    last_error: str | None = None
    locked_at: datetime | None = None
    locked_by: str | None = None
    created_at: datetime
    updated_at: datetime


class DeliveryJobListResponse(BaseModel):
    """Schema for delivery job list API response."""

    jobs: list[DeliveryJobResponse]
    total: int
    limit: int
    offset: int


class DeliveryJobStatsResponse(BaseModel):
    """Queue statistics for operators."""

    total_jobs: int
    by_status: dict[str, int]
    due_now: int
    stale_locks: int
    failed_last_hour: int


# Send drill-down

MAX_DETAIL_RECIPIENTS = 500


class MessageSendResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    parish_id: UUID
    subject: str
    body: str
    delivery_status: str
    recipient_count: int
    provider: str | None = None
    created_at: datetime


class RecipientStatusCounts(BaseModel):
    """Recipient counts per delivery status among the listed recipients."""

    total: int = 0
    not_configured: int = 0
    pending: int = 0
    sent: int = 0
    failed: int = 0


class RecipientDetail(BaseModel):
    clerk_user_id: str
    display_name: str | None = None
    email: str | None = None
    delivery_status: str
    delivery_attempted_at: datetime | None = None
    delivery_error: str | None = None


class MessageSendDetailResponse(BaseModel):
    """A send with its per-recipient delivery outcomes."""

    send: MessageSendResponse
    summary: RecipientStatusCounts
    recipients: list[RecipientDetail]


# Message logging


class MessageSendCreate(BaseModel):
    """A message to log for an already resolved audience."""

    parish_id: UUID
    created_by_clerk_user_id: str | None = None
    subject: str = Field(..., min_length=1, max_length=160)
    body: str = Field(..., min_length=1, max_length=5000)
    audience_type: AudienceType
    audience_value: str | None = None
    recipient_ids: list[str] = Field(..., min_length=1)

