"""add parish communications delivery tables

Revision ID: 3b1f6c2a9d40
Revises:
Create Date: 2026-02-11 09:14:27.318405

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3b1f6c2a9d40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "user_profiles",
        sa.Column("clerk_user_id", sa.Text, primary_key=True),
        sa.Column("email", sa.Text, nullable=True),
        sa.Column("display_name", sa.Text, nullable=True),
    )

    op.create_table(
        "parish_message_sends",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("parish_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column("created_by_clerk_user_id", sa.Text, nullable=True),
        sa.Column(
            "audience_type",
            sa.Text,
            nullable=False,
            comment="all_members|stalled_learners|cohort|course",
        ),
        sa.Column("audience_value", sa.Text, nullable=True),
        sa.Column("subject", sa.Text, nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("recipient_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column(
            "delivery_status",
            sa.Text,
            nullable=False,
            server_default="not_configured",
            comment="not_configured|queued|sent|failed",
        ),
        sa.Column("provider", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "delivery_status IN ('not_configured', 'queued', 'sent', 'failed')",
            name="parish_message_sends_delivery_status_check",
        ),
    )
    op.create_index(
        "ix_parish_message_sends_parish_id", "parish_message_sends", ["parish_id"]
    )

    op.create_table(
        "parish_message_recipients",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "send_id",
            sa.UUID(as_uuid=True),
            sa.ForeignKey("parish_message_sends.id"),
            nullable=False,
        ),
        sa.Column("parish_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column("clerk_user_id", sa.Text, nullable=False),
        sa.Column(
            "delivery_status",
            sa.Text,
            nullable=False,
            server_default="not_configured",
            comment="not_configured|pending|sent|failed",
        ),
        sa.Column("delivery_attempted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("delivery_error", sa.Text, nullable=True),
        sa.Column("provider_message_id", sa.Text, nullable=True),
        sa.UniqueConstraint(
            "send_id", "clerk_user_id", name="uq_parish_message_recipients_send_user"
        ),
        sa.CheckConstraint(
            "delivery_status IN ('not_configured', 'pending', 'sent', 'failed')",
            name="parish_message_recipients_delivery_status_check",
        ),
    )

    op.create_table(
        "parish_message_delivery_jobs",
        sa.Column("id", sa.UUID(as_uuid=True), primary_key=True),
        sa.Column("send_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column("parish_id", sa.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "provider", sa.Text, nullable=False, comment="Configured transport identifier"
        ),
        sa.Column(
            "status",
            sa.Text,
            nullable=False,
            server_default="pending",
            comment="Job status: pending|processing|sent|failed",
        ),
        sa.Column("attempts", sa.Integer, nullable=False, server_default="0"),
        sa.Column("max_attempts", sa.Integer, nullable=False, server_default="5"),
        sa.Column(
            "next_attempt_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("last_error", sa.Text, nullable=True),
        # Worker coordination fields
        sa.Column("locked_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("locked_by", sa.Text, nullable=True),
        # Timestamps
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'sent', 'failed')",
            name="parish_message_delivery_jobs_status_check",
        ),
        sa.CheckConstraint(
            "attempts >= 0 AND attempts <= max_attempts",
            name="parish_message_delivery_jobs_attempts_check",
        ),
    )

    # Due-job scan: status = 'pending' AND next_attempt_at <= now()
    op.create_index(
        "ix_delivery_jobs_status_next_attempt_at",
        "parish_message_delivery_jobs",
        ["status", "next_attempt_at"],
    )
    op.create_index(
        "ix_delivery_jobs_send_id", "parish_message_delivery_jobs", ["send_id"]
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("parish_message_delivery_jobs")
    op.drop_table("parish_message_recipients")
    op.drop_index("ix_parish_message_sends_parish_id", "parish_message_sends")
    op.drop_table("parish_message_sends")
    op.drop_table("user_profiles")
