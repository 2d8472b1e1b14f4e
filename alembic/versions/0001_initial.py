"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

CONTENT_STATUSES = (
    "draft",
    "sent_for_review",
    "client_reviewing",
    "revisions_requested",
    "approved",
    "published",
)


def upgrade() -> None:
    bind = op.get_bind()
    approval_mode = sa.Enum("full_approval", "initial_approval", "auto", name="approvalmode")
    content_type = sa.Enum("blog_post", "ad_copy", "social_post", "email", "other", name="contenttype")
    content_status = sa.Enum(*CONTENT_STATUSES, name="contentstatus")

    approval_mode.create(bind, checkfirst=True)
    content_type.create(bind, checkfirst=True)
    content_status.create(bind, checkfirst=True)

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False, unique=True),
        sa.Column("content_approval_mode", approval_mode, nullable=False, server_default="full_approval"),
        sa.Column("approval_threshold", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "content_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("body", sa.Text(), nullable=False, server_default=""),
        sa.Column("content_type", content_type, nullable=False, server_default="blog_post"),
        sa.Column("assigned_to", sa.String(length=128), nullable=True),
        sa.Column("status", content_status, nullable=False, server_default="draft"),
        sa.Column("approval_required", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("review_round", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status_changed_at", sa.DateTime(), nullable=False),
        sa.Column("created_by_id", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("review_round >= 0", name="ck_content_review_round_non_negative"),
    )
    op.create_index("ix_content_items_status", "content_items", ["status"])
    op.create_index("ix_content_items_status_changed_at", "content_items", ["status_changed_at"])
    op.create_index("ix_content_items_client_status", "content_items", ["client_id", "status"])

    op.create_table(
        "content_status_history",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("content_id", sa.Integer(), sa.ForeignKey("content_items.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("from_status", content_status, nullable=False),
        sa.Column("status", content_status, nullable=False),
        sa.Column("review_round", sa.Integer(), nullable=False),
        sa.Column("changed_at", sa.DateTime(), nullable=False),
        sa.Column("changed_by_id", sa.String(length=128), nullable=True),
        sa.Column("changed_by_name", sa.String(length=255), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.UniqueConstraint("content_id", "sequence", name="uq_content_history_sequence"),
    )
    op.create_index("ix_content_status_history_content_id", "content_status_history", ["content_id"])
    op.create_index("ix_content_history_changed_at", "content_status_history", ["changed_at"])

    op.create_table(
        "activity_feed",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.Integer(), sa.ForeignKey("clients.id"), nullable=True),
        sa.Column("user_id", sa.String(length=128), nullable=True),
        sa.Column("user_name", sa.String(length=255), nullable=False),
        sa.Column("activity_type", sa.String(length=64), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("metadata_json", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("icon", sa.String(length=64), nullable=False, server_default="info"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_activity_feed_client_created", "activity_feed", ["client_id", "created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor", sa.String(length=128), nullable=False),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("payload_json", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "idempotency_keys",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("endpoint", sa.String(length=255), nullable=False),
        sa.Column("request_hash", sa.String(length=64), nullable=False),
        sa.Column("response_json", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("key", "endpoint", name="uq_idempotency_key_endpoint"),
    )
    op.create_index("ix_idempotency_created_at", "idempotency_keys", ["created_at"])

    op.create_table(
        "job_dead_letters",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("task_name", sa.String(length=255), nullable=False),
        sa.Column("payload_json", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("job_dead_letters")
    op.drop_index("ix_idempotency_created_at", table_name="idempotency_keys")
    op.drop_table("idempotency_keys")
    op.drop_table("audit_logs")
    op.drop_index("ix_activity_feed_client_created", table_name="activity_feed")
    op.drop_table("activity_feed")
    op.drop_index("ix_content_history_changed_at", table_name="content_status_history")
    op.drop_index("ix_content_status_history_content_id", table_name="content_status_history")
    op.drop_table("content_status_history")
    op.drop_index("ix_content_items_client_status", table_name="content_items")
    op.drop_index("ix_content_items_status_changed_at", table_name="content_items")
    op.drop_index("ix_content_items_status", table_name="content_items")
    op.drop_table("content_items")
    op.drop_table("clients")

    bind = op.get_bind()
    sa.Enum(name="contentstatus").drop(bind, checkfirst=True)
    sa.Enum(name="contenttype").drop(bind, checkfirst=True)
    sa.Enum(name="approvalmode").drop(bind, checkfirst=True)
